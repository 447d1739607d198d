"""
Tests for the structured analysis logger.

Tests cover log level filtering, verdict display, statistics
formatting, batch and per-event lines, and custom stream output.
"""

from io import StringIO

from ponwatch.utils.logger import AnalysisLogger, LogLevel


def _logger(level: LogLevel):
    buf = StringIO()
    return AnalysisLogger(level=level, stream=buf), buf


# ---------------------------------------------------------------------------
# Tests: Log Level Filtering
# ---------------------------------------------------------------------------


class TestLogLevelFiltering:
    """Test that log levels filter messages correctly."""

    def test_silent_suppresses_all(self) -> None:
        logger, buf = _logger(LogLevel.SILENT)
        logger.debug("debug msg")
        logger.info("info msg")
        logger.warning("warn msg")
        logger.verdict(3)
        assert buf.getvalue() == ""

    def test_normal_shows_warnings(self) -> None:
        logger, buf = _logger(LogLevel.NORMAL)
        logger.info("info msg")
        logger.warning("warn msg")
        assert buf.getvalue() == "[WARN] warn msg\n"

    def test_verbose_shows_info(self) -> None:
        logger, buf = _logger(LogLevel.VERBOSE)
        logger.info("info msg", filter="*")
        logger.debug("debug msg")
        assert buf.getvalue() == "[INFO] info msg\n  filter: *\n"

    def test_debug_shows_all(self) -> None:
        logger, buf = _logger(LogLevel.DEBUG)
        logger.debug("debug msg", timestamp="t")
        assert "[DEBUG] debug msg" in buf.getvalue()
        assert "  timestamp: t" in buf.getvalue()


# ---------------------------------------------------------------------------
# Tests: Formatted Output
# ---------------------------------------------------------------------------


class TestFormattedOutput:
    """Test the specialised log lines."""

    def test_verdict_clean(self) -> None:
        logger, buf = _logger(LogLevel.NORMAL)
        logger.verdict(0)
        assert buf.getvalue() == "CLEAN: No integrity problems detected\n"

    def test_verdict_findings(self) -> None:
        logger, buf = _logger(LogLevel.NORMAL)
        logger.verdict(4)
        assert "FINDINGS: 4 integrity problem(s) detected" in buf.getvalue()

    def test_statistics_labels(self) -> None:
        logger, buf = _logger(LogLevel.VERBOSE)
        logger.statistics({"missing_count": 2})
        assert buf.getvalue() == "=== Statistics ===\n  Missing Count: 2\n"

    def test_statistics_hidden_at_normal(self) -> None:
        logger, buf = _logger(LogLevel.NORMAL)
        logger.statistics({"missing_count": 2})
        assert buf.getvalue() == ""

    def test_batch_line(self) -> None:
        logger, buf = _logger(LogLevel.VERBOSE)
        logger.batch_ingested(5, 1, 12)
        assert buf.getvalue() == (
            "[BATCH] 5 event(s) ingested, 1 skipped, 12 buffered\n"
        )

    def test_event_line(self) -> None:
        logger, buf = _logger(LogLevel.DEBUG)
        logger.event_info(3, "Get Request", "1/1#7", ["suspicious", "failure"])
        logger.event_info(4, "Get Response", "1/1#7", [])
        lines = buf.getvalue().splitlines()
        assert lines[0] == "[EVENT] #3 Get Request @ 1/1#7, tags: failure, suspicious"
        assert lines[1] == "[EVENT] #4 Get Response @ 1/1#7, tags: (none)"

    def test_event_line_hidden_at_verbose(self) -> None:
        logger, buf = _logger(LogLevel.VERBOSE)
        logger.event_info(3, "Get Request", "1/1#7", [])
        assert buf.getvalue() == ""
