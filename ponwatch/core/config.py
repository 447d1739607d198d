"""
Analysis settings.

Settings come from trace-file directives (``# high_latency_ms: 500``)
and may be overridden from the command line.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional

from ponwatch.core.stats import DEFAULT_HIGH_LATENCY_MS


@dataclass(frozen=True)
class AnalyzerConfig:
    """
    Tunables of the analysis engine.

    Attributes:
        high_latency_ms: Latency above which a transaction is flagged slow.
        success_result_code: Result code that denotes success.
    """

    high_latency_ms: float = DEFAULT_HIGH_LATENCY_MS
    success_result_code: int = 0

    def __post_init__(self) -> None:
        if self.high_latency_ms < 0:
            raise ValueError(
                f"high_latency_ms must be non-negative, got {self.high_latency_ms}"
            )

    @classmethod
    def from_directives(cls, directives: Mapping[str, Any]) -> AnalyzerConfig:
        """Build a config from parsed trace-file directives."""
        return cls().with_overrides(
            high_latency_ms=directives.get("high_latency_ms"),
            success_result_code=directives.get("success_result_code"),
        )

    def with_overrides(
        self,
        high_latency_ms: Optional[float] = None,
        success_result_code: Optional[int] = None,
    ) -> AnalyzerConfig:
        """Return a copy with every non-None argument applied."""
        changes: dict = {}
        if high_latency_ms is not None:
            changes["high_latency_ms"] = float(high_latency_ms)
        if success_result_code is not None:
            changes["success_result_code"] = int(success_result_code)
        return replace(self, **changes)
