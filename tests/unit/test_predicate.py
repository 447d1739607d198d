"""
Tests for structural and free-text event predicates.
"""

from __future__ import annotations

import pytest

from ponwatch.filter.predicate import (
    FilterPredicate,
    StructuralFilter,
    TextFilter,
    iter_leaf_fields,
)


# ---------------------------------------------------------------------------
# Tests: StructuralFilter
# ---------------------------------------------------------------------------


class TestStructuralFilter:
    """Test link/endpoint matching."""

    def test_unset_passes_all(self, event_factory) -> None:
        assert StructuralFilter().matches(event_factory("Get Request", 2, 0))
        assert not StructuralFilter().is_set

    def test_link_only(self, event_factory) -> None:
        f = StructuralFilter(link_id=2)
        assert f.matches(event_factory("Get Request", 2, 0, link=2, endpoint=9))
        assert not f.matches(event_factory("Get Request", 2, 0, link=1))

    def test_link_and_endpoint(self, event_factory) -> None:
        f = StructuralFilter(link_id=2, endpoint_id=3)
        assert f.matches(event_factory("Get Request", 2, 0, link=2, endpoint=3))
        assert not f.matches(event_factory("Get Request", 2, 0, link=2, endpoint=4))

    def test_endpoint_requires_link(self) -> None:
        with pytest.raises(ValueError):
            StructuralFilter(endpoint_id=3)

    def test_str(self) -> None:
        assert str(StructuralFilter()) == "*"
        assert str(StructuralFilter(1)) == "link:1"
        assert str(StructuralFilter(1, 2)) == "link:1 endpoint:2"


# ---------------------------------------------------------------------------
# Tests: TextFilter
# ---------------------------------------------------------------------------


class TestTextFilter:
    """Test the depth-first free-text search."""

    def test_empty_passes_all(self, event_factory) -> None:
        assert TextFilter().matches(event_factory("Get Request", 2, 0))

    def test_case_insensitive(self, event_factory) -> None:
        assert TextFilter("GET REQ").matches(event_factory("Get Request", 2, 0))

    def test_field_name_searchable(self, event_factory) -> None:
        """The needle may span the field name and the value."""
        event = event_factory("Get Request", 42, 0)
        assert TextFilter("transaction_id: 42").matches(event)

    def test_nested_attribute(self, event_factory) -> None:
        event = event_factory(
            "Get Response", 2, 0,
            attributes={"Attributes": {"Alarms": [{"Bit": "LOS"}]}},
        )
        assert TextFilter("bit: los").matches(event)

    def test_timestamp_searchable(self, event_factory) -> None:
        event = event_factory("Get Request", 2, 0)
        assert TextFilter("2025-01-01").matches(event)

    def test_capture_field_names(self, event_factory) -> None:
        """Queries may name top-level fields as the capture service does."""
        event = event_factory("Get Request", 42, 0, link=3, endpoint=7)
        assert TextFilter("messagetype: get request").matches(event)
        assert TextFilter("InterfaceId: 3").matches(event)
        assert TextFilter("OnuId: 7").matches(event)
        assert TextFilter("TransactionId: 42").matches(event)
        assert TextFilter("Timestamp: 2025-01-01").matches(event)
        assert not TextFilter("InterfaceId: 4").matches(event)

    def test_no_match(self, event_factory) -> None:
        assert not TextFilter("mib upload").matches(
            event_factory("Get Request", 2, 0)
        )


class TestIterLeafFields:
    """Test the field traversal."""

    def test_depth_first_order(self, event_factory) -> None:
        event = event_factory(
            "Get Request", 2, 0,
            attributes={"A": {"B": 1}, "C": [5, 6]},
        )
        leaves = list(iter_leaf_fields(event))
        names = [name for name, _ in leaves]
        assert names[:3] == ["link_id", "endpoint_id", "transaction_id"]
        tail = leaves[names.index("B"):names.index("1") + 1]
        assert tail == [("B", 1), ("0", 5), ("1", 6)]


class TestFilterPredicate:
    """Test the combined predicate."""

    def test_both_must_match(self, event_factory) -> None:
        predicate = FilterPredicate(StructuralFilter(1), TextFilter("response"))
        assert predicate.matches(event_factory("Get Response", 2, 0, link=1))
        assert not predicate.matches(event_factory("Get Request", 2, 0, link=1))
        assert not predicate.matches(event_factory("Get Response", 2, 0, link=2))

    def test_str(self) -> None:
        predicate = FilterPredicate(StructuralFilter(1), TextFilter("x"))
        assert str(predicate) == "structural=link:1 text='x'"
