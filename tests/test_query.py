from __future__ import annotations

import pytest

from eventconsole.query import (
    FieldMapping,
    FilterRowSet,
    FilterValidationError,
    TimeRange,
    build_request,
    coerce_value,
)


def test_ids_are_never_reused_after_removal(fields) -> None:
    rows = FilterRowSet()
    first = rows.add(fields)
    second = rows.add(fields)
    rows.remove(second.id)
    third = rows.add(fields)

    assert [first.id, second.id, third.id] == [0, 1, 2]
    assert rows.ids == [0, 2]


def test_ids_stay_unique_and_increasing_over_mixed_edits(fields) -> None:
    rows = FilterRowSet()
    allocated = []
    for step in range(12):
        allocated.append(rows.add(fields).id)
        if step % 3 == 2:
            rows.remove(allocated[-2])

    assert allocated == sorted(allocated)
    assert len(set(allocated)) == len(allocated)


def test_remove_unknown_id_is_a_no_op(fields) -> None:
    rows = FilterRowSet()
    rows.add(fields)
    rows.remove(42)
    assert len(rows) == 1


def test_add_sets_defaults_and_input_mode(fields) -> None:
    rows = FilterRowSet()
    text_row = rows.add(fields, 0)
    numeric_row = rows.add(fields, 1)

    assert text_row.operator == "equals"
    assert text_row.input_mode == "text"
    assert numeric_row.input_mode == "numeric"
    assert numeric_row.value == "" and numeric_row.between_value == ""
    assert not numeric_row.between_enabled


def test_add_rejects_field_index_outside_field_list(fields) -> None:
    with pytest.raises(FilterValidationError):
        FilterRowSet().add(fields, 7)


def test_set_field_rebinds_and_clears_value(fields) -> None:
    rows = FilterRowSet()
    row = rows.add(fields, 0)
    rows.set_value(row.id, "OK")
    rows.set_field(row.id, fields, 1)

    assert row.field_index == 1
    assert row.input_mode == "numeric"
    assert row.value == ""


def test_set_operator_toggles_between_input(fields) -> None:
    rows = FilterRowSet()
    row = rows.add(fields, 1)
    rows.set_operator(row.id, "between")
    rows.set_value(row.id, 1, 5)
    assert row.between_enabled and row.between_value == 5

    rows.set_operator(row.id, "between")
    assert row.between_value == ""

    rows.set_operator(row.id, "less_than")
    assert not row.between_enabled
    assert row.between_value == ""


def test_set_operator_rejects_unknown_operator(fields) -> None:
    rows = FilterRowSet()
    row = rows.add(fields)
    with pytest.raises(FilterValidationError):
        rows.set_operator(row.id, "like")


def test_second_value_only_accepted_for_between(fields) -> None:
    rows = FilterRowSet()
    row = rows.add(fields)
    with pytest.raises(FilterValidationError):
        rows.set_value(row.id, "a", "b")


def test_to_filters_types_values_by_field_kind(fields) -> None:
    rows = FilterRowSet()
    rows.set_value(rows.add(fields, 0).id, "OK")
    rows.set_value(rows.add(fields, 1).id, "250")
    rows.set_value(rows.add(fields, 2).id, "0.5")

    wire = [f.wire() for f in rows.to_filters(fields)]

    assert wire == [
        {"field": "status", "operator": "equals", "value": "OK"},
        {"field": "latency", "operator": "equals", "value": 250},
        {"field": "ratio", "operator": "equals", "value": 0.5},
    ]


def test_between_row_serializes_bounds(fields) -> None:
    rows = FilterRowSet()
    row = rows.add(fields, 1)
    rows.set_operator(row.id, "between")
    rows.set_value(row.id, "10", "20")

    assert rows.to_filters(fields)[0].wire() == {
        "field": "latency", "operator": "between", "from": 10, "to": 20,
    }


@pytest.mark.parametrize("raw", ["", "   ", None])
def test_blank_values_fail_validation(fields, raw) -> None:
    rows = FilterRowSet()
    rows.set_value(rows.add(fields).id, raw)
    with pytest.raises(FilterValidationError):
        rows.to_filters(fields)


def test_non_numeric_value_for_long_field_fails_validation() -> None:
    with pytest.raises(FilterValidationError):
        coerce_value("abc", FieldMapping(field="latency", type="LONG"))
    with pytest.raises(FilterValidationError):
        coerce_value("1.5", FieldMapping(field="latency", type="LONG"))


def test_between_without_upper_bound_fails_validation(fields) -> None:
    rows = FilterRowSet()
    row = rows.add(fields, 1)
    rows.set_operator(row.id, "between")
    rows.set_value(row.id, 3)
    with pytest.raises(FilterValidationError):
        rows.to_filters(fields)


def test_build_request_matches_wire_example() -> None:
    fields = [FieldMapping(field="status", type="STRING")]
    rows = FilterRowSet()
    rows.set_value(rows.add(fields).id, "OK")

    query = build_request("events", rows, fields, TimeRange(), sort_order="asc")

    assert query.wire() == {
        "opcode": "query",
        "table": "events",
        "filters": [{"field": "status", "operator": "equals", "value": "OK"}],
        "sort": {"field": "_timestamp", "order": "asc"},
        "from": 0,
        "limit": 10,
    }


def test_empty_row_set_builds_unfiltered_query(fields) -> None:
    query = build_request("events", FilterRowSet(), fields)
    assert query.wire()["filters"] == []
    assert query.wire()["sort"] == {"field": "_timestamp", "order": "desc"}


@pytest.mark.parametrize(
    ("span", "included"),
    [(0, False), (999, False), (1000, False), (1001, True), (60_000, True)],
)
def test_time_range_included_only_above_one_second(fields, span, included) -> None:
    start = 1_700_000_000_000
    query = build_request("events", FilterRowSet(), fields, TimeRange(from_ms=start, to_ms=start + span))
    filters = query.wire()["filters"]

    if included:
        assert filters == [
            {"field": "_timestamp", "operator": "between", "from": start, "to": start + span}
        ]
    else:
        assert filters == []


def test_time_range_appended_after_row_filters(fields) -> None:
    rows = FilterRowSet()
    rows.set_value(rows.add(fields).id, "OK")
    query = build_request("events", rows, fields, TimeRange(from_ms=0, to_ms=5000), offset=20)

    wire = query.wire()
    assert [f["field"] for f in wire["filters"]] == ["status", "_timestamp"]
    assert wire["from"] == 20


def test_field_kinds_drive_integral_and_numeric_input() -> None:
    long_field = FieldMapping(field="latency", type="LONG")
    double_field = FieldMapping(field="ratio", type="double")
    text_field = FieldMapping(field="status", type="STRING")

    assert long_field.numeric and long_field.integral
    assert double_field.numeric and not double_field.integral
    assert not text_field.numeric and not text_field.integral
    assert coerce_value(0.5, double_field) == 0.5
