"""Functional tests for free-form and predefined table merging and editing."""

from __future__ import annotations

import pytest

from fleetcheck.logic.errors import TableEditError
from fleetcheck.logic.table_merger import DynamicTable, merge_table, needs_attention

PREDEFINED = [{"query": "Q1"}, {"query": "Q2"}]
BIO_COLUMNS = [
    {"id": "query", "label": "Query"},
    {"id": "response", "label": "Response", "type": "yes_no"},
    {"id": "remarks", "label": "Remarks"},
]
CREW_COLUMNS = [
    {"id": "rank", "label": "RANK", "required": True},
    {"id": "number", "label": "NUMBER", "required": True},
    {"id": "remarks", "label": "REMARKS"},
]


# -----------------------------
# Predefined tables
# -----------------------------

def test_predefined_row_without_stored_data_defaults_to_yes():
    """Verifies the no-issue convention for unanswered predefined rows."""
    rows = merge_table([], [{"query": "Q1"}], [])

    assert len(rows) == 1
    assert rows[0].values["response"] == "Yes"
    assert rows[0].values["query"] == "Q1"
    assert rows[0].predefined is True
    assert rows[0].needs_attention is False


def test_stored_values_overlay_predefined_rows_positionally():
    """Verifies stored answers win over defaults while the query stays the template's."""
    rows = merge_table(
        BIO_COLUMNS,
        PREDEFINED,
        [{"query": "edited", "response": "No", "remarks": "rats", "_id": "x"}, {"response": None}],
    )

    assert rows[0].values == {"query": "Q1", "response": "No", "remarks": "rats"}
    assert rows[0].needs_attention is True
    # Assert: a None overlay keeps the default
    assert rows[1].values["response"] == "Yes"
    assert [r.row_id for r in rows] == ["predefined_row_0", "predefined_row_1"]


def test_extra_stored_rows_on_predefined_table_are_dropped(caplog):
    """Verifies the template fixes the row count of a predefined table."""
    with caplog.at_level("WARNING"):
        rows = merge_table(BIO_COLUMNS, PREDEFINED, [{}, {}, {"response": "No"}])

    assert len(rows) == 2
    assert "table_merge_extra_rows_dropped" in caplog.text


def test_delete_on_predefined_row_resets_answer_and_keeps_row():
    """Verifies delete clears a predefined row's answer rather than removing it."""
    table = DynamicTable(BIO_COLUMNS, PREDEFINED)
    rows = table.merge([{"response": "No", "remarks": "rats"}])

    after = table.delete_row(rows, 0)

    assert len(after) == 2
    assert after[0].values == {"query": "Q1", "response": "Yes", "remarks": ""}
    assert after[0].needs_attention is False


def test_query_of_predefined_row_is_read_only():
    """Verifies only response and remarks are editable on predefined rows."""
    table = DynamicTable(BIO_COLUMNS, PREDEFINED)
    rows = table.merge([])

    with pytest.raises(TableEditError):
        table.update_cell(rows, 0, "query", "changed")

    updated = table.update_cell(rows, 1, "response", "No")
    assert updated[1].needs_attention is True
    assert rows[1].values["response"] == "Yes"


def test_rows_cannot_be_added_to_predefined_table():
    """Verifies the predefined row set is fixed."""
    table = DynamicTable(BIO_COLUMNS, PREDEFINED)

    with pytest.raises(TableEditError):
        table.add_row(table.merge([]), {"query": "Q3"})


def test_predefined_table_data_always_carries_template_queries():
    """Verifies wire rows keep the template query text."""
    table = DynamicTable(BIO_COLUMNS, PREDEFINED)
    rows = table.update_cell(table.merge([]), 0, "remarks", "checked")

    assert table.to_table_data(rows) == [
        {"query": "Q1", "response": "Yes", "remarks": "checked"},
        {"query": "Q2", "response": "Yes"},
    ]


@pytest.mark.parametrize("value, flagged", [("Yes", False), ("No", True), ("N/A", True), ("", False), (None, False)])
def test_needs_attention(value, flagged):
    """Verifies only non-blank answers other than Yes are flagged."""
    assert needs_attention(value) is flagged


# -----------------------------
# Free-form tables
# -----------------------------

def test_free_form_merge_keeps_declared_columns_and_drops_empty_rows():
    """Verifies undeclared keys, blank cells and empty rows are removed."""
    rows = merge_table(
        CREW_COLUMNS,
        None,
        [{"rank": "Master", "number": "1", "nationality": "GR"}, {"rank": " ", "number": ""}, {"rank": "C/E", "remarks": ""}],
    )

    assert [r.values for r in rows] == [{"rank": "Master", "number": "1"}, {"rank": "C/E"}]
    assert [r.row_id for r in rows] == ["row_0", "row_1"]
    assert not any(r.predefined for r in rows)


def test_free_form_table_without_columns_uses_defaults():
    """Verifies the description/value fallback layout."""
    table = DynamicTable()

    assert table.column_ids == ["description", "value"]
    assert not table.predefined


def test_add_row_requires_required_columns():
    """Verifies required columns are enforced on add."""
    table = DynamicTable(CREW_COLUMNS)

    with pytest.raises(TableEditError) as excinfo:
        table.add_row([], {"rank": "Master"})
    assert "NUMBER" in excinfo.value.message

    rows = table.add_row([], {"rank": "Master", "number": "1", "extra": "x"})
    assert rows[0].values == {"rank": "Master", "number": "1"}


def test_delete_free_form_row_reindexes():
    """Verifies delete removes a free-form row and renumbers the rest."""
    table = DynamicTable(CREW_COLUMNS)
    rows = table.merge([{"rank": "A"}, {"rank": "B"}, {"rank": "C"}])

    after = table.delete_row(rows, 0)

    assert [(r.row_id, r.values["rank"]) for r in after] == [("row_0", "B"), ("row_1", "C")]


def test_edit_with_bad_index_or_column_is_rejected():
    """Verifies edits outside the table raise."""
    table = DynamicTable(CREW_COLUMNS)
    rows = table.merge([{"rank": "A"}])

    with pytest.raises(TableEditError):
        table.update_cell(rows, 3, "rank", "B")
    with pytest.raises(TableEditError):
        table.update_cell(rows, 0, "salary", "1")
    with pytest.raises(TableEditError):
        table.delete_row(rows, -1)


def test_free_form_round_trip_through_table_data():
    """Verifies a merge of serialized rows reproduces the same display rows."""
    table = DynamicTable(CREW_COLUMNS)
    rows = table.add_row(table.add_row([], {"rank": "Master", "number": "1"}), {"rank": "C/O", "number": "2", "remarks": "new"})

    assert table.merge(table.to_table_data(rows)) == rows
