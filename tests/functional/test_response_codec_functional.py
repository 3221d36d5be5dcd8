"""Functional tests for answer encoding, optimization and decoding."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from fleetcheck.logic.errors import ChecklistValidationError
from fleetcheck.logic.response_codec import (
    canonical_yes_no_na,
    decode_responses,
    encode_answer,
    encode_responses,
    is_meaningful,
    optimize_responses,
)
from fleetcheck.logic.template_normalizer import normalize_template
from fleetcheck.models.checklist import FormAnswer, WireResponse
from fleetcheck.models.template import ChecklistItem, ResponseType


@pytest.fixture
def template():
    return normalize_template(
        {
            "id": "tpl-codec",
            "template_data": {
                "sections": [
                    {
                        "section_name": "S",
                        "fields": [
                            {"field_id": "yn", "field_type": "yes_no"},
                            {"field_id": "txt", "field_type": "text"},
                            {"field_id": "when", "field_type": "date"},
                            {"field_id": "tbl", "field_type": "table", "columns": [{"id": "rank"}]},
                        ],
                    }
                ]
            },
        }
    )


def _item(response_type, item_id="x"):
    return ChecklistItem(item_id=item_id, section_name="S", response_type=response_type)


# -----------------------------
# Encoding
# -----------------------------

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("yes", "Yes"),
        ("Y", "Yes"),
        (" NO ", "No"),
        ("n", "No"),
        ("n/a", "N/A"),
        ("NA", "N/A"),
        ("Not Applicable", "N/A"),
        (True, "Yes"),
        (False, "No"),
    ],
)
def test_yes_no_na_values_are_canonicalized(raw, expected):
    """Verifies accepted spellings map onto Yes, No or N/A."""
    assert canonical_yes_no_na(raw) == expected


def test_unrecognized_yes_no_value_is_a_validation_error():
    """Verifies an unknown yes/no token raises with the item id attached."""
    with pytest.raises(ChecklistValidationError) as excinfo:
        encode_answer(_item(ResponseType.YES_NO_NA, "radar"), "maybe")

    assert excinfo.value.item_id == "radar"


def test_each_response_type_fills_exactly_one_value_field(template):
    """Verifies a value lands only in the field matching the item's response type."""
    wire = encode_responses(
        {
            "yn": {"response": "yes", "remarks": "checked"},
            "txt": "hello",
            "when": "2025-03-04T10:00:00Z",
            "tbl": {"table_data": [{"rank": "Master", "_id": "tmp"}]},
        },
        template,
    )

    by_id = {w.item_id: w.to_wire() for w in wire}
    assert by_id["yn"] == {"item_id": "yn", "yes_no_na_value": "Yes", "remarks": "checked"}
    assert by_id["txt"] == {"item_id": "txt", "text_value": "hello"}
    assert by_id["when"] == {"item_id": "when", "date_value": "2025-03-04"}
    # Assert: client-side keys starting with "_" never reach the store
    assert by_id["tbl"] == {"item_id": "tbl", "table_data": [{"rank": "Master"}]}
    assert [w.item_id for w in wire] == ["yn", "txt", "when", "tbl"]


@pytest.mark.parametrize("value", [date(2025, 1, 2), datetime(2025, 1, 2, 23, 59)])
def test_date_objects_are_encoded_as_iso_dates(value):
    """Verifies date and datetime values become YYYY-MM-DD."""
    assert encode_answer(_item(ResponseType.DATE), value).date_value == "2025-01-02"


def test_malformed_date_is_a_validation_error():
    """Verifies a non-date string for a date item is rejected."""
    with pytest.raises(ChecklistValidationError):
        encode_answer(_item(ResponseType.DATE), "next tuesday")


def test_table_data_may_arrive_as_json_string():
    """Verifies stringified table data is parsed before encoding."""
    wire = encode_answer(_item(ResponseType.TABLE), FormAnswer(table_data='[{"a": "1"}]'))

    assert wire.table_data == [{"a": "1"}]


def test_blank_answers_are_skipped_and_remarks_only_are_kept(template):
    """Verifies empty answers produce nothing while remarks-only answers are sent."""
    wire = encode_responses(
        {"yn": "", "txt": {"response": "  ", "comments": "see log"}, "when": None},
        template,
    )

    assert [w.to_wire() for w in wire] == [{"item_id": "txt", "remarks": "see log"}]
    # Assert: a remarks-only response does not count as an answer
    assert not is_meaningful(wire[0])


def test_unknown_item_ids_are_ignored_and_logged(template, caplog):
    """Verifies answers for items outside the template are dropped with a warning."""
    with caplog.at_level("WARNING"):
        wire = encode_responses({"ghost": "yes", "txt": "ok"}, template)

    assert [w.item_id for w in wire] == ["txt"]
    assert "responses_unknown_items" in caplog.text
    assert "ghost" in caplog.text


# -----------------------------
# Optimization
# -----------------------------

def test_optimize_keeps_last_value_and_drops_empties():
    """Verifies last-wins deduplication drops a response left empty."""
    optimized = optimize_responses(
        [{"item_id": "a", "text_value": ""}, {"item_id": "a", "text_value": "ok"}]
    )

    assert [r.to_wire() for r in optimized] == [{"item_id": "a", "text_value": "ok"}]


def test_optimize_keeps_first_position_and_is_idempotent():
    """Verifies output order follows first occurrence and a second pass changes nothing."""
    once = optimize_responses(
        [
            {"item_id": "b", "yes_no_na_value": "Yes"},
            {"item_id": "a", "text_value": "x"},
            {"item_id": "b", "yes_no_na_value": "No"},
            {"item_id": "c", "text_value": "c"},
            {"item_id": "c", "text_value": ""},
        ]
    )

    assert [(r.item_id, r.yes_no_na_value or r.text_value) for r in once] == [("b", "No"), ("a", "x")]
    assert optimize_responses(once) == once


def test_table_with_only_blank_cells_is_not_meaningful():
    """Verifies a table of blank rows does not count as an answer."""
    assert not is_meaningful(WireResponse(item_id="t", table_data=[{"rank": " "}, {"_id": "x"}]))
    assert is_meaningful(WireResponse(item_id="t", table_data=[{"rank": "Master"}]))


# -----------------------------
# Decoding
# -----------------------------

def test_decode_restores_form_answers(template):
    """Verifies stored responses rebuild the form answers keyed by item id."""
    answers = decode_responses(
        [
            {"item_id": "yn", "yes_no_na_value": "No", "remarks": "broken"},
            {"item_id": "when", "date_value": "2025-03-04"},
            {"item_id": "tbl", "table_data": '[{"rank": "Master"}]'},
        ],
        template,
    )

    assert answers["yn"] == FormAnswer(response="No", remarks="broken")
    assert answers["when"].response == "2025-03-04"
    assert answers["tbl"].table_data == [{"rank": "Master"}]


def test_decode_without_template_picks_the_populated_field():
    """Verifies decoding falls back to whichever value field is set."""
    answers = decode_responses([{"item_id": "q", "text_value": "free"}])

    assert answers["q"].response == "free"
