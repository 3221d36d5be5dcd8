"""Functional tests for progress calculation and submission gating."""

from __future__ import annotations

import pytest

from fleetcheck.logic.errors import ChecklistValidationError
from fleetcheck.logic.progress import (
    completed_item_ids,
    completion_percentage,
    find_missing_mandatory,
    format_missing_report,
    percentage,
    summarize_progress,
    validate_for_submission,
)
from fleetcheck.logic.template_normalizer import normalize_template
from fleetcheck.models.checklist import MissingItem


@pytest.fixture
def template():
    return normalize_template(
        {
            "id": "tpl-p",
            "template_data": {
                "sections": [
                    {"section_name": "Nav", "items": [{"item_id": "a", "check": "Radar"}, {"item_id": "b", "check": "ECDIS"}]},
                    {"section_name": "Port", "items": [{"item_id": "c", "check": "Agent", "mandatory": False}]},
                ]
            },
        }
    )


def test_two_of_three_rounds_to_67():
    """Verifies nearest-integer rounding."""
    responses = [{"item_id": "a", "yes_no_na_value": "Yes"}, {"item_id": "b", "text_value": "ok"}]

    assert completion_percentage(responses, 3) == 67


@pytest.mark.parametrize("completed, total, expected", [(0, 0, 0), (5, 0, 0), (1, 3, 33), (1, 8, 13), (3, 3, 100), (7, 3, 100)])
def test_percentage_edges(completed, total, expected):
    """Verifies zero totals, half-up rounding and the 100 clamp."""
    assert percentage(completed, total) == expected


def test_percentage_never_decreases_as_answers_are_added():
    """Verifies monotonicity over a growing set of meaningful responses."""
    responses = []
    seen = []
    for i in range(7):
        responses.append({"item_id": f"i{i}", "text_value": "x"})
        seen.append(completion_percentage(responses, 7))

    assert seen == sorted(seen)
    assert seen[-1] == 100


def test_only_meaningful_latest_responses_count():
    """Verifies empty or overwritten-to-empty responses are not completed."""
    done = completed_item_ids(
        [
            {"item_id": "a", "text_value": "x"},
            {"item_id": "a", "text_value": ""},
            {"item_id": "b", "remarks": "later"},
            {"item_id": "c", "date_value": "2025-01-01"},
        ]
    )

    assert done == {"c"}


def test_summarize_progress_tracks_mandatory_items(template):
    """Verifies totals, mandatory counts and the submit gate."""
    summary = summarize_progress([{"item_id": "a", "yes_no_na_value": "Yes"}, {"item_id": "c", "text_value": "x"}], template)

    assert (summary.total, summary.completed, summary.percentage) == (3, 2, 67)
    assert (summary.mandatory, summary.mandatory_completed, summary.mandatory_percentage) == (2, 1, 50)
    assert summary.can_submit is False


def test_validate_for_submission_lists_missing_mandatory_items(template):
    """Verifies the validation error carries the missing items and a grouped report."""
    with pytest.raises(ChecklistValidationError) as excinfo:
        validate_for_submission([{"item_id": "a", "yes_no_na_value": "No"}], template)

    assert excinfo.value.missing_items == [{"item_id": "b", "description": "ECDIS", "section": "Nav"}]
    assert "Nav:" in excinfo.value.message
    assert "  - ECDIS" in excinfo.value.message


def test_validate_for_submission_passes_when_mandatory_items_answered(template):
    """Verifies optional items do not block submission."""
    responses = [{"item_id": "a", "yes_no_na_value": "Yes"}, {"item_id": "b", "yes_no_na_value": "N/A"}]

    validate_for_submission(responses, template)

    assert find_missing_mandatory(responses, template) == []


def test_missing_report_truncates_long_sections():
    """Verifies a section lists a bounded number of items then a remainder line."""
    missing = [MissingItem(item_id=f"i{n}", description=f"Item {n}", section="Deck") for n in range(8)]
    missing.append(MissingItem(item_id="e1", description="", section="Engine"))

    report = format_missing_report(missing).splitlines()

    assert report[0] == "9 mandatory item(s) need a response:"
    assert report[1] == "Deck:"
    assert report[2:7] == [f"  - Item {n}" for n in range(5)]
    assert report[7] == "  ... and 3 more"
    assert report[8:] == ["Engine:", "  - e1"]
