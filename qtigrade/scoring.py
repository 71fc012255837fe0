"""
Rubric scoring and the criteria-update payload.

Score precedence: when an item has rubric criteria, the score is always the
sum of the met criteria, even if the result file still carries an older
SCORE value. An explicit SCORE only counts for items without a rubric.

Criteria updates always carry every criterion of the item with its `met`
flag, in rubric order. Sending only the toggled criterion would lose the
state of the others when the update is merged into the result file.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

from qtigrade.common import InvalidScoringUpdate
from qtigrade.models import QtiItem, QtiItemResult, QtiResult, RubricCriterion


def _points(criterion: RubricCriterion) -> float:
    return criterion.points if math.isfinite(criterion.points) else 0.0


def max_score(item: QtiItem) -> float:
    return sum(_points(c) for c in item.rubric)


def rubric_score(item: QtiItem, outcomes: Mapping[int, bool]) -> float:
    return sum(_points(c) for c in item.rubric if outcomes.get(c.index) is True)


def item_score(item: QtiItem, item_result: Optional[QtiItemResult]) -> Optional[float]:
    if item.rubric:
        outcomes = item_result.rubric_outcomes if item_result is not None else {}
        return rubric_score(item, outcomes)
    if item_result is not None and item_result.score is not None:
        return item_result.score
    return None


def total_score(items: Sequence[QtiItem], item_results: Mapping[str, QtiItemResult]) -> float:
    total = 0.0
    for item in items:
        score = item_score(item, item_results.get(item.identifier))
        if score is not None:
            total += score
    return total


def total_max_score(items: Sequence[QtiItem]) -> float:
    return sum(max_score(item) for item in items)


def format_number(value: float) -> str:
    """3.0 -> "3", 2.5 -> "2.5"; float noise such as 0.1 + 0.2 is rounded away."""
    if float(value).is_integer():
        return str(int(value))
    return f"{float(value):.10g}"


# ---------------- Criteria updates ----------------

def criteria_vector(item: QtiItem, outcomes: Mapping[int, bool]) -> List[Dict[str, Any]]:
    """One entry per rubric criterion, in order; unset criteria are not met."""
    return [
        {"met": outcomes.get(c.index, False) is True, "criterionText": c.text}
        for c in item.rubric
    ]


def build_criteria_update(
    item: QtiItem,
    outcomes: Mapping[int, bool],
    criterion_index: int,
    met: bool,
) -> List[Dict[str, Any]]:
    """The full criteria vector after toggling one criterion."""
    if not any(c.index == criterion_index for c in item.rubric):
        raise InvalidScoringUpdate(f"item {item.identifier} has no rubric criterion {criterion_index}")
    updated = dict(outcomes)
    updated[criterion_index] = met
    return criteria_vector(item, updated)


def outcomes_from_criteria(item: QtiItem, criteria: Sequence[Mapping[str, Any]]) -> Dict[int, bool]:
    """Inverse of criteria_vector; rejects vectors that do not cover the whole rubric."""
    if len(criteria) != len(item.rubric):
        raise InvalidScoringUpdate(
            f"criteria for {item.identifier} must list all {len(item.rubric)} rubric criteria, got {len(criteria)}"
        )
    outcomes: Dict[int, bool] = {}
    for criterion, entry in zip(item.rubric, criteria):
        met = entry.get("met")
        if not isinstance(met, bool):
            raise InvalidScoringUpdate(
                f"criterion {criterion.index} of {item.identifier} needs a boolean 'met'"
            )
        outcomes[criterion.index] = met
    return outcomes


@dataclass
class ScoringOverride:
    """Pending edit for one item, not yet reflected in the parsed result."""
    item_id: str
    rubric_outcomes: Optional[Dict[int, bool]] = None
    comment: Optional[str] = None


def build_scoring_items(
    items: Sequence[QtiItem],
    result: Optional[QtiResult],
    override: Optional[ScoringOverride] = None,
) -> List[Dict[str, Any]]:
    """
    The `items` list of a criteria-update request for one result file.

    Rubric items always carry their complete criteria vector. Items without a
    rubric are only included when the override gives them a non-blank comment.
    """
    if result is None:
        return []

    out: List[Dict[str, Any]] = []
    for item in items:
        item_result = result.item_results.get(item.identifier)
        is_target = override is not None and override.item_id == item.identifier
        comment = override.comment if is_target else None
        has_comment = isinstance(comment, str) and comment.strip() != ""

        if not item.rubric:
            if has_comment:
                out.append({"identifier": item.identifier, "comment": comment})
            continue

        outcomes = item_result.rubric_outcomes if item_result is not None else {}
        if is_target and override.rubric_outcomes is not None:
            outcomes = override.rubric_outcomes
        entry: Dict[str, Any] = {
            "identifier": item.identifier,
            "criteria": criteria_vector(item, outcomes),
        }
        if has_comment:
            entry["comment"] = comment
        out.append(entry)
    return out


def update_item_comment(
    results: Sequence[QtiResult],
    result_file: str,
    item_id: str,
    comment: str,
) -> List[QtiResult]:
    """New result list with one comment changed; the inputs are left alone."""
    updated: List[QtiResult] = []
    for result in results:
        if result.file_name != result_file:
            updated.append(result)
            continue
        item_result = result.item_results.get(item_id) or QtiItemResult(result_identifier=item_id)
        item_results = dict(result.item_results)
        item_results[item_id] = replace(item_result, comment=comment)
        updated.append(replace(result, item_results=item_results, entries=list(item_results.values())))
    return updated
