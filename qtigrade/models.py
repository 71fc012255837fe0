"""Plain data carried between the qtigrade tools. Nothing here does I/O."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from qtigrade.common import QtiError

ITEM_TYPES = ("descriptive", "choice", "cloze")

Response = Union[str, List[str], None]


@dataclass(frozen=True)
class AssessmentItemRef:
    identifier: str
    href: str


@dataclass(frozen=True)
class ResolvedItemRef:
    identifier: str
    href: str
    resolved_href: str


@dataclass(frozen=True)
class RubricCriterion:
    index: int      # 1-based, assigned in parse order
    points: float
    text: str


@dataclass(frozen=True)
class Choice:
    identifier: str
    text: str


@dataclass
class QtiItem:
    identifier: str
    title: str
    type: str
    prompt_text: str = ""
    choices: List[Choice] = field(default_factory=list)
    rubric: List[RubricCriterion] = field(default_factory=list)
    candidate_explanation: Optional[str] = None


@dataclass
class QtiItemResult:
    result_identifier: str
    response: Response = None
    score: Optional[float] = None
    comment: Optional[str] = None
    rubric_outcomes: Dict[int, bool] = field(default_factory=dict)
    sequence_index: Optional[int] = None


@dataclass(frozen=True)
class ResultItemRef:
    """What validation needs to know about one itemResult entry."""
    identifier: str
    sequence_index: Optional[int]
    has_sequence_index: bool
    raw_sequence_index: Optional[str] = None


@dataclass
class QtiResult:
    file_name: str
    sourced_id: str
    candidate_name: str
    item_results: Dict[str, QtiItemResult] = field(default_factory=dict)
    # every itemResult in document order, including ones whose identifier repeats
    entries: List[QtiItemResult] = field(default_factory=list)

    def iter_entries(self) -> List[QtiItemResult]:
        return self.entries if self.entries else list(self.item_results.values())


@dataclass
class RemapResult:
    mapped_item_results: Dict[str, QtiItemResult] = field(default_factory=dict)
    missing_result_identifiers: List[str] = field(default_factory=list)
    duplicate_item_identifiers: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.missing_result_identifiers and not self.duplicate_item_identifiers


@dataclass
class ValidationReport:
    is_valid: bool
    errors: List[str]
    issues: List[QtiError] = field(default_factory=list)
    item_refs: Optional[List[ResolvedItemRef]] = None

    def kinds(self) -> List[str]:
        return [issue.kind for issue in self.issues]
