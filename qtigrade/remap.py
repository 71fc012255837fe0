"""
Map a result file's itemResult identifiers onto assessment item identifiers.

Result files come from many tools. Modern exports carry a sequenceIndex;
some reuse the item identifiers; legacy ones number items Q1, Q2, ... So
each entry is run through an ordered list of resolvers and the first one
that answers wins:

  1. by_sequence_index   sequenceIndex N in 1..item count -> Nth item ref
  2. by_identifier       result identifier equals an item identifier
  (  by_mapping          legacy mapping CSV, only when one is supplied   )
  3. by_q_number         Q<N> (any case) -> Nth item ref

Nothing here raises. Entries nobody could place and items claimed twice
are returned as data; the caller decides whether that is fatal.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set, Tuple

from qtigrade.common import WorkspaceError
from qtigrade.mapping_csv import MappingTable
from qtigrade.models import AssessmentItemRef, QtiItemResult, QtiResult, RemapResult

RE_Q_NUMBER = re.compile(r"^q(\d+)$", flags=re.IGNORECASE)


@dataclass
class RemapContext:
    item_refs: Sequence[AssessmentItemRef]
    identifiers: Set[str]
    mapping: Optional[MappingTable] = None

    def by_position(self, position: Optional[int]) -> Optional[str]:
        if position is None or not 1 <= position <= len(self.item_refs):
            return None
        return self.item_refs[position - 1].identifier


Resolver = Callable[[QtiItemResult, RemapContext], Optional[str]]


def by_sequence_index(entry: QtiItemResult, ctx: RemapContext) -> Optional[str]:
    return ctx.by_position(entry.sequence_index)


def by_identifier(entry: QtiItemResult, ctx: RemapContext) -> Optional[str]:
    if entry.result_identifier in ctx.identifiers:
        return entry.result_identifier
    return None


def by_mapping(entry: QtiItemResult, ctx: RemapContext) -> Optional[str]:
    if ctx.mapping is None:
        return None
    target = ctx.mapping.result_to_item.get(entry.result_identifier)
    return target if target in ctx.identifiers else None


def by_q_number(entry: QtiItemResult, ctx: RemapContext) -> Optional[str]:
    m = RE_Q_NUMBER.match(entry.result_identifier.strip())
    if not m:
        return None
    return ctx.by_position(int(m.group(1)))


REMAP_TIERS: Tuple[Resolver, ...] = (by_sequence_index, by_identifier, by_q_number)
REMAP_TIERS_WITH_MAPPING: Tuple[Resolver, ...] = (by_sequence_index, by_identifier, by_mapping, by_q_number)


def canonical_identifier(entry: QtiItemResult, ctx: RemapContext, tiers: Sequence[Resolver]) -> Optional[str]:
    for resolve in tiers:
        found = resolve(entry, ctx)
        if found is not None:
            return found
    return None


def remap_result(
    result: QtiResult,
    item_refs: Sequence[AssessmentItemRef],
    mapping: Optional[MappingTable] = None,
) -> RemapResult:
    ctx = RemapContext(
        item_refs=item_refs,
        identifiers={ref.identifier for ref in item_refs},
        mapping=mapping,
    )
    tiers = REMAP_TIERS if mapping is None else REMAP_TIERS_WITH_MAPPING

    out = RemapResult()
    for entry in result.iter_entries():
        target = canonical_identifier(entry, ctx, tiers)
        if target is None:
            out.missing_result_identifiers.append(entry.result_identifier)
            continue
        if target in out.mapped_item_results:
            if target not in out.duplicate_item_identifiers:
                out.duplicate_item_identifiers.append(target)
            continue
        out.mapped_item_results[target] = entry
    return out


def require_clean_remap(result: QtiResult, remap: RemapResult) -> None:
    """Load-time policy: any unplaced entry or doubly claimed item rejects the file."""
    problems: List[str] = []
    if remap.missing_result_identifiers:
        problems.append(
            f"result identifiers with no matching item in the assessment test ({result.file_name}): "
            f"{', '.join(remap.missing_result_identifiers)}"
        )
    if remap.duplicate_item_identifiers:
        problems.append(
            f"more than one result is assigned to the same item ({result.file_name}): "
            f"{', '.join(remap.duplicate_item_identifiers)}"
        )
    if problems:
        raise WorkspaceError("; ".join(problems))


def remapped(result: QtiResult, remap: RemapResult) -> QtiResult:
    """A copy of result whose item_results are keyed by item identifier."""
    entries = list(remap.mapped_item_results.values())
    return QtiResult(
        file_name=result.file_name,
        sourced_id=result.sourced_id,
        candidate_name=result.candidate_name,
        item_results=dict(remap.mapped_item_results),
        entries=entries,
    )
