"""
Parse QTI 3.0 result documents (one candidate, one attempt).

  <assessmentResult>
    <context sourcedId="candidate-1">
      <sessionIdentifier sourceID="candidateName" identifier="Alice"/>
    </context>
    <itemResult identifier="Q1" sequenceIndex="1">
      <responseVariable identifier="RESPONSE">
        <candidateResponse><value>...</value></candidateResponse>
      </responseVariable>
      <outcomeVariable identifier="SCORE"><value>2</value></outcomeVariable>
      <outcomeVariable identifier="COMMENT"><value>...</value></outcomeVariable>
      <outcomeVariable identifier="RUBRIC_1_MET"><value>true</value></outcomeVariable>
    </itemResult>
  </assessmentResult>

itemResult identifiers are whatever the exporting tool chose; turning them
into assessment item identifiers is the job of qtigrade.remap.
"""

from __future__ import annotations
import re
from typing import Dict, List, Optional, Tuple
import xml.etree.ElementTree as ET

from qtigrade.common import (
    MalformedDocument,
    MissingAttribute,
    QtiError,
    find_all_local,
    first_local,
    parse_xml,
    text_content,
)
from qtigrade.models import QtiItemResult, QtiResult, Response, ResultItemRef

RE_RUBRIC_OUTCOME = re.compile(r"^RUBRIC_(\d+)_MET$")
RE_POSITIVE_INT = re.compile(r"^\d+$")


def parse_sequence_index(raw: Optional[str]) -> Optional[int]:
    """'3' -> 3. Anything that is not a positive integer -> None."""
    if raw is None:
        return None
    raw = raw.strip()
    if not RE_POSITIVE_INT.match(raw):
        return None
    value = int(raw)
    return value if value > 0 else None


def _outcome(item_result: ET.Element, identifier: str) -> Optional[ET.Element]:
    for ov in find_all_local(item_result, "outcomeVariable"):
        if ov.get("identifier") == identifier:
            return ov
    return None


def _first_value(var: Optional[ET.Element]) -> Optional[str]:
    if var is None:
        return None
    value = first_local(var, "value")
    if value is None:
        return None
    return text_content(value)


def _parse_response(item_result: ET.Element) -> Response:
    for rv in find_all_local(item_result, "responseVariable"):
        if rv.get("identifier") != "RESPONSE":
            continue
        candidate = first_local(rv, "candidateResponse")
        if candidate is None:
            return None
        values = [text_content(v) for v in find_all_local(candidate, "value")]
        if len(values) == 1:
            return values[0]
        if len(values) > 1:
            return values
        return None
    return None


def _parse_score(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def parse_rubric_outcomes(item_result: ET.Element) -> Dict[int, bool]:
    outcomes: Dict[int, bool] = {}
    for ov in find_all_local(item_result, "outcomeVariable"):
        m = RE_RUBRIC_OUTCOME.match(ov.get("identifier") or "")
        if not m:
            continue
        value = (_first_value(ov) or "").strip()
        if value == "true":
            outcomes[int(m.group(1))] = True
        elif value == "false":
            outcomes[int(m.group(1))] = False
    return outcomes


def parse_item_result(item_result: ET.Element) -> QtiItemResult:
    return QtiItemResult(
        result_identifier=item_result.get("identifier") or "",
        response=_parse_response(item_result),
        score=_parse_score(_first_value(_outcome(item_result, "SCORE"))),
        comment=_first_value(_outcome(item_result, "COMMENT")),
        rubric_outcomes=parse_rubric_outcomes(item_result),
        sequence_index=parse_sequence_index(item_result.get("sequenceIndex")),
    )


def parse_result(xml: str, file_name: str) -> QtiResult:
    root = parse_xml(xml, f"result {file_name}")
    context = first_local(root, "context")
    sourced_id = context.get("sourcedId", "") if context is not None else ""
    candidate_name = sourced_id or file_name
    if context is not None:
        for node in find_all_local(context, "sessionIdentifier"):
            if node.get("sourceID") == "candidateName":
                candidate_name = node.get("identifier") or candidate_name
                break

    entries = [parse_item_result(el) for el in find_all_local(root, "itemResult")]
    item_results: Dict[str, QtiItemResult] = {}
    for entry in entries:
        item_results[entry.result_identifier] = entry

    return QtiResult(
        file_name=file_name,
        sourced_id=sourced_id,
        candidate_name=candidate_name,
        item_results=item_results,
        entries=entries,
    )


def parse_result_item_refs(xml: str) -> Tuple[List[ResultItemRef], List[QtiError]]:
    """
    The identifier and sequenceIndex of every itemResult, for validation.

    Only raises MalformedDocument when the document does not parse. A
    result with no itemResult, or an itemResult with no identifier, is
    returned as an issue; the entry is still listed (labelled by position)
    so its sequenceIndex gets checked.
    """
    root = parse_xml(xml, "result")
    nodes = find_all_local(root, "itemResult")
    issues: List[QtiError] = []
    if not nodes:
        issues.append(MalformedDocument("no itemResult found in result XML"))
    refs: List[ResultItemRef] = []
    for position, node in enumerate(nodes, start=1):
        identifier = (node.get("identifier") or "").strip()
        if not identifier:
            issues.append(MissingAttribute(f"itemResult #{position} has no identifier"))
            identifier = f"#{position}"
        raw = node.get("sequenceIndex")
        refs.append(ResultItemRef(
            identifier=identifier,
            sequence_index=parse_sequence_index(raw),
            has_sequence_index=raw is not None,
            raw_sequence_index=raw,
        ))
    return refs, issues
