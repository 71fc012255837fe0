"""
Parse a QTI 3.0 item into what grading needs: identifier, title, kind of
item, choices and the scorer rubric.

Rubric criteria live in the scorer-view rubric block, one `qti-p` per line:

  <qti-rubric-block view="scorer">
    <qti-p>[2] Names the prime number</qti-p>
    <qti-p>[1] Explains why</qti-p>
  </qti-rubric-block>

Criteria have no identifier of their own; they are addressed by their
1-based position, which is also the N in the RUBRIC_<N>_MET outcome of a
result file.
"""

from __future__ import annotations
import re
from typing import List, Optional
import xml.etree.ElementTree as ET

from qtigrade.common import (
    MalformedDocument,
    find_all_local,
    first_local,
    local_name,
    parse_xml,
    text_content,
)
from qtigrade.models import Choice, QtiItem, RubricCriterion

RE_RUBRIC_LINE = re.compile(r"^\[([\d.]+)\]\s+(.+)$", flags=re.DOTALL)
RE_SPACES = re.compile(r"\s+")

CHOICE_INTERACTION = "qti-choice-interaction"
TEXT_ENTRY_INTERACTION = "qti-text-entry-interaction"
RUBRIC_BLOCK = "qti-rubric-block"


def infer_item_type(body: ET.Element) -> str:
    """choice > cloze > descriptive, from the interactions actually present."""
    if first_local(body, CHOICE_INTERACTION) is not None:
        return "choice"
    if first_local(body, TEXT_ENTRY_INTERACTION) is not None:
        return "cloze"
    return "descriptive"


def _rubric_block(body: ET.Element, view: str) -> Optional[ET.Element]:
    for block in find_all_local(body, RUBRIC_BLOCK):
        if block.get("view") == view:
            return block
    return None


def _to_points(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        # "1.2.3" and friends; scoring treats non-finite points as 0
        return float("nan")


def parse_rubric(body: ET.Element) -> List[RubricCriterion]:
    scorer = _rubric_block(body, "scorer")
    if scorer is None:
        return []
    criteria: List[RubricCriterion] = []
    for line in find_all_local(scorer, "qti-p"):
        text = text_content(line).strip()
        m = RE_RUBRIC_LINE.match(text)
        if not m:
            continue
        criteria.append(RubricCriterion(
            index=len(criteria) + 1,
            points=_to_points(m.group(1)),
            text=m.group(2).strip(),
        ))
    return criteria


def parse_candidate_explanation(body: ET.Element) -> Optional[str]:
    block = _rubric_block(body, "candidate")
    if block is None:
        return None
    lines = [_squash(text_content(p)) for p in find_all_local(block, "qti-p")]
    return "\n".join(line for line in lines if line)


def _squash(text: str) -> str:
    return RE_SPACES.sub(" ", text).strip()


def _prompt_parts(elem: ET.Element, out: List[str]) -> None:
    if local_name(elem.tag) == RUBRIC_BLOCK:
        return
    if local_name(elem.tag) == TEXT_ENTRY_INTERACTION:
        out.append(" ____ ")
    elif elem.text:
        out.append(elem.text)
    for child in elem:
        _prompt_parts(child, out)
        if child.tail:
            out.append(child.tail)


def prompt_text(body: ET.Element) -> str:
    """Plain text of the item body without rubric blocks; blanks become ____."""
    parts: List[str] = []
    _prompt_parts(body, parts)
    return _squash("".join(parts))


def parse_item(xml: str) -> QtiItem:
    root = parse_xml(xml, "item")
    identifier = (root.get("identifier") or "").strip()
    body = first_local(root, "qti-item-body")
    if body is None:
        raise MalformedDocument(f"qti-item-body not found in item {identifier or '(no identifier)'}")

    item_type = infer_item_type(body)
    choices: List[Choice] = []
    if item_type == "choice":
        for node in find_all_local(body, "qti-simple-choice"):
            choices.append(Choice(
                identifier=node.get("identifier") or "",
                text=_squash(text_content(node)),
            ))

    return QtiItem(
        identifier=identifier,
        title=root.get("title") or identifier,
        type=item_type,
        prompt_text=prompt_text(body),
        choices=choices,
        rubric=parse_rubric(body),
        candidate_explanation=parse_candidate_explanation(body),
    )
