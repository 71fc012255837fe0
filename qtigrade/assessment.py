"""
Read the item list out of an assessment test, and the identifier out of an item.

The order of item refs is load-bearing: result entries are matched to items
by position (sequenceIndex, or the legacy Q<N> identifiers), so refs are
returned exactly in document order.
"""

from __future__ import annotations
from typing import List, Optional, Union
import xml.etree.ElementTree as ET

from qtigrade.common import (
    EmptyAssessment,
    MalformedDocument,
    MissingAttribute,
    QtiError,
    local_name,
    parse_xml,
)
from qtigrade.models import AssessmentItemRef

# QTI 3.0 spelling first; 2.x packages still turn up
ASSESSMENT_TEST_TAGS = ("qti-assessment-test", "assessmentTest")
ITEM_REF_TAGS = ("qti-assessment-item-ref", "assessmentItemRef")


def parse_assessment_test(xml: str) -> List[AssessmentItemRef]:
    root = parse_xml(xml, "assessment test")
    if local_name(root.tag) not in ASSESSMENT_TEST_TAGS:
        raise MalformedDocument(
            f"root element must be qti-assessment-test, found {local_name(root.tag) or '(none)'}"
        )

    refs: List[AssessmentItemRef] = []
    for el in root.iter():
        if local_name(el.tag) not in ITEM_REF_TAGS:
            continue
        identifier = (el.get("identifier") or "").strip()
        href = (el.get("href") or "").strip()
        if not identifier or not href:
            # a partial list would shift every later position, so nothing is returned
            raise MissingAttribute(
                f"qti-assessment-item-ref #{len(refs) + 1} has no identifier or href"
            )
        refs.append(AssessmentItemRef(identifier=identifier, href=href))

    if not refs:
        raise EmptyAssessment("assessment test has no qti-assessment-item-ref")
    return refs


def extract_item_identifier(xml: Union[str, ET.Element]) -> Optional[str]:
    """
    Root `identifier` of an item document, whatever its namespace prefix.

    Takes the XML text or an already parsed root element.
    """
    if isinstance(xml, ET.Element):
        root = xml
    else:
        try:
            root = parse_xml(xml, "item")
        except QtiError:
            return None
    identifier = (root.get("identifier") or "").strip()
    return identifier or None


def find_duplicate_identifiers(refs: List[AssessmentItemRef]) -> List[str]:
    """Identifiers seen more than once, each reported once, in order of first repeat."""
    seen = set()
    duplicates: List[str] = []
    for ref in refs:
        if ref.identifier in seen:
            if ref.identifier not in duplicates:
                duplicates.append(ref.identifier)
            continue
        seen.add(ref.identifier)
    return duplicates

