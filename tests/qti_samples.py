"""XML builders shared by the tests."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

# Repo root on sys.path so "qtigrade.*" imports work when running pytest at repo root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

SAMPLES_ROOT = REPO_ROOT / "samples"

QTI_NS = "http://www.imsglobal.org/xsd/imsqti_v3p0"
RESULT_NS = "http://www.imsglobal.org/xsd/imsqti_result_v3p0"


def make_item_xml(identifier: str, rubric: Sequence[str] = (), body: str = "<qti-p>Answer the question.</qti-p>") -> str:
    rubric_block = ""
    if rubric:
        lines = "".join(f"<qti-p>{line}</qti-p>" for line in rubric)
        rubric_block = f'<qti-rubric-block view="scorer">{lines}</qti-rubric-block>'
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<qti-assessment-item xmlns="{QTI_NS}" identifier="{identifier}" title="{identifier}">
  <qti-item-body>{body}{rubric_block}</qti-item-body>
</qti-assessment-item>"""


def make_assessment_test_xml(refs: Sequence[Tuple[str, str]]) -> str:
    lines = "\n      ".join(
        f'<qti-assessment-item-ref identifier="{identifier}" href="{href}"/>' for identifier, href in refs
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<qti-assessment-test xmlns="{QTI_NS}" identifier="assessment-test" title="Assessment Test">
  <qti-test-part identifier="part-1" navigation-mode="linear" submission-mode="individual">
    <qti-assessment-section identifier="section-1" title="Section 1" visible="true">
      {lines}
    </qti-assessment-section>
  </qti-test-part>
</qti-assessment-test>"""


def make_result_xml(
    entries: Sequence[Tuple[str, Optional[object]]],
    sourced_id: str = "candidate-1",
    outcomes: Optional[Dict[str, Dict[str, str]]] = None,
) -> str:
    """entries: (identifier, sequenceIndex or None); outcomes: identifier -> {outcome id: value}."""
    outcomes = outcomes or {}
    parts: List[str] = []
    for identifier, seq in entries:
        seq_attr = f' sequenceIndex="{seq}"' if seq is not None else ""
        ovs = "".join(
            f'<outcomeVariable identifier="{oid}" cardinality="single"><value>{value}</value></outcomeVariable>'
            for oid, value in outcomes.get(identifier, {}).items()
        )
        parts.append(f'<itemResult identifier="{identifier}"{seq_attr} sessionStatus="final">{ovs}</itemResult>')
    body = "\n  ".join(parts)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<assessmentResult xmlns="{RESULT_NS}">
  <context sourcedId="{sourced_id}"/>
  {body}
</assessmentResult>"""


def two_item_package(test_path: str = "qti/assessment-test.qti.xml") -> Tuple[str, Dict[str, str]]:
    """Assessment test at test_path referencing items/item-1 and items/item-2 beside it."""
    test_xml = make_assessment_test_xml([
        ("item-1", "items/item-1.qti.xml"),
        ("item-2", "items/item-2.qti.xml"),
    ])
    base = test_path.rsplit("/", 1)[0] + "/" if "/" in test_path else ""
    files = {
        test_path: test_xml,
        f"{base}items/item-1.qti.xml": make_item_xml("item-1"),
        f"{base}items/item-2.qti.xml": make_item_xml("item-2"),
    }
    return test_xml, files
