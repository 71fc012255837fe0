#!/usr/bin/env python3
"""
Write a criteria update into a result XML file.

The update is the JSON a grader submits for one result file:

  {
    "resultFile": "assessmentResult-1.xml",
    "items": [
      {"identifier": "item-1",
       "criteria": [{"met": true}, {"met": true}, {"met": false}],
       "comment": "Good start"}
    ]
  }

For each listed item the matching itemResult (found the same way the
grading screens find it, see qtigrade.remap) gets one RUBRIC_<N>_MET
outcome per criterion, a SCORE recomputed from the rubric, and COMMENT
when one is given. `criteria` must cover the whole rubric.

Usage:
  python -m qtigrade.apply_scoring workspace.yaml --scoring update.json [--out PATH | --dry-run]
"""

from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence
import xml.etree.ElementTree as ET

from jsonschema import Draft202012Validator

from qtigrade.common import (
    InvalidScoringUpdate,
    QtiError,
    WorkspaceError,
    children_local,
    find_all_local,
    load_schema,
    namespace_of,
    parse_xml,
    qualify,
    schema_errors,
)
from qtigrade.mapping_csv import MappingTable
from qtigrade.models import AssessmentItemRef, QtiItem
from qtigrade.remap import (
    REMAP_TIERS,
    REMAP_TIERS_WITH_MAPPING,
    RemapContext,
    canonical_identifier,
)
from qtigrade.results import parse_item_result
from qtigrade.scoring import format_number, outcomes_from_criteria, rubric_score
from qtigrade.workspace import load_workspace

UPDATE_SCHEMA = "scoring-update.schema.json"


def load_scoring_update(data: Any) -> Dict[str, Any]:
    errors = schema_errors(Draft202012Validator(load_schema(UPDATE_SCHEMA)), data)
    if errors:
        raise InvalidScoringUpdate("criteria update is invalid: " + "; ".join(errors))
    return data


# ---------------- XML editing ----------------

def set_outcome(item_result: ET.Element, identifier: str, base_type: str, value: str) -> None:
    """Replace or add a single-valued outcomeVariable."""
    ns = namespace_of(item_result.tag)
    for ov in children_local(item_result, "outcomeVariable"):
        if ov.get("identifier") == identifier:
            for child in list(ov):
                ov.remove(child)
            ov.set("baseType", base_type)
            ov.set("cardinality", "single")
            break
    else:
        ov = ET.Element(qualify(ns, "outcomeVariable"), {
            "identifier": identifier,
            "cardinality": "single",
            "baseType": base_type,
        })
        # keep outcomeVariables together, after responses
        existing = children_local(item_result, "outcomeVariable")
        if existing:
            position = list(item_result).index(existing[-1]) + 1
        else:
            position = len(item_result)
        item_result.insert(position, ov)
    ET.SubElement(ov, qualify(ns, "value")).text = value


def index_item_results(
    root: ET.Element,
    item_refs: Sequence[AssessmentItemRef],
    mapping: Optional[MappingTable] = None,
) -> Dict[str, ET.Element]:
    """item identifier -> itemResult element, first match wins."""
    ctx = RemapContext(
        item_refs=item_refs,
        identifiers={ref.identifier for ref in item_refs},
        mapping=mapping,
    )
    tiers = REMAP_TIERS if mapping is None else REMAP_TIERS_WITH_MAPPING
    found: Dict[str, ET.Element] = {}
    for el in find_all_local(root, "itemResult"):
        target = canonical_identifier(parse_item_result(el), ctx, tiers)
        if target is not None and target not in found:
            found[target] = el
    return found


def apply_scoring_update(
    result_xml: str,
    file_name: str,
    item_refs: Sequence[AssessmentItemRef],
    items_by_id: Mapping[str, QtiItem],
    update: Mapping[str, Any],
    mapping: Optional[MappingTable] = None,
) -> str:
    """Return the result document with the update applied. The input is not modified."""
    update = load_scoring_update(update)
    if update["resultFile"] != file_name:
        raise InvalidScoringUpdate(f"update is for {update['resultFile']}, not {file_name}")

    root = parse_xml(result_xml, f"result {file_name}")
    ns = namespace_of(root.tag)
    if ns:
        ET.register_namespace("", ns)
    targets = index_item_results(root, item_refs, mapping)

    for entry in update["items"]:
        identifier = entry["identifier"]
        item = items_by_id.get(identifier)
        if item is None:
            raise InvalidScoringUpdate(f"unknown item identifier: {identifier}")
        el = targets.get(identifier)
        if el is None:
            raise InvalidScoringUpdate(f"no itemResult for {identifier} in {file_name}")

        if "criteria" in entry:
            if not item.rubric:
                raise InvalidScoringUpdate(f"item {identifier} has no rubric criteria")
            outcomes = outcomes_from_criteria(item, entry["criteria"])
            for index, met in sorted(outcomes.items()):
                set_outcome(el, f"RUBRIC_{index}_MET", "boolean", "true" if met else "false")
            set_outcome(el, "SCORE", "float", format_number(rubric_score(item, outcomes)))
        if "comment" in entry:
            set_outcome(el, "COMMENT", "string", entry["comment"])

    return ET.tostring(root, encoding="utf-8", xml_declaration=True).decode("utf-8")


# ---------------- Orchestration ----------------

def main(argv: List[str]) -> int:
    ap = argparse.ArgumentParser(argument_default=None)
    ap.add_argument("manifest", help="Path to workspace.yaml")
    ap.add_argument("--scoring", required=True, help="Criteria update JSON")
    ap.add_argument("--out", default=None, help="Write here instead of replacing the result file")
    ap.add_argument("--dry-run", action="store_true", help="Print the updated XML instead of writing it")
    args = ap.parse_args(argv)

    scoring_path = Path(args.scoring)
    if not scoring_path.exists():
        sys.stderr.write(f"Scoring file not found: {scoring_path}\n")
        return 2
    try:
        update = json.loads(scoring_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        sys.stderr.write(f"Scoring JSON is invalid: {scoring_path}\n{e}\n")
        return 2

    try:
        loaded = load_workspace(Path(args.manifest))
        update = load_scoring_update(update)
        result_path = loaded.workspace.result_path(update["resultFile"])
        updated_xml = apply_scoring_update(
            result_path.read_text(encoding="utf-8"),
            result_path.name,
            loaded.item_refs,
            loaded.items_by_id(),
            update,
            loaded.workspace.mapping,
        )
    except WorkspaceError as e:
        sys.stderr.write(f"{args.manifest}: FAIL\n")
        for msg in e.errors:
            sys.stderr.write(f"  - {msg}\n")
        return 1
    except QtiError as e:
        sys.stderr.write(f"{scoring_path}: FAIL\n  - {e}\n")
        return 1

    if args.dry_run:
        print(updated_xml)
        return 0
    out = Path(args.out) if args.out else result_path
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(updated_xml, encoding="utf-8")
    print(f"Wrote {out} ({len(update['items'])} item{'s' if len(update['items']) != 1 else ''})")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
