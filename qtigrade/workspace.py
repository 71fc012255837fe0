"""
A grading workspace: one QTI package plus the result files graded against it.

Described by a YAML manifest:

  name: Midterm 2026
  description: Section B
  package_root: assessment                 # default: assessment
  assessment_test: assessment-test.qti.xml # default: auto-detect
  results:
    - results/*.xml
  mapping_csv: mapping.csv                 # optional, legacy uploads only

Creating a workspace runs the full consistency check once and refuses the
upload on any problem. Loading it afterwards only re-derives what the
grading screens show: items in assessment order, and each result with its
entries keyed by item identifier.
"""

from __future__ import annotations
import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from jsonschema import Draft202012Validator

from qtigrade.assessment import parse_assessment_test
from qtigrade.common import IdentifierMismatch, QtiError, WorkspaceError, load_schema, schema_errors
from qtigrade.hrefs import BasenameIndex, resolve_item_path
from qtigrade.items import parse_item
from qtigrade.mapping_csv import MappingTable, load_mapping_csv
from qtigrade.models import QtiItem, QtiResult, ResolvedItemRef, ValidationReport
from qtigrade.remap import remap_result, remapped, require_clean_remap
from qtigrade.results import parse_result
from qtigrade.validate_package import (
    ResultFile,
    collect_package_files,
    expand_globs,
    find_assessment_test,
    read_result_files,
    validate_consistency,
)

MANIFEST_SCHEMA = "workspace.schema.json"
DEFAULT_PACKAGE_ROOT = "assessment"


@dataclass
class Workspace:
    name: str
    base_dir: Path
    package_root: Path
    assessment_test: str
    files: Dict[str, str]
    result_paths: List[Path]
    description: str = ""
    mapping: Optional[MappingTable] = None
    item_refs: Optional[List[ResolvedItemRef]] = None

    def result_files(self) -> List[ResultFile]:
        return read_result_files(self.result_paths)

    def result_path(self, file_name: str) -> Path:
        for p in self.result_paths:
            if p.name == file_name:
                return p
        raise WorkspaceError(f"result file not in workspace: {file_name}")


@dataclass
class LoadedWorkspace:
    workspace: Workspace
    item_refs: List[ResolvedItemRef]
    items: List[QtiItem]
    results: List[QtiResult] = field(default_factory=list)

    def result(self, file_name: str) -> QtiResult:
        for r in self.results:
            if r.file_name == file_name:
                return r
        raise WorkspaceError(f"result file not in workspace: {file_name}")

    def items_by_id(self) -> Dict[str, QtiItem]:
        return {item.identifier: item for item in self.items}


# ---------------- Manifest ----------------

def load_manifest(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise WorkspaceError(f"workspace manifest not found: {path}") from e
    except yaml.YAMLError as e:
        raise WorkspaceError(f"workspace manifest is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise WorkspaceError("workspace manifest must be a single mapping")

    errors = schema_errors(Draft202012Validator(load_schema(MANIFEST_SCHEMA)), data)
    if errors:
        raise WorkspaceError(f"workspace manifest is invalid: {path}", errors)
    return data


def open_workspace(manifest_path: Path) -> Workspace:
    """Read everything the manifest points at. No consistency checks."""
    manifest_path = Path(manifest_path)
    data = load_manifest(manifest_path)
    base = manifest_path.parent

    package_root = base / data.get("package_root", DEFAULT_PACKAGE_ROOT)
    if not package_root.is_dir():
        raise WorkspaceError(f"package directory not found: {package_root}")
    files = collect_package_files(package_root)

    test_path = data.get("assessment_test") or find_assessment_test(files)
    if not test_path:
        raise WorkspaceError(f"could not find a single assessment test in {package_root}")
    if test_path not in files:
        raise WorkspaceError(f"assessment test not found in package: {test_path}")

    result_paths = expand_globs(data["results"], base)
    missing = [str(p) for p in result_paths if not p.exists()]
    if missing:
        raise WorkspaceError("result files not found", [f"result file not found: {m}" for m in missing])
    if not result_paths:
        raise WorkspaceError("no result files matched the manifest")

    mapping = None
    if data.get("mapping_csv"):
        mapping = load_mapping_csv(base / data["mapping_csv"])

    return Workspace(
        name=data["name"],
        description=data.get("description", ""),
        base_dir=base,
        package_root=package_root,
        assessment_test=test_path,
        files=files,
        result_paths=result_paths,
        mapping=mapping,
    )


# ---------------- Create / load ----------------

def check_workspace(workspace: Workspace) -> ValidationReport:
    return validate_consistency(
        workspace.assessment_test,
        workspace.files[workspace.assessment_test],
        workspace.files,
        workspace.result_files(),
    )


def create_workspace(manifest_path: Path) -> Workspace:
    """Open and fully validate; raises WorkspaceError carrying every problem."""
    workspace = open_workspace(manifest_path)
    validation = check_workspace(workspace)
    if not validation.is_valid:
        raise WorkspaceError(
            f"workspace {workspace.name!r} failed validation ({len(validation.errors)} problems)",
            validation.errors,
        )
    workspace.item_refs = validation.item_refs
    return workspace


def load_items(workspace: Workspace) -> List[Tuple[ResolvedItemRef, QtiItem]]:
    """(resolved ref, parsed item) pairs in assessment order."""
    refs = parse_assessment_test(workspace.files[workspace.assessment_test])
    index = BasenameIndex(workspace.files.keys())
    loaded = []
    for ref in refs:
        path = resolve_item_path(workspace.assessment_test, ref.href, workspace.files, index)
        item = parse_item(workspace.files[path])
        if item.identifier != ref.identifier:
            raise IdentifierMismatch(
                f"assessment test identifier does not match item identifier: {ref.identifier} != {item.identifier}"
            )
        loaded.append((ResolvedItemRef(ref.identifier, ref.href, path), item))
    return loaded


def load_workspace(manifest_path: Path) -> LoadedWorkspace:
    workspace = open_workspace(manifest_path)
    pairs = load_items(workspace)
    item_refs = [ref for ref, _ in pairs]

    results: List[QtiResult] = []
    for name, xml in workspace.result_files():
        result = parse_result(xml, name)
        remap = remap_result(result, item_refs, workspace.mapping)
        require_clean_remap(result, remap)
        results.append(remapped(result, remap))

    workspace.item_refs = item_refs
    return LoadedWorkspace(
        workspace=workspace,
        item_refs=item_refs,
        items=[item for _, item in pairs],
        results=results,
    )


def main(argv: List[str]) -> int:
    ap = argparse.ArgumentParser(argument_default=None)
    ap.add_argument("manifest", help="Path to workspace.yaml")
    args = ap.parse_args(argv)

    manifest_path = Path(args.manifest)
    try:
        create_workspace(manifest_path)
        loaded = load_workspace(manifest_path)
    except WorkspaceError as e:
        print(f"{manifest_path}: FAIL")
        for msg in e.errors:
            print(f"  - {msg}")
        return 1
    except QtiError as e:
        print(f"{manifest_path}: FAIL")
        print(f"  - {e}")
        return 1

    print(f"{manifest_path}: OK  ({len(loaded.items)} items, {len(loaded.results)} results)")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
