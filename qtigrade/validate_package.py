#!/usr/bin/env python3
"""
Check that a QTI 3.0 package and its result files agree with each other.

Checks (all of them run; every problem is reported, not just the first):
  - the assessment test parses and lists at least one item ref
  - item ref identifiers are unique
  - every href resolves to exactly one package file (literal path, else a
    unique basename)
  - each resolved item declares the identifier its ref declares
  - every itemResult of every result file has a sequenceIndex in
    1..item count, no sequenceIndex repeats, and none is missing

Usage:
  python -m qtigrade.validate_package PACKAGE_DIR [--assessment-test REL] [--results GLOBS...]

Examples:
  python -m qtigrade.validate_package upload/qti --results "upload/results/*.xml"
  python -m qtigrade.validate_package upload/qti --assessment-test assessment-test.qti.xml
"""

from __future__ import annotations
import argparse
import glob
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from qtigrade.assessment import (
    ASSESSMENT_TEST_TAGS,
    extract_item_identifier,
    find_duplicate_identifiers,
    parse_assessment_test,
)
from qtigrade.common import (
    DuplicateIdentifier,
    DuplicateSequenceIndex,
    IdentifierMismatch,
    MissingAttribute,
    MissingSequenceSlot,
    QtiError,
    SequenceOutOfRange,
    local_name,
    parse_xml,
)
from qtigrade.hrefs import BasenameIndex, resolve_item_path
from qtigrade.models import AssessmentItemRef, ResolvedItemRef, ResultItemRef, ValidationReport
from qtigrade.results import parse_result_item_refs

ResultFile = Tuple[str, str]  # (file name, xml)


# ---------------- Item refs ----------------

def resolve_item_refs(
    assessment_test_path: str,
    refs: List[AssessmentItemRef],
    assessment_files: Mapping[str, str],
) -> Tuple[List[ResolvedItemRef], List[QtiError]]:
    resolved: List[ResolvedItemRef] = []
    issues: List[QtiError] = []
    index = BasenameIndex(assessment_files.keys())

    for ref in refs:
        try:
            path = resolve_item_path(assessment_test_path, ref.href, assessment_files, index)
        except QtiError as e:
            issues.append(e)
            continue

        xml = assessment_files[path]
        try:
            root = parse_xml(xml, f"item {ref.href}")
        except QtiError as e:
            issues.append(e)
            continue
        item_identifier = extract_item_identifier(root)
        if not item_identifier:
            issues.append(MissingAttribute(f"item XML has no identifier: {ref.href}"))
            continue
        if item_identifier != ref.identifier:
            issues.append(IdentifierMismatch(
                f"assessment test identifier does not match item identifier: {ref.identifier} != {item_identifier}"
            ))
            continue
        resolved.append(ResolvedItemRef(identifier=ref.identifier, href=ref.href, resolved_href=path))
    return resolved, issues


# ---------------- Result files ----------------

def check_sequence_indexes(result_name: str, refs: Sequence[ResultItemRef], item_count: int) -> List[QtiError]:
    """Every slot 1..item_count exactly once."""
    issues: List[QtiError] = []
    seen: Set[int] = set()
    for ref in refs:
        if not ref.has_sequence_index:
            issues.append(MissingAttribute(
                f"itemResult needs a sequenceIndex: {result_name} ({ref.identifier})"
            ))
            continue
        if ref.sequence_index is None:
            issues.append(SequenceOutOfRange(
                f"sequenceIndex is not a positive integer: {result_name} ({ref.identifier}: {ref.raw_sequence_index!r})"
            ))
            continue
        if ref.sequence_index > item_count:
            issues.append(SequenceOutOfRange(
                f"sequenceIndex exceeds the number of items in the assessment test: "
                f"{result_name} ({ref.identifier}: {ref.sequence_index} > {item_count})"
            ))
            continue
        if ref.sequence_index in seen:
            issues.append(DuplicateSequenceIndex(
                f"sequenceIndex is used more than once: {result_name} ({ref.sequence_index})"
            ))
            continue
        seen.add(ref.sequence_index)

    for slot in range(1, item_count + 1):
        if slot not in seen:
            issues.append(MissingSequenceSlot(
                f"no itemResult with sequenceIndex={slot}: {result_name}"
            ))
    return issues


def check_result_file(name: str, xml: str, item_count: int) -> List[QtiError]:
    try:
        refs, issues = parse_result_item_refs(xml)
    except QtiError as e:
        return [type(e)(f"{e}: {name}")]
    issues = [type(issue)(f"{issue}: {name}") for issue in issues]
    if item_count == 0 or not refs:
        return issues
    return issues + check_sequence_indexes(name, refs, item_count)


# ---------------- Orchestration ----------------

def validate_consistency(
    assessment_test_path: str,
    assessment_test_xml: str,
    assessment_files: Mapping[str, str],
    result_files: Iterable[ResultFile],
) -> ValidationReport:
    """
    Run every check and collect the problems.

    Never raises for bad content; `item_refs` is only filled in when there
    were no problems at all.
    """
    issues: List[QtiError] = []
    try:
        refs = parse_assessment_test(assessment_test_xml)
    except QtiError as e:
        issues.append(e)
        refs = []

    duplicates = find_duplicate_identifiers(refs)
    if duplicates:
        issues.append(DuplicateIdentifier(
            f"assessment test identifiers are duplicated: {', '.join(duplicates)}"
        ))

    resolved, ref_issues = resolve_item_refs(assessment_test_path, refs, assessment_files)
    issues.extend(ref_issues)

    item_count = len(refs)
    for name, xml in result_files:
        issues.extend(check_result_file(name, xml, item_count))

    errors = [str(issue) for issue in issues]
    return ValidationReport(
        is_valid=not errors,
        errors=errors,
        issues=issues,
        item_refs=resolved if not errors else None,
    )


# ---------------- Files on disk ----------------

def collect_package_files(root: Path) -> Dict[str, str]:
    """Every *.xml below root, keyed by POSIX path relative to root."""
    files: Dict[str, str] = {}
    for p in sorted(root.rglob("*.xml")):
        if p.is_file():
            files[p.relative_to(root).as_posix()] = p.read_text(encoding="utf-8")
    return files


def find_assessment_test(files: Mapping[str, str]) -> Optional[str]:
    """The one package file whose root is an assessment test, if there is exactly one."""
    found: List[str] = []
    for path, xml in files.items():
        try:
            root = parse_xml(xml)
        except QtiError:
            continue
        if local_name(root.tag) in ASSESSMENT_TEST_TAGS:
            found.append(path)
    return found[0] if len(found) == 1 else None


def expand_globs(patterns: List[str], base: Optional[Path] = None) -> List[Path]:
    base = base or Path()
    files: List[Path] = []
    for pat in patterns:
        if any(ch in pat for ch in "*?[]"):
            # Path.glob rejects absolute patterns
            files.extend(Path(p) for p in sorted(glob.glob(str(base / pat))))
        else:
            files.append(base / pat)
    uniq: List[Path] = []
    seen = set()
    for p in files:
        if p.is_dir():
            continue
        rp = p.resolve()
        if rp not in seen:
            seen.add(rp)
            uniq.append(p)
    return uniq


def read_result_files(paths: List[Path]) -> List[ResultFile]:
    return [(p.name, p.read_text(encoding="utf-8")) for p in paths]


def report(label: str, validation: ValidationReport, result_count: int) -> int:
    if validation.is_valid:
        n = len(validation.item_refs or [])
        print(f"{label}: OK  ({n} item{'s' if n != 1 else ''}, {result_count} result file{'s' if result_count != 1 else ''})")
        return 0
    print(f"{label}: FAIL")
    for msg in validation.errors:
        print(f"  - {msg}")
    return 1


def main(argv: List[str]) -> int:
    parser = argparse.ArgumentParser(argument_default=None)
    parser.add_argument("package", help="Directory holding the assessment test and item XML files")
    parser.add_argument("--assessment-test", default=None,
                        help="Assessment test path relative to the package (default: auto-detect)")
    parser.add_argument("--results", nargs="*", default=[], help="Result XML files or globs")
    args = parser.parse_args(argv)

    root = Path(args.package)
    if not root.is_dir():
        sys.stderr.write(f"Package directory not found: {root}\n")
        return 2

    files = collect_package_files(root)
    test_path = args.assessment_test or find_assessment_test(files)
    if not test_path:
        sys.stderr.write("Could not find a single assessment test; pass --assessment-test\n")
        return 2
    if test_path not in files:
        sys.stderr.write(f"Assessment test not found in package: {test_path}\n")
        return 2

    result_paths = expand_globs(args.results)
    missing = [p for p in result_paths if not p.exists()]
    if missing:
        for p in missing:
            sys.stderr.write(f"Result file not found: {p}\n")
        return 2

    validation = validate_consistency(test_path, files[test_path], files, read_result_files(result_paths))
    return report(f"{root}/{test_path}", validation, len(result_paths))


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
