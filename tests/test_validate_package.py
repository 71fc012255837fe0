# tests/test_validate_package.py
from __future__ import annotations

import pytest

from qti_samples import (
    RESULT_NS,
    SAMPLES_ROOT,
    make_assessment_test_xml,
    make_item_xml,
    make_result_xml,
    two_item_package,
)
from qtigrade.validate_package import (
    collect_package_files,
    find_assessment_test,
    main,
    validate_consistency,
)

TEST_PATH = "qti/assessment-test.qti.xml"


def _validate(test_xml, files, results=()):
    return validate_consistency(TEST_PATH, test_xml, files, list(results))


def test_clean_package_is_valid():
    test_xml, files = two_item_package(TEST_PATH)
    validation = _validate(test_xml, files, [("r1.xml", make_result_xml([("Q1", 1), ("Q2", 2)]))])
    assert validation.is_valid
    assert validation.errors == []
    assert [(r.identifier, r.resolved_href) for r in validation.item_refs] == [
        ("item-1", "qti/items/item-1.qti.xml"),
        ("item-2", "qti/items/item-2.qti.xml"),
    ]


def test_duplicate_ref_identifiers():
    test_xml = make_assessment_test_xml([
        ("item-1", "items/item-1.qti.xml"),
        ("item-1", "items/item-2.qti.xml"),
    ])
    _, files = two_item_package(TEST_PATH)
    validation = _validate(test_xml, files)
    assert not validation.is_valid
    assert "DuplicateIdentifier" in validation.kinds()
    assert validation.item_refs is None


def _three_item_package():
    refs = [(f"item-{n}", f"items/item-{n}.qti.xml") for n in (1, 2, 3)]
    test_xml = make_assessment_test_xml(refs)
    files = {TEST_PATH: test_xml}
    for identifier, href in refs:
        files[f"qti/{href}"] = make_item_xml(identifier)
    return test_xml, files


@pytest.mark.parametrize("missing", [1, 2, 3])
def test_missing_sequence_slot_names_the_slot(missing: int):
    test_xml, files = _three_item_package()
    entries = [(f"Q{n}", n) for n in (1, 2, 3) if n != missing]
    validation = _validate(test_xml, files, [("r1.xml", make_result_xml(entries))])
    assert validation.kinds() == ["MissingSequenceSlot"]
    assert f"sequenceIndex={missing}" in validation.errors[0]
    assert "r1.xml" in validation.errors[0]


def test_entry_without_identifier_does_not_hide_sequence_problems():
    test_xml, files = two_item_package(TEST_PATH)
    result = (
        f'<assessmentResult xmlns="{RESULT_NS}">'
        '<itemResult sequenceIndex="1"/>'
        '<itemResult identifier="Q2" sequenceIndex="9"/>'
        "</assessmentResult>"
    )
    validation = _validate(test_xml, files, [("r1.xml", result)])
    assert sorted(validation.kinds()) == ["MissingAttribute", "MissingSequenceSlot", "SequenceOutOfRange"]
    assert all("r1.xml" in msg for msg in validation.errors)
    assert any("sequenceIndex=2" in msg for msg in validation.errors)


@pytest.mark.parametrize("entries, kind", [
    ([("Q1", 1), ("Q2", 3)], "SequenceOutOfRange"),
    ([("Q1", 1), ("Q2", "two")], "SequenceOutOfRange"),
    ([("Q1", 1), ("Q2", 1)], "DuplicateSequenceIndex"),
    ([("Q1", 1), ("Q2", None)], "MissingAttribute"),
])
def test_bad_sequence_indexes(entries, kind):
    test_xml, files = two_item_package(TEST_PATH)
    validation = _validate(test_xml, files, [("r1.xml", make_result_xml(entries))])
    assert not validation.is_valid
    assert kind in validation.kinds()
    # the slot the bad entry should have filled is reported too
    assert "MissingSequenceSlot" in validation.kinds()


def test_every_problem_is_collected():
    test_xml = make_assessment_test_xml([
        ("item-1", "items/item-1.qti.xml"),
        ("item-2", "items/nope.qti.xml"),
    ])
    _, files = two_item_package(TEST_PATH)
    results = [
        ("r1.xml", make_result_xml([("Q1", 1)])),
        ("r2.xml", "<assessmentResult><broken></assessmentResult>"),
    ]
    validation = _validate(test_xml, files, results)
    assert sorted(validation.kinds()) == ["MalformedDocument", "MissingSequenceSlot", "UnresolvedReference"]
    assert any(msg.endswith(": r2.xml") for msg in validation.errors)


def test_ambiguous_basename_message_names_the_href():
    test_xml = make_assessment_test_xml([("item-1", "item-1.qti.xml")])
    files = {
        TEST_PATH: test_xml,
        "qti/a/item-1.qti.xml": make_item_xml("item-1"),
        "qti/b/item-1.qti.xml": make_item_xml("item-1"),
    }
    validation = _validate(test_xml, files)
    assert validation.kinds() == ["AmbiguousReference"]
    assert "item-1.qti.xml" in validation.errors[0]


def test_basename_fallback_resolves():
    test_xml = make_assessment_test_xml([("item-1", "items/item-1.qti.xml")])
    files = {TEST_PATH: test_xml, "elsewhere/item-1.qti.xml": make_item_xml("item-1")}
    validation = _validate(test_xml, files, [("r1.xml", make_result_xml([("item-1", 1)]))])
    assert validation.is_valid
    assert validation.item_refs[0].resolved_href == "elsewhere/item-1.qti.xml"


def test_identifier_mismatch():
    test_xml = make_assessment_test_xml([("item-1", "items/item-1.qti.xml")])
    files = {TEST_PATH: test_xml, "qti/items/item-1.qti.xml": make_item_xml("something-else")}
    validation = _validate(test_xml, files)
    assert validation.kinds() == ["IdentifierMismatch"]
    assert "item-1 != something-else" in validation.errors[0]


def test_path_escape_is_reported_not_raised():
    test_xml = make_assessment_test_xml([("item-1", "../../item-1.qti.xml")])
    files = {TEST_PATH: test_xml, "item-1.qti.xml": make_item_xml("item-1")}
    validation = _validate(test_xml, files)
    assert validation.kinds() == ["InvalidPath"]


def test_empty_assessment_skips_sequence_checks():
    test_xml = '<qti-assessment-test xmlns="http://www.imsglobal.org/xsd/imsqti_v3p0" identifier="t"/>'
    validation = _validate(test_xml, {TEST_PATH: test_xml}, [("r1.xml", make_result_xml([("Q1", 1)]))])
    assert validation.kinds() == ["EmptyAssessment"]


def test_collect_and_find_assessment_test():
    files = collect_package_files(SAMPLES_ROOT / "basic" / "assessment")
    assert sorted(files) == [
        "assessment-test.qti.xml",
        "items/item-1.qti.xml",
        "items/item-2.qti.xml",
        "items/item-3.qti.xml",
    ]
    assert find_assessment_test(files) == "assessment-test.qti.xml"


def test_find_assessment_test_refuses_to_guess():
    test_xml, files = two_item_package(TEST_PATH)
    files["copy/assessment-test.qti.xml"] = test_xml
    assert find_assessment_test(files) is None


def test_cli_ok(capsys):
    package = SAMPLES_ROOT / "basic" / "assessment"
    results = str(SAMPLES_ROOT / "basic" / "results" / "*.xml")
    assert main([str(package), "--results", results]) == 0
    out = capsys.readouterr().out
    assert "OK" in out
    assert "3 items, 2 result files" in out


def test_cli_fail(tmp_path, capsys):
    test_xml, files = two_item_package("assessment-test.qti.xml")
    for rel, xml in files.items():
        p = tmp_path / "pkg" / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(xml, encoding="utf-8")
    result = tmp_path / "r1.xml"
    result.write_text(make_result_xml([("Q1", 1)]), encoding="utf-8")

    assert main([str(tmp_path / "pkg"), "--results", str(result)]) == 1
    out = capsys.readouterr().out
    assert "FAIL" in out
    assert "sequenceIndex=2" in out


def test_cli_bad_input(tmp_path, capsys):
    assert main([str(tmp_path / "missing")]) == 2
    assert "not found" in capsys.readouterr().err
