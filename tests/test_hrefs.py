# tests/test_hrefs.py
from __future__ import annotations

import pytest

import qti_samples  # noqa: F401  (puts the repo root on sys.path)
from qtigrade.common import AmbiguousReference, InvalidPath, UnresolvedReference
from qtigrade.hrefs import BasenameIndex, resolve_href, resolve_item_path


@pytest.mark.parametrize("base, href, expected", [
    ("qti/assessment-test.qti.xml", "items/item-1.qti.xml", "qti/items/item-1.qti.xml"),
    ("assessment-test.qti.xml", "items/item-1.qti.xml", "items/item-1.qti.xml"),
    ("a/test.xml", "./items/../items/x.xml", "a/items/x.xml"),
    ("qti/sub/test.xml", "../items/x.xml", "qti/items/x.xml"),
    ("qti\\test.xml", "items\\x.xml", "qti/items/x.xml"),
    ("qti/test.xml", "items//x.xml", "qti/items/x.xml"),
])
def test_resolve_href_normalizes(base: str, href: str, expected: str):
    assert resolve_href(base, href) == expected


@pytest.mark.parametrize("base, href", [
    ("assessment-test.qti.xml", "../item.qti.xml"),
    ("qti/test.xml", "../../item.qti.xml"),
    ("qti/test.xml", "items/../../../item.qti.xml"),
    ("test.xml", "/etc/passwd"),
    ("test.xml", "C:/items/item.xml"),
    ("test.xml", ""),
    ("test.xml", "."),
])
def test_resolve_href_rejects_escapes(base: str, href: str):
    with pytest.raises(InvalidPath):
        resolve_href(base, href)


def test_literal_path_wins():
    files = {"qti/items/item-1.qti.xml": "", "other/item-1.qti.xml": ""}
    assert resolve_item_path("qti/test.xml", "items/item-1.qti.xml", files) == "qti/items/item-1.qti.xml"


def test_basename_fallback_finds_the_true_path():
    files = {"assessment-test.qti.xml": "", "items/item-1.qti.xml": ""}
    assert resolve_item_path("assessment-test.qti.xml", "item-1.qti.xml", files) == "items/item-1.qti.xml"


def test_basename_fallback_when_folder_was_flattened():
    files = {"qti/test.xml": "", "qti/item-1.qti.xml": ""}
    assert resolve_item_path("qti/test.xml", "items/item-1.qti.xml", files) == "qti/item-1.qti.xml"


def test_ambiguous_basename_is_not_guessed():
    files = {"a/item-1.qti.xml": "", "b/item-1.qti.xml": ""}
    with pytest.raises(AmbiguousReference) as exc:
        resolve_item_path("assessment-test.qti.xml", "item-1.qti.xml", files)
    assert "item-1.qti.xml" in str(exc.value)


def test_unknown_basename_is_unresolved():
    with pytest.raises(UnresolvedReference) as exc:
        resolve_item_path("test.xml", "items/missing.qti.xml", {"items/item-1.qti.xml": ""})
    assert "items/missing.qti.xml" in str(exc.value)


def test_traversal_is_raised_even_with_fallback_candidates():
    with pytest.raises(InvalidPath):
        resolve_item_path("test.xml", "../item-1.qti.xml", {"item-1.qti.xml": ""})


def test_basename_index_tracks_repeats():
    index = BasenameIndex(["a/x.xml", "b/x.xml", "c/x.xml", "d/y.xml"])
    assert index.ambiguous == {"x.xml"}
    assert index.unique == {"y.xml": "d/y.xml"}
    assert index.lookup("anything/y.xml") == "d/y.xml"
