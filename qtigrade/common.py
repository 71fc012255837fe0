#!/usr/bin/env python3
"""
Common helpers for qtigrade tools.

Single source of truth for reading QTI 3.0 XML (items, assessment tests and
results) and for the error kinds every tool reports.

QTI exports differ in how they spell namespaces: some use a default
namespace, some a `qti:` prefix, some none at all. Every lookup here is
keyed on the element's *local* name so callers never deal with that.

Typical use:
  from qtigrade.common import parse_xml, iter_local, first_local

  root = parse_xml(xml)
  body = first_local(root, "qti-item-body")
"""

from __future__ import annotations
import json
from pathlib import Path
from typing import Iterator, List, Optional
import xml.etree.ElementTree as ET

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"


# ---------------- Errors ----------------

class QtiError(ValueError):
    """Base class for data problems found in uploaded QTI content."""
    kind = "QtiError"


class MalformedDocument(QtiError):
    kind = "MalformedDocument"


class MissingAttribute(QtiError):
    kind = "MissingAttribute"


class EmptyAssessment(QtiError):
    kind = "EmptyAssessment"


class DuplicateIdentifier(QtiError):
    kind = "DuplicateIdentifier"


class UnresolvedReference(QtiError):
    kind = "UnresolvedReference"


class AmbiguousReference(QtiError):
    kind = "AmbiguousReference"


class IdentifierMismatch(QtiError):
    kind = "IdentifierMismatch"


class SequenceOutOfRange(QtiError):
    kind = "SequenceOutOfRange"


class DuplicateSequenceIndex(QtiError):
    kind = "DuplicateSequenceIndex"


class MissingSequenceSlot(QtiError):
    kind = "MissingSequenceSlot"


class InvalidPath(QtiError):
    """Raised for hrefs that try to leave the package root."""
    kind = "InvalidPath"


class InvalidMapping(QtiError):
    kind = "InvalidMapping"


class InvalidScoringUpdate(QtiError):
    kind = "InvalidScoringUpdate"


class WorkspaceError(QtiError):
    """A workspace that cannot be created or loaded; `errors` lists every reason."""
    kind = "WorkspaceError"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


# ---------------- XML helpers ----------------

def local_name(tag) -> str:
    """'{ns}qti-p' -> 'qti-p'. Comments and PIs have non-string tags."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def parse_xml(xml: str, what: str = "XML") -> ET.Element:
    """Parse a document and return its root, raising MalformedDocument on syntax errors."""
    if isinstance(xml, str):
        # ElementTree refuses str input that still carries an encoding declaration
        data = xml.encode("utf-8")
    else:
        data = xml
    try:
        return ET.fromstring(data)
    except ET.ParseError as e:
        raise MalformedDocument(f"{what} could not be parsed: {e}") from e


def iter_local(elem: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield every descendant (and elem itself) whose local name is `name`, in document order."""
    for el in elem.iter():
        if local_name(el.tag) == name:
            yield el


def find_all_local(elem: ET.Element, name: str) -> List[ET.Element]:
    return list(iter_local(elem, name))


def first_local(elem: ET.Element, name: str) -> Optional[ET.Element]:
    return next(iter_local(elem, name), None)


def children_local(elem: ET.Element, name: str) -> List[ET.Element]:
    """Direct children only."""
    return [c for c in elem if local_name(c.tag) == name]


def text_content(elem: Optional[ET.Element]) -> str:
    """All text below elem, like DOM textContent."""
    if elem is None:
        return ""
    return "".join(elem.itertext())


def namespace_of(tag: str) -> str:
    """'{ns}name' -> 'ns'; '' for un-namespaced tags."""
    if isinstance(tag, str) and tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def qualify(ns: str, name: str) -> str:
    return f"{{{ns}}}{name}" if ns else name


# ---------------- Schemas ----------------

def load_schema(name: str) -> dict:
    """Load one of the JSON schemas shipped in qtigrade/schemas/."""
    path = SCHEMA_DIR / name
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise RuntimeError(f"Schema not found: {path}") from e
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Schema JSON is invalid: {path}\n{e}") from e


def schema_errors(validator, data) -> List[str]:
    """'<location>: <message>' for every violation, in a stable order."""
    errors = sorted(validator.iter_errors(data), key=lambda e: (list(map(str, e.path)), e.message))
    return [f"{'.'.join(str(p) for p in err.path) or '(root)'}: {err.message}" for err in errors]
