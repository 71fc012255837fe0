"""
Resolve item hrefs from an assessment test against the files of a package.

Hrefs come from uploaded content, so resolution never leaves the package
root: a leading `..` with nothing left to cancel is an InvalidPath, raised
immediately rather than collected.

When the literal path is not in the package, the item is looked up by
basename. Exports from some tools flatten or rename folders but keep item
file names, so a unique basename is a safe substitute. Two files with the
same basename are never guessed between.
"""

from __future__ import annotations
import posixpath
from typing import Dict, Iterable, List, Optional, Set

from qtigrade.common import AmbiguousReference, InvalidPath, UnresolvedReference


def normalize_separators(path: str) -> str:
    return path.replace("\\", "/")


def base_dir(base_path: str) -> str:
    """Directory part of a package-relative path ('' for files at the root)."""
    base_path = normalize_separators(base_path)
    if "/" not in base_path:
        return ""
    return base_path.rsplit("/", 1)[0]


def resolve_href(base_path: str, href: str) -> str:
    """
    Resolve `href` relative to the document at `base_path`.

    Both are package-relative POSIX paths. Returns the normalised
    package-relative path of the target.
    """
    href = normalize_separators(href or "").strip()
    if not href:
        raise InvalidPath("href is empty")
    if href.startswith("/") or (len(href) >= 2 and href[1] == ":"):
        raise InvalidPath(f"href must be relative to the package: {href}")

    joined = f"{base_dir(base_path)}/{href}"
    parts: List[str] = []
    for seg in joined.split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            if not parts:
                raise InvalidPath(f"href escapes the package root: {href}")
            parts.pop()
            continue
        parts.append(seg)
    if not parts:
        raise InvalidPath(f"href does not name a file: {href}")
    return "/".join(parts)


class BasenameIndex:
    """basename -> path for every basename that occurs exactly once."""

    def __init__(self, paths: Iterable[str]):
        self.unique: Dict[str, str] = {}
        self.ambiguous: Set[str] = set()
        for p in paths:
            base = posixpath.basename(normalize_separators(p))
            if not base:
                continue
            if base in self.ambiguous:
                continue
            if base in self.unique:
                del self.unique[base]
                self.ambiguous.add(base)
                continue
            self.unique[base] = p

    def lookup(self, path: str, href: Optional[str] = None) -> str:
        base = posixpath.basename(normalize_separators(path))
        href = href or path
        if base in self.ambiguous:
            raise AmbiguousReference(f"item referenced by the assessment test is not unique: {href}")
        found = self.unique.get(base)
        if found is None:
            raise UnresolvedReference(f"item referenced by the assessment test is missing: {href}")
        return found


def resolve_item_path(base_path: str, href: str, files: Iterable[str], index: BasenameIndex = None) -> str:
    """
    Find the package file backing `href`.

    The literal resolution wins when it exists; otherwise fall back to a
    unique basename match. `files` is any collection of package paths (a
    dict keyed by path works). Pass a prebuilt `index` when resolving many
    hrefs against the same package.
    """
    literal = resolve_href(base_path, href)
    if literal in files:
        return literal
    if index is None:
        index = BasenameIndex(files)
    return index.lookup(literal, href)
