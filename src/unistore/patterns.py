# SPDX-License-Identifier: MIT
"""Glob pattern expansion over storage listings.

Patterns are matched against each entry's path relative to the listing root:

- ``*`` matches any run of characters inside one segment
- ``**`` as a whole segment matches zero or more segments
- ``?`` matches one character, ``[...]`` a character class (``!``/``^`` negate)

A leading ``/`` anchors the pattern at the listing root, which is also the
default; patterns always cover the full relative path.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from typing import TypeVar

from .uri import NormalizedPath, StorageURI

T = TypeVar("T")


def _translate_segment(segment: str) -> str:
    """Translate one non-``**`` glob segment into a regex fragment."""
    out: list[str] = []
    i, n = 0, len(segment)
    while i < n:
        c = segment[i]
        i += 1
        if c == "*":
            # collapse runs of '*' inside a segment
            while i < n and segment[i] == "*":
                i += 1
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = i
            if j < n and segment[j] in "!^":
                j += 1
            if j < n and segment[j] == "]":
                j += 1
            while j < n and segment[j] != "]":
                j += 1
            if j >= n:
                out.append(re.escape(c))
                continue
            body = segment[i:j]
            i = j + 1
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
        else:
            out.append(re.escape(c))
    return "".join(out)


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern to a regex matching ``/``-joined relative paths."""
    segments = [s for s in pattern.replace("\\", "/").split("/") if s and s != "."]
    if not segments:
        return re.compile(r"\A\Z")

    parts: list[str] = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            # zero or more whole segments, each followed by '/' unless last
            parts.append(".*" if last else "(?:[^/]+/)*")
        else:
            parts.append(_translate_segment(segment) + ("" if last else "/"))
    return re.compile(r"\A" + "".join(parts) + r"\Z")


def matches(relative_path: str | NormalizedPath, pattern: str) -> bool:
    """Whether a listing-relative path matches ``pattern``."""
    return compile_pattern(pattern).match(str(NormalizedPath.parse(relative_path))) is not None


def _entry_path(entry: object) -> NormalizedPath:
    from .entries import StorageEntry

    if isinstance(entry, NormalizedPath):
        return entry
    if isinstance(entry, StorageEntry):
        return entry.path
    if isinstance(entry, StorageURI):
        return entry.path
    if isinstance(entry, str):
        from .uri import parse_uri, split_scheme

        scheme, _ = split_scheme(entry)
        return parse_uri(entry).path if scheme else NormalizedPath.parse(entry)
    raise TypeError(f"Cannot match entries of type {type(entry).__name__}")


def match(entries: Iterable[T], pattern: str, root: str | NormalizedPath = NormalizedPath()) -> list[T]:
    """Return the subset of ``entries`` whose path under ``root`` matches ``pattern``.

    Entries outside ``root`` never match.  Input order is preserved.
    """
    regex = compile_pattern(pattern)
    base = NormalizedPath.parse(root)
    selected: list[T] = []
    for entry in entries:
        path = _entry_path(entry)
        if not path.is_relative_to(base):
            continue
        if regex.match(str(path.relative_to(base))) is not None:
            selected.append(entry)
    return selected
