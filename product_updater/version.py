"""Version comparison helpers.

Tolerant semver-style ordering: an optional leading ``v`` is ignored,
numeric chunks compare numerically and alphanumeric chunks lexically. A
release sorts after any of its pre-releases (``1.2.3-beta < 1.2.3``) and
``+build`` metadata is ignored.
"""

from __future__ import annotations

import re
from itertools import zip_longest
from typing import List, Optional


def compare_versions(left: Optional[str], right: Optional[str]) -> int:
    """Return -1, 0 or 1 as ``left`` is older than, equal to or newer than ``right``."""

    left_parts = _version_parts(left)
    right_parts = _version_parts(right)
    if not left_parts and not right_parts:
        return 0
    if not left_parts:
        return -1
    if not right_parts:
        return 1
    return _compare_parts(left_parts, right_parts)


def is_version_newer(candidate: Optional[str], installed: Optional[str]) -> bool:
    """True only when ``candidate`` is strictly newer than ``installed``.

    An empty or missing candidate is never newer.
    """

    if not _version_parts(candidate):
        return False
    return compare_versions(candidate, installed) > 0


def _version_parts(version: Optional[str]) -> List[object]:
    version = (version or "").strip()
    if not version:
        return []
    if version[0] in {"v", "V"}:
        version = version[1:]
    # build metadata never affects ordering
    version = version.split("+", 1)[0]
    parts: List[object] = []
    for chunk in re.split(r"[.\-_]", version):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append(int(chunk))
        else:
            # "3beta" -> 3, "beta"
            for piece in re.findall(r"\d+|[^\d]+", chunk):
                parts.append(int(piece) if piece.isdigit() else piece.lower())
    return parts


def _compare_parts(left: List[object], right: List[object]) -> int:
    for cur, other in zip_longest(left, right, fillvalue=0):
        if cur == other:
            continue
        if isinstance(cur, int) and isinstance(other, int):
            return -1 if cur < other else 1
        # a number outranks a label, so a pre-release sorts first
        if isinstance(cur, int):
            return 1
        if isinstance(other, int):
            return -1
        return -1 if str(cur) < str(other) else 1
    return 0
