"""
obj_validate.py
===============

Structural validation for OBJ files written by this converter.

Checks that the object line comes first, that positions, texture coordinates
and normals are emitted 1:1, and that every face index lies inside the
emitted vertex range.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Tuple


def validate_obj_text(text: str) -> Tuple[bool, str]:
    counts: Dict[str, int] = {"v": 0, "vt": 0, "vn": 0, "f": 0, "g": 0}
    faces = []
    lines = text.splitlines()

    if not lines or not lines[0].startswith("o "):
        return False, "missing object line"

    for line_no, line in enumerate(lines[1:], start=2):
        if not line:
            continue
        keyword, _, rest = line.partition(" ")
        if keyword == "o":
            return False, f"line {line_no}: unexpected second object line"
        if keyword not in counts:
            return False, f"line {line_no}: unknown statement {keyword!r}"
        counts[keyword] += 1
        if keyword == "f":
            faces.append((line_no, rest.split()))

    if not counts["v"] == counts["vt"] == counts["vn"]:
        return False, (
            f"attribute counts differ (v={counts['v']}, vt={counts['vt']}, vn={counts['vn']})"
        )

    vertex_count = counts["v"]
    for line_no, triples in faces:
        if len(triples) != 3:
            return False, f"line {line_no}: face has {len(triples)} vertices"
        for triple in triples:
            parts = triple.split("/")
            if len(parts) != 3:
                return False, f"line {line_no}: malformed index triple {triple!r}"
            try:
                indices = [int(part) for part in parts]
            except ValueError:
                return False, f"line {line_no}: non-integer index in {triple!r}"
            for index in indices:
                if index < 1 or index > vertex_count:
                    return False, (
                        f"line {line_no}: index {index} out of range 1..{vertex_count}"
                    )

    return True, "ok"


def validate_obj(path: Path) -> Tuple[bool, str]:
    """Validate an OBJ file on disk."""
    try:
        text = path.read_text(encoding="ascii", errors="replace")
    except OSError as exc:
        return False, f"cannot read: {exc}"
    return validate_obj_text(text)
