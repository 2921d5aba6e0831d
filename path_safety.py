"""
path_safety.py — turn a caller-supplied directory + filename into a safe path.

The filename may never leave the output directory: "..", "/" and "\\" are
rejected outright. Characters Windows refuses in filenames are replaced
with "_" so the same name works on every platform.
"""
from __future__ import annotations

import os
import re
from pathlib import Path

from errors import PathTraversal

_FORBIDDEN_SEQUENCES = ("..", "/", "\\")
_RESERVED_CHARS = re.compile(r'[<>:"|?*]')


def check_filename(filename: str) -> None:
    """Raise PathTraversal if `filename` could escape its directory."""
    if not filename or not filename.strip():
        raise PathTraversal("Invalid file path: filename is empty")
    for seq in _FORBIDDEN_SEQUENCES:
        if seq in filename:
            raise PathTraversal(
                f"Invalid file path: directory traversal detected in {filename!r}"
            )
    if not stem(filename):
        raise PathTraversal(f"Invalid file path: no usable name in {filename!r}")


def stem(filename: str) -> str:
    """
    Base name the saved file gets before the detected extension is added.
    Leading dots are dropped so ".jpg" saves as "jpg.<ext>", never as a
    hidden file.
    """
    return os.path.splitext(filename)[0].lstrip(".").strip()


def clean_filename(filename: str) -> str:
    return _RESERVED_CHARS.sub("_", filename)


def resolve_output_dir(output_dir: str) -> Path:
    """Expand a leading ~ and return the canonical absolute directory."""
    return Path(os.path.expanduser(output_dir)).resolve()


def resolve(output_dir: str, filename: str) -> Path:
    """
    Return the absolute path for `filename` inside `output_dir`.

    Raises PathTraversal if the name is unsafe or the joined path somehow
    ends up outside the canonical output directory.
    """
    check_filename(filename)
    base = resolve_output_dir(output_dir)
    target = (base / clean_filename(filename)).resolve()

    if target.parent != base and base not in target.parents:
        raise PathTraversal(f"Invalid file path: {target} is outside {base}")
    return target
