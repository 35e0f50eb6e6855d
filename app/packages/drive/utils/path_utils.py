"""Path utilities for logical file paths and object keys.

- A logical path always starts with '/'; root-level items are ``/<name>``;
- Object keys never start with '/';
- Names stored in keys keep only ``[A-Za-z0-9.-]``, everything else becomes '_'.
"""

from __future__ import annotations

import re
from typing import Iterable

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def join_path(parent_path: str | None, name: str) -> str:
    base = norm_abs_path(parent_path).rstrip("/")
    return f"{base}/{name}"


def path_from_names(names: Iterable[str]) -> str:
    return "/" + "/".join(names)


def norm_abs_path(p: str | None) -> str:
    s = (p or "/").strip() or "/"
    if not s.startswith("/"):
        s = "/" + s
    return s


def split_path(p: str | None) -> tuple[str, str]:
    """Split ``/a/b/c`` into (``/a/b``, ``c``); root-level items yield (``/``, name)."""
    s = norm_abs_path(p).rstrip("/")
    parent, _, name = s.rpartition("/")
    return (parent or "/", name)


def sanitize_key_name(name: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", name)
