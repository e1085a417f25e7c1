"""Placeholder substitution for ``{{ dotted.path }}`` tokens."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional

from .models import ConfigDocument

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_-]+(?:\.[A-Za-z0-9_-]+)*)\s*\}\}")

_MISSING = object()


def find_placeholders(document: str) -> list[str]:
    """Return the dotted paths referenced by ``document`` in order of first use."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(document):
        seen.setdefault(match.group(1), None)
    return list(seen)


def resolve(path: str, data: Optional[Mapping[str, Any]]) -> Any:
    """Walk ``data`` one segment at a time; return ``None`` when anything is missing."""
    current: Any = data
    for segment in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment, _MISSING)
        if current is _MISSING:
            return None
    return current


def stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def substitute(document: str, config: Optional[ConfigDocument]) -> str:
    """Replace every placeholder in ``document`` with its configuration value.

    Missing keys and an absent configuration produce an empty string. Values
    are inserted as-is and never scanned for further placeholders.
    """
    data = config.parsed if config is not None else None

    def repl(match: re.Match[str]) -> str:
        path = match.group(1)
        value = resolve(path, data)
        if value is None:
            logger.debug("No configuration value for placeholder %r", path)
            return ""
        return stringify(value)

    return PLACEHOLDER_RE.sub(repl, document)


def unresolved_placeholders(document: str, config: Optional[ConfigDocument]) -> list[str]:
    data = config.parsed if config is not None else None
    return [path for path in find_placeholders(document) if resolve(path, data) is None]
