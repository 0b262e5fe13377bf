"""Placeholder extraction and substitution for ``{{name}}`` prompt variables."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

from promptbyme.core.errors import MissingVariablesError

# No escaping and no nesting: a name is anything up to the first closing brace.
PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def placeholder(name: str) -> str:
    """Render ``name`` as the placeholder token that targets it."""
    return f"{{{{{name}}}}}"


def extract_variables(text: str) -> list[str]:
    """Return unique placeholder names in order of first occurrence.

    Matching is case- and whitespace-sensitive: ``{{ Name }}`` and ``{{Name}}``
    are different variables.
    """
    return list(dict.fromkeys(PLACEHOLDER_PATTERN.findall(text or "")))


def substitute(text: str, values: Mapping[str, Any] | None) -> str:
    """Replace every ``{{name}}`` for each supplied name.

    Placeholders with no supplied value are left intact so a later scan can
    report them as missing.
    """
    for name, value in (values or {}).items():
        text = text.replace(placeholder(name), "" if value is None else str(value))
    return text


def ensure_resolved(text: str) -> str:
    """Raise ``MissingVariablesError`` if any placeholder remains in ``text``."""
    missing = extract_variables(text)
    if missing:
        raise MissingVariablesError(missing)
    return text


def fill_variables(text: str, values: Mapping[str, Any] | None) -> str:
    """Substitute ``values`` into ``text`` and reject leftover placeholders."""
    return ensure_resolved(substitute(text, values))


def estimate_tokens(text: str) -> int:
    """Rough token estimate: about 4 characters per token."""
    return math.ceil(len(text) / 4)
