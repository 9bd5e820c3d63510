from __future__ import annotations

import re

LOCAL_PART_SEPARATORS_RE = re.compile(r"[._\-\s]+")


def _capitalize(token: str) -> str:
    return token[:1].upper() + token[1:]


def split_identifier(identifier: str) -> tuple[str, str]:
    """Split an email-shaped identifier into (local part, domain part)."""
    local, _sep, domain = str(identifier or "").strip().partition("@")
    return local, domain


def names_from_identifier(identifier: str) -> tuple[str, str]:
    """Derive (first, last) from an identifier like ``jane.doe@example.com``."""
    local, _domain = split_identifier(identifier)
    parts = [part for part in LOCAL_PART_SEPARATORS_RE.split(local) if part]
    if not parts:
        return "", ""
    first = _capitalize(parts[0])
    last = _capitalize(parts[-1]) if len(parts) > 1 else ""
    return first, last


def resolve_names(first_raw: str | None, last_raw: str | None, identifier: str) -> tuple[str, str]:
    first = (first_raw or "").strip()
    last = (last_raw or "").strip()
    if first:
        return first, last
    try:
        derived_first, derived_last = names_from_identifier(identifier)
    except (AttributeError, TypeError):
        return "", last
    return derived_first, derived_last or last
