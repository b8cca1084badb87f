"""Key normalisation for the key/value settings store."""
from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple

_SETTING_KEY_RE = re.compile(r"^[a-z0-9_]{1,64}$")


def normalize_setting_key(value: object) -> Optional[str]:
    """Lower-case, trimmed key, or ``None`` when it is not an allowed key."""
    if not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    return normalized if _SETTING_KEY_RE.match(normalized) else None


def map_settings_rows(rows: Iterable[Tuple[str, str]]) -> dict[str, str]:
    """Collapse ``(key, value)`` rows into one dict; invalid keys are kept verbatim."""
    settings: dict[str, str] = {}
    for key, value in rows:
        settings[normalize_setting_key(key) or key] = value
    return settings


__all__ = ["normalize_setting_key", "map_settings_rows"]
