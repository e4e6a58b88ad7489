from __future__ import annotations

from enum import Enum
from typing import Any

from ...errors import ValidationError


class Role(str, Enum):
    BDM = "bdm"
    ESTIMATOR = "estimator"
    COO = "coo"
    DIRECTOR = "director"


_ALIASES = {
    "bdm": Role.BDM,
    "businessdevelopment": Role.BDM,
    "businessdevelopmentmanager": Role.BDM,
    "estimator": Role.ESTIMATOR,
    "estimation": Role.ESTIMATOR,
    "coo": Role.COO,
    "director": Role.DIRECTOR,
    "admin": Role.DIRECTOR,
}


def normalize_role(value: Any) -> Role | None:
    """
    Map a stored/claimed role onto the canonical set.
    Case, spaces, dashes and underscores are ignored; unknown values yield None.
    """
    if isinstance(value, Role):
        return value
    s = str(value or "").strip().lower()
    for ch in (" ", "_", "-"):
        s = s.replace(ch, "")
    if not s:
        return None
    return _ALIASES.get(s)


def parse_role(value: Any) -> Role:
    role = normalize_role(value)
    if role is None:
        raise ValidationError(
            f"Unknown role: {value!r}",
            details={"allowed": [r.value for r in Role]},
        )
    return role
