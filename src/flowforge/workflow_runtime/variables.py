"""
Variable Store - Run-scoped string variables.

Every value is stored as a string; handlers parse on demand with
parse_number() and write numbers back with format_number().
"""

from __future__ import annotations

import math
from typing import Dict, Iterator, Mapping, Optional, Tuple


REFERENCE_PREFIX = "$"


def variable_key(token: Optional[str]) -> str:
    """Variable name referenced by a token (``" $name "`` -> ``"name"``)."""
    if not token:
        return ""
    return token.strip().lstrip(REFERENCE_PREFIX)


def parse_number(text: Optional[str]) -> Optional[float]:
    """
    Parse a string as a finite double.

    Falls back to a comma decimal separator ("2,5"). Returns None for
    anything that is not a finite number.
    """
    if text is None:
        return None
    candidate = text.strip()
    if not candidate:
        return None
    for value in (candidate, candidate.replace(",", ".")):
        try:
            number = float(value)
        except ValueError:
            continue
        if math.isfinite(number):
            return number
        return None
    return None


def format_number(value: float) -> str:
    """
    Serialize a double without superfluous trailing zeros.

    6.0 -> "6", 2.5 -> "2.5", -0.0 -> "0". Non-integral values use
    the shortest representation that round-trips.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


class VariableStore:
    """
    Mutable name -> string mapping owned by a single run.

    Never shared between executions; the engine creates one per run and
    snapshots it into the execution record when the run ends.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a variable value (accepts ``$name`` too)."""
        return self._values.get(variable_key(name), default)

    def set(self, name: str, value: object) -> None:
        """Set a variable; non-string values are stringified."""
        key = variable_key(name)
        if isinstance(value, str):
            self._values[key] = value
        elif isinstance(value, bool):
            self._values[key] = "true" if value else "false"
        elif isinstance(value, float):
            self._values[key] = format_number(value)
        elif value is None:
            self._values[key] = ""
        else:
            self._values[key] = str(value)

    def resolve(self, token: Optional[str], bare_names: bool = False) -> str:
        """
        Resolve a token to a value.

        ``$name`` is looked up (missing -> ""). Any other token is a
        literal, unless ``bare_names`` is set and the token names an
        existing variable.
        """
        if token is None:
            return ""
        stripped = token.strip()
        if stripped.startswith(REFERENCE_PREFIX):
            return self._values.get(variable_key(stripped), "")
        if bare_names and stripped in self._values:
            return self._values[stripped]
        return token

    def snapshot(self) -> Dict[str, str]:
        """Plain copy of the current values."""
        return dict(self._values)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._values.items()))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and variable_key(name) in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"VariableStore({self._values!r})"


__all__ = [
    "REFERENCE_PREFIX",
    "VariableStore",
    "format_number",
    "parse_number",
    "variable_key",
]
