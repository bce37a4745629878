"""Configuration settings: string values with typed conversions."""

from __future__ import annotations

import math
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

__all__ = [
    "StringValue",
    "TextUnmarshaler",
    "SettingProvider",
    "KeyValueSettingProvider",
    "SettingItem",
]

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_SIGNED_INT = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_INT = re.compile(r"[0-9]+")
_HEX_FLOAT = re.compile(r"[+-]?0[xX]")

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_UINT64_MAX = (1 << 64) - 1


@runtime_checkable
class TextUnmarshaler(Protocol):
    """Something that can load its state from a text value."""

    def unmarshal_text(self, data: bytes) -> None:
        """Load state from ``data``; raise on invalid input."""


class StringValue(str):
    """A setting value stored as text, convertible to other types.

    Conversions never raise: a value that does not parse converts to the
    zero value of the target type, and a value out of the 64-bit range is
    clamped to the nearest bound.
    """

    def to_bool(self) -> bool:
        """Return True for the accepted spellings of true, else False."""
        return str(self) in _TRUE_WORDS

    def to_int(self) -> int:
        """Return the value as a signed 64-bit integer."""
        text = str(self)
        if not _SIGNED_INT.fullmatch(text):
            return 0
        return max(_INT64_MIN, min(_INT64_MAX, int(text)))

    def to_uint(self) -> int:
        """Return the value as an unsigned 64-bit integer."""
        text = str(self)
        if not _UNSIGNED_INT.fullmatch(text):
            return 0
        return min(_UINT64_MAX, int(text))

    def to_float(self) -> float:
        """Return the value as a float."""
        text = str(self)
        if not text or text != text.strip():
            return 0.0
        try:
            if _HEX_FLOAT.match(text):
                return float.fromhex(text)
            value = float(text)
        except (ValueError, OverflowError):
            return 0.0
        if math.isnan(value) and "nan" not in text.lower():
            return 0.0
        return value

    def unmarshal(self, unmarshaler: TextUnmarshaler) -> None:
        """Hand the raw bytes of the value to ``unmarshaler``."""
        unmarshaler.unmarshal_text(str(self).encode())


@runtime_checkable
class SettingProvider(Protocol):
    """A source of named settings."""

    def get(self, name: str) -> StringValue:
        """Return the setting called ``name``, empty when absent."""


class KeyValueSettingProvider(Mapping[str, StringValue]):
    """Settings held in a plain name-to-value mapping."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = {key: StringValue(value) for key, value in (values or {}).items()}

    def __getitem__(self, name: str) -> StringValue:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self._values)!r})"

    def get(self, name: str) -> StringValue:  # type: ignore[override]
        """Return the setting called ``name``, empty when absent."""
        return self._values.get(name, StringValue(""))


@dataclass
class SettingItem:
    """One named setting as declared in a configuration file."""

    name: str
    value: StringValue = StringValue("")

    def __post_init__(self) -> None:
        self.value = StringValue(self.value)