"""Custom file info: user metadata attached to a file."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
from urllib.parse import quote

from .errors import CustomInfoLimitError

MAX_CUSTOM_INFO_ENTRIES = 10
FILE_INFO_HEADER_PREFIX = "X-Bz-Info-"


class CustomInfo(MutableMapping[str, str]):
    """A string-to-string mapping holding at most 10 entries.

    The cap is checked on construction and on every insert of a new key. An
    insert that would exceed it raises :class:`CustomInfoLimitError` and
    leaves the mapping unchanged; overwriting an existing key is always
    allowed.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, str] | None = None, /, **kwargs: str) -> None:
        merged = dict(entries or {})
        merged.update(kwargs)
        if len(merged) > MAX_CUSTOM_INFO_ENTRIES:
            raise CustomInfoLimitError(MAX_CUSTOM_INFO_ENTRIES)
        self._entries: dict[str, str] = {}
        for key, value in merged.items():
            self._entries[_check_key(key)] = _check_value(value)

    @classmethod
    def coerce(cls, value: CustomInfo | Mapping[str, str] | None) -> CustomInfo:
        if isinstance(value, CustomInfo):
            return value
        return cls(value)

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __setitem__(self, key: str, value: str) -> None:
        key = _check_key(key)
        value = _check_value(value)
        if key not in self._entries and len(self._entries) >= MAX_CUSTOM_INFO_ENTRIES:
            raise CustomInfoLimitError(MAX_CUSTOM_INFO_ENTRIES)
        self._entries[key] = value

    def __delitem__(self, key: str) -> None:
        del self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CustomInfo):
            return self._entries == other._entries
        if isinstance(other, Mapping):
            return self._entries == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"CustomInfo({self._entries!r})"

    def set(self, key: str, value: str) -> CustomInfo:
        self[key] = value
        return self

    def unset(self, key: str) -> CustomInfo:
        self._entries.pop(key, None)
        return self

    def to_dict(self) -> dict[str, str]:
        return dict(self._entries)

    def to_headers(self) -> dict[str, str]:
        return {
            f"{FILE_INFO_HEADER_PREFIX}{key}": quote(value, safe="")
            for key, value in self._entries.items()
        }


def _check_key(key: str) -> str:
    if not isinstance(key, str) or not key:
        raise TypeError(f"custom info keys must be non-empty strings, got {key!r}")
    return key


def _check_value(value: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"custom info values must be strings, got {type(value).__name__}")
    return value


__all__ = ["CustomInfo", "MAX_CUSTOM_INFO_ENTRIES", "FILE_INFO_HEADER_PREFIX"]
