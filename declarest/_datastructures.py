"""
Core data structures for request handling.

Provides:
- MultiDict: Multi-value dictionary for query params and form data
- Headers: Case-insensitive header access
- ParsedContentType: Content-Type parsing helper
- AcceptItem / parse_accept: quality-ordered Accept-* header parsing
- media_type_matches / language_matches: negotiation predicates
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Dict, Iterator, List, Mapping, MutableMapping,
    Optional, Tuple, Union
)


# ============================================================================
# MultiDict
# ============================================================================

class MultiDict(MutableMapping[str, List[str]]):
    """
    Dictionary that supports multiple values per key.

    Used for query parameters and form data where keys can repeat.
    """

    def __init__(self, items: Optional[Union[List[Tuple[str, str]], Mapping[str, Union[str, List[str]]]]] = None):
        self._data: Dict[str, List[str]] = {}

        if items:
            if isinstance(items, list):
                for key, value in items:
                    self.add(key, value)
            elif isinstance(items, Mapping):
                for key, value in items.items():
                    if isinstance(value, list):
                        self._data[key] = value.copy()
                    else:
                        self._data[key] = [value]

    def __getitem__(self, key: str) -> List[str]:
        """Get all values for a key."""
        return self._data[key]

    def __setitem__(self, key: str, value: Union[str, List[str]]) -> None:
        """Set values for a key (replaces existing)."""
        if isinstance(value, list):
            self._data[key] = value
        else:
            self._data[key] = [value]

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MultiDict({dict(self._data)})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for a key."""
        values = self._data.get(key)
        return values[0] if values else default

    def get_all(self, key: str) -> List[str]:
        """Get all values for a key."""
        return self._data.get(key, [])

    def add(self, key: str, value: str) -> None:
        """Add a value to a key (appends to list)."""
        if key in self._data:
            self._data[key].append(value)
        else:
            self._data[key] = [value]

    def to_dict(self, multi: bool = False) -> Dict[str, Union[str, List[str]]]:
        """
        Convert to regular dict.

        Args:
            multi: If True, return lists for all keys.
                   If False, return first value only.
        """
        if multi:
            return dict(self._data)
        return {k: v[0] for k, v in self._data.items() if v}


# ============================================================================
# Headers
# ============================================================================

@dataclass
class Headers:
    """
    Case-insensitive header access with raw preservation.

    Normalizes header names while preserving original casing.
    """

    raw: List[Tuple[bytes, bytes]] = field(default_factory=list)
    _index: Dict[str, List[Tuple[bytes, bytes]]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._index = {}
        for name, value in self.raw:
            key = name.decode("latin-1").lower()
            self._index.setdefault(key, []).append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get first value for header (case-insensitive)."""
        pairs = self._index.get(name.lower())
        if pairs:
            return pairs[0][1].decode("latin-1")
        return default

    def get_all(self, name: str) -> List[str]:
        """Get all values for header (case-insensitive)."""
        pairs = self._index.get(name.lower(), [])
        return [value.decode("latin-1") for _, value in pairs]

    def has(self, name: str) -> bool:
        return name.lower() in self._index

    def items(self) -> Iterator[Tuple[str, str]]:
        for name, value in self.raw:
            yield name.decode("latin-1"), value.decode("latin-1")

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(f"Header '{name}' not found")
        return value

    def __repr__(self) -> str:
        return f"Headers({list(self.items())})"


# ============================================================================
# ParsedContentType
# ============================================================================

@dataclass
class ParsedContentType:
    """
    Parsed Content-Type header.

    Extracts media type and parameters (e.g., charset).
    """

    media_type: str
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, content_type: Optional[str]) -> Optional["ParsedContentType"]:
        """Parse Content-Type header."""
        if not content_type:
            return None

        parts = content_type.split(";")
        media_type = parts[0].strip().lower()

        params = {}
        for part in parts[1:]:
            if "=" in part:
                key, value = part.split("=", 1)
                params[key.strip().lower()] = value.strip().strip('"')

        return cls(media_type=media_type, params=params)

    @property
    def charset(self) -> str:
        """Get charset parameter (default: utf-8)."""
        return self.params.get("charset", "utf-8")

    @property
    def boundary(self) -> Optional[str]:
        """Get boundary parameter (for multipart)."""
        return self.params.get("boundary")

    @property
    def is_json(self) -> bool:
        return self.media_type == "application/json" or self.media_type.endswith("+json")


# ============================================================================
# Accept-* headers
# ============================================================================

@dataclass(frozen=True)
class AcceptItem:
    """One entry of an Accept / Accept-Language header."""

    value: str
    quality: float = 1.0


def parse_accept(header: Optional[str]) -> List[AcceptItem]:
    """
    Parse an Accept-style header into items ordered by descending quality.

    Entries with ``q=0`` are dropped. Ties keep header order.

    Example:
        >>> [item.value for item in parse_accept("en;q=0.8,en-US,*;q=0.1")]
        ['en-us', 'en', '*']
    """
    if not header:
        return []

    items: List[AcceptItem] = []
    for part in header.split(","):
        pieces = [p.strip() for p in part.split(";")]
        value = pieces[0].lower()
        if not value:
            continue
        quality = 1.0
        for param in pieces[1:]:
            if param.startswith("q="):
                try:
                    quality = float(param[2:])
                except ValueError:
                    quality = 0.0
        if quality > 0:
            items.append(AcceptItem(value, quality))

    # sorted() is stable, so equal qualities keep header order
    return sorted(items, key=lambda item: item.quality, reverse=True)


def media_type_matches(pattern: str, media_type: str) -> bool:
    """
    Check whether ``media_type`` satisfies ``pattern``.

    ``pattern`` may use ``*/*`` or ``type/*`` wildcards; parameters are
    ignored on both sides.
    """
    pattern = pattern.split(";")[0].strip().lower()
    media_type = media_type.split(";")[0].strip().lower()

    if pattern in ("*", "*/*") or pattern == media_type:
        return True

    p_type, _, p_sub = pattern.partition("/")
    m_type, _, m_sub = media_type.partition("/")
    if p_sub == "*":
        return p_type == m_type
    if m_sub == "*":
        return p_type == m_type
    return False


def language_matches(requested: str, offered: str) -> bool:
    """
    Check whether a requested language range covers an offered tag.

    ``*`` covers everything; ``en`` covers ``en-US``; ``en-US`` covers
    ``en`` as well, so a client asking for a regional variant still gets
    the generic language.
    """
    requested = requested.lower()
    offered = offered.lower()
    if requested == "*" or requested == offered:
        return True
    return (
        offered.split("-")[0] == requested
        or requested.split("-")[0] == offered
    )
