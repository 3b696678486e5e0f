"""
Pact document model.

A pact document is a JSON object. Only its ``interactions`` and ``messages``
streams carry meaning for merging; every other top-level key is kept as an
opaque extra and written back in its original position.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, PrivateAttr


InteractionRecord = Dict[str, Any]

INTERACTIONS = "interactions"
MESSAGES = "messages"
STREAM_KEYS: Tuple[str, ...] = (INTERACTIONS, MESSAGES)


_BOOL = object()


def _freeze(value: Any) -> Any:
    """
    Hashable stand-in for a JSON value.

    Booleans are tagged so that ``true`` never equals ``1`` and ``false``
    never equals ``0``, unlike Python's own ``==``.
    """
    if isinstance(value, bool):
        return (_BOOL, value)
    if isinstance(value, Mapping):
        return frozenset((key, _freeze(item)) for key, item in value.items())
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def json_equal(left: Any, right: Any) -> bool:
    """Structural JSON equality that tells booleans apart from numbers."""
    return _freeze(left) == _freeze(right)


@dataclass(frozen=True, eq=False)
class InteractionIdentity:
    """The (providerState, description) pair that identifies a record."""
    provider_state: Any
    description: Any

    @classmethod
    def of(cls, record: Mapping[str, Any]) -> "InteractionIdentity":
        return cls(record.get("providerState"), record.get("description"))

    def _key(self) -> Tuple[Any, Any]:
        return (_freeze(self.provider_state), _freeze(self.description))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InteractionIdentity):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())


def _participant_name(participant: Any) -> Optional[str]:
    if isinstance(participant, Mapping):
        name = participant.get("name")
        return str(name) if name is not None else None
    return None


class PactDocument(BaseModel):
    """
    Structured view of a pact document.

    ``None`` for a stream means the key is absent; an empty list means the
    key is present with no records.
    """
    extras: Dict[str, Any] = Field(default_factory=dict)
    interactions: Optional[List[InteractionRecord]] = None
    messages: Optional[List[InteractionRecord]] = None

    _key_order: List[str] = PrivateAttr(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PactDocument":
        if not isinstance(data, Mapping):
            raise TypeError(f"A pact document must be a JSON object, got {type(data).__name__}")

        document = cls(
            extras={key: value for key, value in data.items() if key not in STREAM_KEYS},
            interactions=data.get(INTERACTIONS),
            messages=data.get(MESSAGES),
        )
        document._key_order = list(data.keys())
        return document

    def stream(self, key: str) -> Optional[List[InteractionRecord]]:
        if key == INTERACTIONS:
            return self.interactions
        if key == MESSAGES:
            return self.messages
        raise KeyError(key)

    def streams(self) -> Iterator[Tuple[str, List[InteractionRecord]]]:
        """Yield (key, records) for each stream present on the document."""
        for key in STREAM_KEYS:
            records = self.stream(key)
            if records is not None:
                yield key, records

    def with_streams(
        self,
        interactions: Optional[List[InteractionRecord]],
        messages: Optional[List[InteractionRecord]],
    ) -> "PactDocument":
        """New document with this document's extras and the given streams."""
        document = PactDocument(
            extras=dict(self.extras),
            interactions=interactions,
            messages=messages,
        )
        document._key_order = list(self._key_order)
        return document

    def to_mapping(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key in self._key_order:
            if key in STREAM_KEYS:
                records = self.stream(key)
                if records is not None:
                    result[key] = records
            elif key in self.extras:
                result[key] = self.extras[key]

        # Keys added after parsing go after the original ones
        for key, value in self.extras.items():
            result.setdefault(key, value)
        for key, records in self.streams():
            result.setdefault(key, records)
        return result

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_mapping(), indent=indent)

    @property
    def consumer_name(self) -> Optional[str]:
        return _participant_name(self.extras.get("consumer"))

    @property
    def provider_name(self) -> Optional[str]:
        return _participant_name(self.extras.get("provider"))

    @property
    def pact_name(self) -> Optional[str]:
        """``Consumer/Provider`` when both participants are named."""
        if self.consumer_name and self.provider_name:
            return f"{self.consumer_name}/{self.provider_name}"
        return None
