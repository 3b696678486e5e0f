"""
Merging of pact documents that describe the same consumer/provider pair.

Records are deduplicated by (providerState, description). The first record
seen for an identity keeps its position; later identical copies are dropped
and later copies that differ anywhere else raise ``ConflictError``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Union

from .errors import (
    ConflictError,
    PactErrorCode,
    create_conflict_error,
    create_merge_error,
    create_participant_mismatch_warning,
    get_error_message,
)
from .pact import (
    INTERACTIONS,
    STREAM_KEYS,
    InteractionIdentity,
    InteractionRecord,
    PactDocument,
    json_equal,
)

logger = logging.getLogger(__name__)

_ABSENT = object()


def _render(value: Any) -> str:
    if value is _ABSENT:
        return "<absent>"
    return json.dumps(value, default=str)


def _differing_fields(existing: InteractionRecord, incoming: InteractionRecord) -> List[str]:
    fields = list(existing)
    fields.extend(key for key in incoming if key not in existing)
    return [
        key for key in fields
        if not json_equal(existing.get(key, _ABSENT), incoming.get(key, _ABSENT))
    ]


def _conflict(stream: str, existing: InteractionRecord, incoming: InteractionRecord) -> ConflictError:
    identity = InteractionIdentity.of(incoming)
    fields = _differing_fields(existing, incoming)
    noun = "interactions" if stream == INTERACTIONS else "messages"
    differences = "; ".join(
        f"{key}: {_render(existing.get(key, _ABSENT))} != {_render(incoming.get(key, _ABSENT))}"
        for key in fields
    )
    message = (
        f"Two {noun} have been found with same description ({_render(identity.description)}) "
        f"and provider state ({_render(identity.provider_state)}) but a different request or response. "
        "Please use a different description or provider state, or hard-code any random data.\n\n"
        f"Differing fields: {differences}\n\n"
        f"{json.dumps(existing, default=str)}\n\n{json.dumps(incoming, default=str)}"
    )
    return create_conflict_error(
        message,
        stream=stream,
        provider_state=identity.provider_state,
        description=identity.description,
        differing_fields=fields,
        existing=existing,
        incoming=incoming,
    )


class PactMerger:
    """Merges an ordered sequence of pact documents into one."""

    def merge(self, documents: Sequence[PactDocument]) -> PactDocument:
        """
        Raises:
            ConflictError: two records share an identity but differ elsewhere.
            PactMergeError: a record is nested too deeply to compare.
            ValueError: no documents were given.
        """
        documents = list(documents)
        if not documents:
            raise ValueError("At least one pact document is required to merge")

        try:
            return self._merge(documents)
        except RecursionError as e:
            raise create_merge_error(
                PactErrorCode.MERGE_DOCUMENT_TOO_DEEP,
                get_error_message(PactErrorCode.MERGE_DOCUMENT_TOO_DEEP),
                details=str(e),
                cause=e,
            ) from e

    def _merge(self, documents: List[PactDocument]) -> PactDocument:
        seen: Dict[str, Dict[InteractionIdentity, InteractionRecord]] = {}
        for document in documents:
            for stream, records in document.streams():
                stream_seen = seen.setdefault(stream, {})
                for record in records:
                    self._add(stream_seen, stream, record)

        first = documents[0]
        self._warn_on_participant_drift(first, documents[1:])

        merged = {stream: list(seen[stream].values()) if stream in seen else None for stream in STREAM_KEYS}
        return first.with_streams(interactions=merged["interactions"], messages=merged["messages"])

    def _add(
        self,
        seen: Dict[InteractionIdentity, InteractionRecord],
        stream: str,
        record: InteractionRecord,
    ) -> None:
        identity = InteractionIdentity.of(record)
        existing = seen.get(identity)
        if existing is None:
            seen[identity] = dict(record)
        elif not json_equal(existing, record):
            raise _conflict(stream, existing, record)

    def _warn_on_participant_drift(self, first: PactDocument, others: Iterable[PactDocument]) -> None:
        # The first document's metadata wins; differing participants usually
        # mean unrelated pacts were passed in together.
        for other in others:
            for role, expected, actual in (
                ("consumer", first.consumer_name, other.consumer_name),
                ("provider", first.provider_name, other.provider_name),
            ):
                if actual is not None and actual != expected:
                    detail = create_participant_mismatch_warning(role, expected, actual)
                    logger.warning(detail.message, extra={"extra": detail.to_dict()})


def merge_pacts(
    documents: Iterable[Union[PactDocument, Mapping[str, Any]]]
) -> Union[PactDocument, Dict[str, Any]]:
    """
    Merge pact documents.

    Accepts ``PactDocument`` instances or plain JSON mappings. When every
    input is a ``PactDocument`` the result is one too; otherwise the merged
    document is returned as a plain mapping.

    Raises:
        ConflictError: two records share an identity but differ elsewhere.
        PactMergeError: a record is nested too deeply to compare.
        ValueError: no documents were given.
    """
    documents = list(documents)
    parsed = [
        document if isinstance(document, PactDocument) else PactDocument.from_mapping(document)
        for document in documents
    ]
    merged = PactMerger().merge(parsed)
    if all(isinstance(document, PactDocument) for document in documents):
        return merged
    return merged.to_mapping()
