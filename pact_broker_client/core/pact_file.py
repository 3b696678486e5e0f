"""
Reading pact files from disk (or any other location) into pact documents.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Protocol, Union, runtime_checkable

from jsonschema import Draft202012Validator
from pydantic import ValidationError

from .errors import PactErrorCode, create_read_error, get_error_message
from .pact import PactDocument

logger = logging.getLogger(__name__)


PACT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Pact document",
    "type": "object",
    "properties": {
        "consumer": {"type": "object"},
        "provider": {"type": "object"},
        "interactions": {"type": "array", "items": {"type": "object"}},
        "messages": {"type": "array", "items": {"type": "object"}},
    },
}

_validator = Draft202012Validator(PACT_SCHEMA)


@runtime_checkable
class FileLocation(Protocol):
    """Anything that can produce pact content and name itself in errors."""

    @property
    def identifier(self) -> str: ...

    def read_text(self) -> str: ...


class PactFile:
    """A pact file on the local filesystem."""

    def __init__(self, path: Union[str, os.PathLike], encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self.encoding = encoding

    @property
    def identifier(self) -> str:
        return str(self.path)

    def read_text(self) -> str:
        return self.path.read_text(encoding=self.encoding)

    def __repr__(self) -> str:
        return f"PactFile({self.identifier!r})"

    @classmethod
    def coerce(cls, location: Union[str, os.PathLike, FileLocation], encoding: str = "utf-8") -> FileLocation:
        if isinstance(location, (str, os.PathLike)):
            return cls(location, encoding=encoding)
        if isinstance(location, FileLocation):
            return location
        raise TypeError(f"Cannot read a pact from {location!r}")


@dataclass
class LoadedPact:
    """Raw content of a pact file alongside its parsed document."""
    identifier: str
    content: str
    document: PactDocument


def validate_pact_data(data: Any, identifier: str) -> None:
    errors = sorted(_validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        msgs = [f"{list(e.path)}: {e.message}" for e in errors]
        raise create_read_error(
            PactErrorCode.READ_SCHEMA_INVALID,
            f"{get_error_message(PactErrorCode.READ_SCHEMA_INVALID)}: {identifier}",
            location=identifier,
            details="; ".join(msgs),
        )


def load_pact(location: FileLocation, validate_schema: bool = True) -> LoadedPact:
    """
    Read and parse a pact.

    Raises:
        FileReadError: the location is missing, unreadable, not JSON, or not
            shaped like a pact document.
    """
    identifier = location.identifier

    try:
        content = location.read_text()
    except FileNotFoundError as e:
        raise create_read_error(
            PactErrorCode.READ_FILE_NOT_FOUND,
            f"{get_error_message(PactErrorCode.READ_FILE_NOT_FOUND)}: {identifier}",
            location=identifier,
            details=str(e),
            cause=e,
        ) from e
    except Exception as e:
        raise create_read_error(
            PactErrorCode.READ_FILE_UNREADABLE,
            f"{get_error_message(PactErrorCode.READ_FILE_UNREADABLE)}: {identifier}",
            location=identifier,
            details=f"{type(e).__name__}: {e}",
            cause=e,
        ) from e

    try:
        data = json.loads(content)
    except (json.JSONDecodeError, RecursionError) as e:
        raise create_read_error(
            PactErrorCode.READ_INVALID_JSON,
            f"{get_error_message(PactErrorCode.READ_INVALID_JSON)}: {identifier}",
            location=identifier,
            details=str(e),
            cause=e,
        ) from e

    try:
        if validate_schema:
            validate_pact_data(data, identifier)
        document = PactDocument.from_mapping(data)
    except (TypeError, ValidationError, RecursionError) as e:
        raise create_read_error(
            PactErrorCode.READ_SCHEMA_INVALID,
            f"{get_error_message(PactErrorCode.READ_SCHEMA_INVALID)}: {identifier}",
            location=identifier,
            details=str(e),
            cause=e,
        ) from e

    logger.debug(f"Loaded pact {document.pact_name or '<unnamed>'} from {identifier}")
    return LoadedPact(identifier=identifier, content=content, document=document)
