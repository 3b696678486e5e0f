"""
Publishing of local pact files to a pact broker.

Each file is read and published independently: a file that cannot be read,
or that the broker client fails to publish, is recorded as a failed outcome
and the batch carries on with the next file.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple, TypeVar, Union, runtime_checkable

from ..config import get_settings
from .errors import (
    FileReadError,
    PactBrokerClientException,
    PactErrorCode,
    PactMergeError,
    PublishError,
    create_configuration_error,
    create_merge_error,
    create_publish_error,
    get_error_message,
)
from .merge import PactMerger
from .pact_file import FileLocation, LoadedPact, PactFile, load_pact

logger = logging.getLogger(__name__)

PUBLISHED = "published"
FAILED = "failed"

T = TypeVar("T")
R = TypeVar("R")

PactLocation = Union[str, os.PathLike, FileLocation]


@runtime_checkable
class PublishCapability(Protocol):
    """
    The broker client used to publish a pact.

    ``publish`` returns whatever the broker client reports on success (for
    example the URL of the latest pact version) and raises on failure.
    Transport, authentication and retries are the broker client's concern.
    """

    def publish(self, pact_json: str, consumer_version: str) -> Any: ...


@dataclass
class PublishOutcome:
    """Result of publishing a single pact file."""

    location: str
    status: str  # "published" or "failed"
    pact_name: Optional[str] = None
    error: Optional[PactBrokerClientException] = None
    response: Any = None
    duration_ms: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def succeeded(self) -> bool:
        return self.status == PUBLISHED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "location": self.location,
            "status": self.status,
            "pact_name": self.pact_name,
            "error": self.error.error_detail.to_dict() if self.error else None,
            "response": self.response if isinstance(self.response, (str, int, float, bool, dict, list)) else None,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp,
        }


@dataclass
class PublishReport:
    """Per-file outcomes of a publish batch, in input order."""

    consumer_version: str
    outcomes: List[PublishOutcome] = field(default_factory=list)
    overall_status: str = "unknown"  # "passed", "failed", "partial"
    total_files: int = 0
    published_files: int = 0
    failed_files: int = 0

    def add_outcome(self, outcome: PublishOutcome):
        """Add a file outcome to the report."""
        self.outcomes.append(outcome)
        self.total_files += 1

        if outcome.succeeded:
            self.published_files += 1
        else:
            self.failed_files += 1

        if self.failed_files == 0:
            self.overall_status = "passed"
        elif self.published_files == 0:
            self.overall_status = "failed"
        else:
            self.overall_status = "partial"

    @property
    def succeeded(self) -> bool:
        return self.total_files > 0 and self.failed_files == 0

    @property
    def successes(self) -> List[PublishOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failures(self) -> List[PublishOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "consumer_version": self.consumer_version,
            "overall_status": self.overall_status,
            "total_files": self.total_files,
            "published_files": self.published_files,
            "failed_files": self.failed_files,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


def _elapsed_ms(start_time: float) -> float:
    return (time.time() - start_time) * 1000


class PactPublisher:
    """
    Publishes pact files through a broker client.

    Files are processed one at a time unless ``max_workers`` is greater than
    one, in which case they are published on a thread pool. Outcomes are
    always reported in input order.
    """

    def __init__(
        self,
        broker_client: PublishCapability,
        max_workers: Optional[int] = None,
        validate_schema: Optional[bool] = None,
        encoding: Optional[str] = None,
    ):
        settings = get_settings()
        self.broker_client = broker_client
        self.max_workers = max_workers if max_workers is not None else settings.PACT_PUBLISH_MAX_WORKERS
        self.validate_schema = (
            validate_schema if validate_schema is not None else settings.PACT_SCHEMA_VALIDATION_ENABLED
        )
        self.encoding = encoding or settings.PACT_FILE_ENCODING
        self.merger = PactMerger()

        if self.max_workers < 1:
            raise create_configuration_error(
                f"max_workers must be at least 1, got {self.max_workers}",
                setting="PACT_PUBLISH_MAX_WORKERS",
            )

    def publish(self, files: Iterable[PactLocation], consumer_version: str) -> PublishReport:
        """
        Publish each pact file as it is on disk.

        Raises:
            PactConfigurationError: ``consumer_version`` is blank or no files
                were given. Nothing is published in that case.
        """
        locations = self._prepare(files, consumer_version)
        report = PublishReport(consumer_version=consumer_version)

        outcomes = self._map(lambda location: self._publish_file(location, consumer_version), locations)
        for outcome in outcomes:
            report.add_outcome(outcome)

        self._log_summary(report)
        return report

    def publish_merged(self, files: Iterable[PactLocation], consumer_version: str) -> PublishReport:
        """
        Merge pact files describing the same consumer/provider pair and
        publish one pact per pair.

        Every file in a merged group gets the group's outcome. A merge
        conflict fails that group only. Files without both participant
        names are published on their own.
        """
        locations = self._prepare(files, consumer_version)
        loaded = self._map(self._load, locations)

        outcomes: List[Optional[PublishOutcome]] = [None] * len(locations)
        groups: Dict[Tuple[str, Any], List[int]] = {}
        for index, item in enumerate(loaded):
            if isinstance(item, FileReadError):
                outcomes[index] = PublishOutcome(location=locations[index].identifier, status=FAILED, error=item)
                continue
            pact_name = item.document.pact_name
            key = ("pact", pact_name) if pact_name else ("file", index)
            groups.setdefault(key, []).append(index)

        group_indices = list(groups.values())
        group_outcomes = self._map(
            lambda indices: self._publish_group([loaded[i] for i in indices], consumer_version),
            group_indices,
        )
        for indices, results in zip(group_indices, group_outcomes):
            for index, outcome in zip(indices, results):
                outcomes[index] = outcome

        report = PublishReport(consumer_version=consumer_version)
        for outcome in outcomes:
            report.add_outcome(outcome)

        self._log_summary(report)
        return report

    def _prepare(self, files: Iterable[PactLocation], consumer_version: str) -> List[FileLocation]:
        if not (consumer_version and str(consumer_version).strip()):
            raise create_configuration_error("Please specify the consumer version", setting="consumer_version")

        locations = [PactFile.coerce(location, encoding=self.encoding) for location in files]
        if not locations:
            raise create_configuration_error("No pact files found", setting="files")
        return locations

    def _map(self, fn: Callable[[T], R], items: List[T]) -> List[R]:
        if self.max_workers == 1 or len(items) < 2:
            return [fn(item) for item in items]

        # map() yields results in submission order
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as executor:
            return list(executor.map(fn, items))

    def _load(self, location: FileLocation) -> Union[LoadedPact, FileReadError]:
        try:
            return load_pact(location, validate_schema=self.validate_schema)
        except FileReadError as e:
            logger.error(f"Failed to read pact file {location.identifier}: {e}", extra={"extra": e.error_detail.to_dict()})
            return e

    def _publish_file(self, location: FileLocation, consumer_version: str) -> PublishOutcome:
        start_time = time.time()

        loaded = self._load(location)
        if isinstance(loaded, FileReadError):
            return PublishOutcome(
                location=location.identifier,
                status=FAILED,
                error=loaded,
                duration_ms=_elapsed_ms(start_time),
            )

        pact_name = loaded.document.pact_name
        response, error = self._send(loaded.content, consumer_version, pact_name, location.identifier)
        return PublishOutcome(
            location=location.identifier,
            status=FAILED if error else PUBLISHED,
            pact_name=pact_name,
            error=error,
            response=response,
            duration_ms=_elapsed_ms(start_time),
        )

    def _merged_content(self, members: List[LoadedPact]) -> str:
        merged = self.merger.merge([member.document for member in members])
        try:
            return merged.to_json()
        except RecursionError as e:
            raise create_merge_error(
                PactErrorCode.MERGE_DOCUMENT_TOO_DEEP,
                f"{get_error_message(PactErrorCode.MERGE_DOCUMENT_TOO_DEEP)}: {merged.pact_name or '<unnamed>'}",
                details=str(e),
                cause=e,
            ) from e

    def _publish_group(self, members: List[LoadedPact], consumer_version: str) -> List[PublishOutcome]:
        start_time = time.time()
        pact_name = members[0].document.pact_name
        identifiers = [member.identifier for member in members]

        if len(members) == 1:
            content = members[0].content
        else:
            logger.info(f"Merging {', '.join(identifiers)}")
            try:
                content = self._merged_content(members)
            except PactMergeError as e:
                logger.error(f"Failed to merge {', '.join(identifiers)}: {e}", extra={"extra": e.error_detail.to_dict()})
                duration = _elapsed_ms(start_time)
                return [
                    PublishOutcome(location=identifier, status=FAILED, pact_name=pact_name, error=e, duration_ms=duration)
                    for identifier in identifiers
                ]

        response, error = self._send(content, consumer_version, pact_name, ", ".join(identifiers))
        duration = _elapsed_ms(start_time)
        return [
            PublishOutcome(
                location=identifier,
                status=FAILED if error else PUBLISHED,
                pact_name=pact_name,
                error=error,
                response=response,
                duration_ms=duration,
            )
            for identifier in identifiers
        ]

    def _send(
        self,
        content: str,
        consumer_version: str,
        pact_name: Optional[str],
        source: str,
    ) -> Tuple[Any, Optional[PublishError]]:
        label = pact_name or source
        logger.info(f"Publishing {label} (consumer version {consumer_version}) to pact broker")

        try:
            response = self.broker_client.publish(pact_json=content, consumer_version=consumer_version)
        except Exception as e:
            error = create_publish_error(
                f"Failed to publish {label} due to error: {type(e).__name__} - {e}",
                location=source,
                cause=e,
                pact_name=pact_name,
            )
            logger.error(str(error), extra={"extra": error.error_detail.to_dict()})
            return None, error

        if response is not None:
            logger.info(f"Published {label}: {response}")
        return response, None

    def _log_summary(self, report: PublishReport) -> None:
        if report.succeeded:
            logger.info(f"Published {report.published_files} pact file(s) for consumer version {report.consumer_version}")
        else:
            failed = ", ".join(outcome.location for outcome in report.failures)
            logger.warning(
                f"{report.failed_files} of {report.total_files} pact file(s) failed to publish "
                f"for consumer version {report.consumer_version}: {failed}"
            )
