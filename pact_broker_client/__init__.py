"""
Client-side helpers for preparing and publishing pacts to a pact broker.

Merges pact documents that describe the same consumer/provider pair and
publishes batches of pact files with per-file isolation of failures.
"""

from .core.errors import ConflictError, FileReadError, PactConfigurationError, PublishError
from .core.merge import PactMerger, merge_pacts
from .core.pact import InteractionIdentity, PactDocument
from .core.pact_file import FileLocation, PactFile, load_pact
from .core.publish import PactPublisher, PublishCapability, PublishOutcome, PublishReport

__version__ = "0.1.0"

__all__ = [
    "ConflictError",
    "FileLocation",
    "FileReadError",
    "InteractionIdentity",
    "PactConfigurationError",
    "PactDocument",
    "PactFile",
    "PactMerger",
    "PactPublisher",
    "PublishCapability",
    "PublishError",
    "PublishOutcome",
    "PublishReport",
    "load_pact",
    "merge_pacts",
]
