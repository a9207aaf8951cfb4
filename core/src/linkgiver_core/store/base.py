from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from linkgiver_core.errors import VersionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")
V = TypeVar("V")

JSONDoc = dict[str, Any]
Mutator = Callable[[JSONDoc], JSONDoc]


@dataclass(frozen=True)
class DocumentRef:
    """A named JSON document plus the value it is created with when missing."""

    name: str
    initial: JSONDoc = field(default_factory=dict)

    def initial_value(self) -> JSONDoc:
        return copy.deepcopy(self.initial)


URLS = DocumentRef("urls", {"urls": []})
PINS = DocumentRef("pins", {"pins": ["1234"]})
STATE = DocumentRef("state", {"enabled": True})


def with_optimistic_update(
    read: Callable[[], tuple[T, V]],
    mutate: Callable[[T], T],
    write: Callable[[T, V, int], object],
    *,
    max_retries: int = 1,
    conflict: type[Exception] = VersionConflict,
) -> T:
    """Read, mutate and conditionally write, replaying on a version conflict.

    ``write`` receives the mutated value, the version it was derived from and the
    attempt number (0 for the first try). After ``max_retries`` replays the conflict
    propagates to the caller.
    """

    attempt = 0
    while True:
        value, version = read()
        updated = mutate(value)
        try:
            write(updated, version, attempt)
            return updated
        except conflict:
            if attempt >= max_retries:
                raise
            attempt += 1
            logger.info("Version conflict; retrying update (attempt %d)", attempt)


class KeyedJSONStore(ABC):
    """A handful of named JSON documents with versioned, conditional writes."""

    backend_name = "abstract"

    def __init__(self, *, max_retries: int = 1) -> None:
        self.max_retries = max_retries

    @abstractmethod
    def get_or_init(self, doc: DocumentRef) -> tuple[JSONDoc, str]:
        """Return (value, version token), creating the document from doc.initial if missing."""

    @abstractmethod
    def put(
        self,
        doc: DocumentRef,
        value: JSONDoc,
        expected_version: str | None = None,
        *,
        message: str | None = None,
    ) -> str:
        """Write value and return the new version token.

        Raises VersionConflict when expected_version is given and is not current.
        """

    def read(self, doc: DocumentRef) -> JSONDoc:
        value, _ = self.get_or_init(doc)
        return value

    def update(
        self,
        doc: DocumentRef,
        mutate: Mutator,
        *,
        message: str | None = None,
    ) -> JSONDoc:
        def _write(value: JSONDoc, version: str, attempt: int) -> str:
            msg = message or f"update {doc.name}"
            if attempt:
                msg = f"{msg} (retry)"
            return self.put(doc, value, version, message=msg)

        return with_optimistic_update(
            lambda: self.get_or_init(doc),
            mutate,
            _write,
            max_retries=self.max_retries,
        )
