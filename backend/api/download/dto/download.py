"""Download Data Transfer Objects."""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from api.files.dto.file import FileRecord


class Outcome(str, Enum):
    SERVED = "SERVED"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"


DENIAL_MESSAGES = {
    Outcome.NOT_FOUND: "No file is shared under this link",
    Outcome.EXPIRED: "This link has expired",
    Outcome.FORBIDDEN: "This link cannot be used from your network address",
    Outcome.QUOTA_EXCEEDED: "This link has reached its download limit",
}


@dataclass(frozen=True)
class RetrievalHandle:
    """Short-lived access to the bytes of one served download."""

    key: str
    file_name: str
    mime_type: str
    size: int
    url: str
    _opener: Callable[[str], Iterator[bytes]] = field(repr=False)

    def open(self) -> Iterator[bytes]:
        return self._opener(self.key)


@dataclass(frozen=True)
class Redemption:
    outcome: Outcome
    record: FileRecord | None = None
    handle: RetrievalHandle | None = None

    @property
    def served(self) -> bool:
        return self.outcome is Outcome.SERVED

    @property
    def message(self) -> str:
        return DENIAL_MESSAGES.get(self.outcome, "")
