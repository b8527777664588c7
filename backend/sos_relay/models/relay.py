import enum
from dataclasses import dataclass, field


class JobState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    POLLING = "POLLING"
    RESOLVED = "RESOLVED"
    POLL_EXHAUSTED = "POLL_EXHAUSTED"
    DISPATCHING = "DISPATCHING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class SearchJob:
    company_name: str
    record_id: str
    jurisdiction: str
    job_id: str = ""


@dataclass(frozen=True)
class DocumentRef:
    name: str
    source_url: str


@dataclass(frozen=True)
class BusinessRecord:
    profile_url: str | None = None
    documents: tuple[DocumentRef, ...] = ()


@dataclass(frozen=True)
class Pending:
    """Search still running upstream; present the token on the next call."""

    continuation_token: str
    payload: dict


@dataclass(frozen=True)
class Complete:
    records: tuple[BusinessRecord, ...]
    payload: dict


@dataclass(frozen=True)
class ResolvedSearch:
    """Final poller output. ``exhausted`` marks a degraded, possibly empty result."""

    payload: dict
    records: tuple[BusinessRecord, ...] = ()
    attempts: int = 1
    exhausted: bool = False


@dataclass(frozen=True)
class FetchedDocument:
    file_name: str
    content_type: str
    payload: bytes = field(repr=False)


@dataclass(frozen=True)
class Credential:
    token: str
    instance_url: str | None = None


@dataclass
class DispatchSummary:
    delivered: int = 0
    url_only: int = 0
    dropped: int = 0
    profile_links_sent: int = 0
    profile_links_failed: int = 0

    @property
    def total_documents(self) -> int:
        return self.delivered + self.url_only + self.dropped
