from sos_relay.models.relay import (
    BusinessRecord,
    Complete,
    Credential,
    DispatchSummary,
    DocumentRef,
    FetchedDocument,
    JobState,
    Pending,
    ResolvedSearch,
    SearchJob,
)

__all__ = [
    "BusinessRecord",
    "Complete",
    "Credential",
    "DispatchSummary",
    "DocumentRef",
    "FetchedDocument",
    "JobState",
    "Pending",
    "ResolvedSearch",
    "SearchJob",
]
