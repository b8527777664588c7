class RelayError(Exception):
    """Base class for failures raised by the relay pipeline."""


class UpstreamSearchError(RelayError):
    """The search API could not be reached or answered with an error status."""


class CredentialError(RelayError):
    """The CRM token endpoint refused or failed the password grant."""


class DocumentUnavailable(RelayError):
    """A document could not be downloaded, even after cookie priming."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{reason}: {url}")
        self.url = url
        self.reason = reason


class CallbackDeliveryError(RelayError):
    """A CRM callback endpoint rejected a payload or could not be reached."""

    def __init__(self, endpoint_kind: str, message: str, status_code: int | None = None):
        super().__init__(f"{endpoint_kind} callback failed: {message}")
        self.endpoint_kind = endpoint_kind
        self.status_code = status_code
