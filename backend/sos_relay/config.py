from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_prefix: str = "/v1"
    # Inbound callers must send this as x-api-key when set.
    inbound_api_key: str | None = None
    log_level: str = "INFO"

    # Business-registry search API
    search_api_endpoint: str = "https://apigateway.cobaltintelligence.com/v1/search"
    search_api_key: str = ""
    search_jurisdiction_param: str = "state"
    search_live_data: bool = True
    search_timeout_seconds: float = 120.0
    poll_max_attempts: int = 3
    poll_delay_seconds: float = 15.0

    # CRM callbacks
    callback_base: str = ""
    record_callback_path: str = "/services/apexrest/creditapp/sos/callback"
    file_callback_path: str = "/services/apexrest/creditapp/sos/file"
    callback_timeout_seconds: float = 60.0

    # CRM password grant
    token_endpoint: str = ""
    client_id: str = ""
    client_secret: str = ""
    username: str = ""
    password: str = ""
    token_timeout_seconds: float = 60.0

    # Document downloads
    download_timeout_seconds: float = 60.0
    download_max_redirects: int = 5
    download_max_bytes: int = 25 * 1024 * 1024  # 25 MiB
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    default_content_type: str = "application/pdf"

    # Relay
    max_workers: int = 4
    profile_link_mode: Literal["url", "html", "pdf"] = "url"

    @property
    def resolved_token_endpoint(self) -> str:
        if self.token_endpoint:
            return self.token_endpoint
        return self.callback_base.rstrip("/") + "/services/oauth2/token"

    model_config = {"env_prefix": "SOS_RELAY_"}


settings = Settings()
