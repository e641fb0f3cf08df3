"""Configuration loaded from environment variables.

For local development, create a .env file in the project root.
"""

from pydantic import Field
from pydantic_settings import BaseSettings

from src.slotsync.rules import SiteRules


class SlotSyncConfig(BaseSettings):
    """Runtime configuration.

    Nested rule overrides use a double underscore, e.g.
    ``RULES__CLAIM_SUBMIT="button#save"``.
    """

    # Remote site (browser-only, no API exists)
    site_url: str = Field(
        default="https://www.hs-mittweida.de/studium/hochschulsport/trainingsanmeldung",
        description="Overview page listing the open sign-up weeks",
    )

    # Access gate
    password_hash: str = Field(
        default="",
        description="bcrypt hash of the shared access password",
    )

    # Edit-link store
    edit_link_dir: str = Field(
        default="data/edit-links",
        description="Directory holding one JSON record per week",
    )
    edit_link_pattern: str = Field(
        default=r"^https://terminplaner4\.dfn\.de/[A-Za-z0-9]+/vote/[A-Za-z0-9#]+$",
        description="Regex a manually supplied edit link must match",
    )

    # Browser
    headless: bool = Field(default=True, description="Run Chromium headless")
    page_timeout_ms: int = Field(
        default=30000,
        description="Default navigation and selector timeout in milliseconds",
    )
    block_resources: bool = Field(
        default=True,
        description="Abort image/font/media/stylesheet requests",
    )

    # Scraping retry policy (per week)
    scrape_attempts: int = Field(default=2, ge=1)
    scrape_retry_wait: float = Field(
        default=2.0,
        ge=0,
        description="Seconds to wait between attempts on transient errors",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    rules: SiteRules = Field(default_factory=SiteRules)

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }


_config: SlotSyncConfig | None = None


def get_config() -> SlotSyncConfig:
    """Get the configuration singleton.

    Returns:
        SlotSyncConfig: Configuration instance
    """
    global _config
    if _config is None:
        _config = SlotSyncConfig()
    return _config
