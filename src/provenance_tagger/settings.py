"""Service settings for provenance-tagger.

Settings use the PROVENANCE_TAGGER_ prefix and cover:
- Logging
- Azure Resource Manager endpoint, timeouts and retries
- EventFilter lists (excluded operations, ignored resources, included types)
- Time zone for the TimeCreatedInPST tag

List settings are read from JSON-encoded environment variables, e.g.
PROVENANCE_TAGGER_INCLUDED_RESOURCE_TYPES='["Microsoft.Compute/virtualMachines"]'.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from provenance_tagger.core.event_filter import (
    DEFAULT_EXCLUDED_OPERATIONS,
    DEFAULT_IGNORED_RESOURCE_PATTERNS,
    DEFAULT_INCLUDED_RESOURCE_TYPES,
)
from provenance_tagger.core.reconciler import DEFAULT_PACIFIC_TIMEZONE


class Settings(BaseSettings):
    """Settings for provenance-tagger.

    Environment variable prefix: PROVENANCE_TAGGER_
    """

    service_name: str = "provenance-tagger"

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    log_level: str = Field(default="INFO", description="Minimum log level name.")
    log_json: bool = Field(
        default=True,
        description="Emit JSON log lines. Disable for human-readable local output.",
    )

    # -------------------------------------------------------------------------
    # Azure Resource Manager
    # -------------------------------------------------------------------------

    arm_endpoint: str = Field(
        default="https://management.azure.com",
        description="Azure Resource Manager base URL. Override for sovereign clouds.",
    )
    arm_scope: str = Field(
        default="https://management.azure.com/.default",
        description="OAuth scope requested from the Azure credential.",
    )
    arm_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for each Resource Manager request.",
    )
    arm_retry_total: int = Field(
        default=3,
        description="Retries the Azure SDK pipeline makes before a failure is reported.",
    )

    # -------------------------------------------------------------------------
    # Event filter lists
    # -------------------------------------------------------------------------

    excluded_operations: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_OPERATIONS),
        description="Operation names that never lead to a tag write. "
        "A trailing * matches by prefix.",
    )
    ignored_resource_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORED_RESOURCE_PATTERNS),
        description="Case-insensitive substrings that mark a resource id as ignored.",
    )
    included_resource_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INCLUDED_RESOURCE_TYPES),
        description="Resource types eligible for provenance tagging. "
        "Microsoft.Resources/resourceGroups covers resource groups.",
    )

    # -------------------------------------------------------------------------
    # Tag formatting
    # -------------------------------------------------------------------------

    pacific_timezone: str = Field(
        default=DEFAULT_PACIFIC_TIMEZONE,
        description="IANA time zone rendered into the TimeCreatedInPST tag.",
    )

    model_config = SettingsConfigDict(env_prefix="PROVENANCE_TAGGER_")
