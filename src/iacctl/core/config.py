"""
Configuration schema and loading for iacctl.

Uses Pydantic for validation and Dynaconf for multi-source loading of the
CLI settings. Migration plans are plain YAML documents with ${VAR}
expansion. Settings are frozen (immutable) after construction and passed
explicitly down the call chain.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from iacctl.contracts import FailureMode, RegistryType

DEFAULT_SETTINGS_PATH = Path.home() / ".iacctl" / "settings.yaml"

# ${VAR} or $VAR; unset variables expand to the empty string
_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


class PollingSettings(BaseModel):
    """Cadence of the orchestration poll loops.

    Example YAML:
        polling:
          stage_interval_seconds: 3
          step_interval_seconds: 1
          readiness_interval_seconds: 0.5
          readiness_timeout_seconds: 5
    """

    model_config = {"frozen": True}

    stage_interval_seconds: float = Field(default=3.0, gt=0)
    step_interval_seconds: float = Field(default=1.0, gt=0)
    readiness_interval_seconds: float = Field(default=0.5, gt=0)
    readiness_timeout_seconds: float = Field(default=5.0, gt=0)
    log_drain_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Grace period for in-flight log output after the last stage",
    )


class HTTPSettings(BaseModel):
    """Transport settings shared by every remote client."""

    model_config = {"frozen": True}

    timeout_seconds: float = Field(default=10.0, gt=0)
    retries: int = Field(default=3, ge=0, description="Connection-level retries")


class IacctlSettings(BaseModel):
    """Top-level CLI settings.

    Built once at startup and handed to whatever needs it; nothing reads
    settings from module state.

    Example YAML:
        api_base_url: https://app.example.io
        account_id: abc123
        org_id: default
        project_id: infra
        api_key: ${IACCTL_API_KEY}
    """

    model_config = {"frozen": True}

    api_base_url: str = Field(default="https://app.harness.io")
    log_service_url: str | None = Field(
        default=None,
        description="Log service base URL, defaults to api_base_url",
    )
    registry_url: str | None = Field(
        default=None,
        description="Migration tracker base URL, defaults to api_base_url",
    )
    pkg_url: str | None = Field(
        default=None,
        description="Package upload base URL for the destination registry",
    )
    api_key: str = Field(default="", repr=False)
    account_id: str = ""
    org_id: str = ""
    project_id: str = ""
    polling: PollingSettings = Field(default_factory=PollingSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)

    @field_validator("api_base_url", "log_service_url", "registry_url", "pkg_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.rstrip("/")

    @property
    def effective_log_service_url(self) -> str:
        return self.log_service_url or self.api_base_url

    @property
    def effective_registry_url(self) -> str:
        return self.registry_url or self.api_base_url


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> IacctlSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (IACCTL_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: IACCTL_POLLING__STAGE_INTERVAL_SECONDS for
    nested keys.

    Args:
        config_path: Path to YAML configuration file. None means the default
            location, which may be absent (environment only).

    Returns:
        Validated IacctlSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If an explicitly given config file doesn't exist
    """
    from dynaconf import Dynaconf

    settings_files: list[str] = []
    if config_path is not None:
        # Dynaconf silently accepts missing files
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        settings_files.append(str(config_path))
    elif DEFAULT_SETTINGS_PATH.exists():
        settings_files.append(str(DEFAULT_SETTINGS_PATH))

    dynaconf_settings = Dynaconf(
        envvar_prefix="IACCTL",
        settings_files=settings_files,
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; also filter out internal Dynaconf settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): _lower_keys(v)
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }
    return IacctlSettings(**raw_config)


# === Migration plan ===


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class MigrationOptions(_CamelModel):
    dry_run: bool = Field(default=False, alias="dryRun")
    concurrency: int = Field(default=5, gt=0)
    failure_mode: FailureMode = Field(default=FailureMode.CONTINUE, alias="failureMode")

    @field_validator("failure_mode", mode="before")
    @classmethod
    def normalise_failure_mode(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.lower()
        return v


class CredentialsConfig(_CamelModel):
    username: str = ""
    password: str = Field(default="", repr=False)
    token: str = Field(default="", repr=False)

    # An unset ${VAR} leaves an empty YAML scalar, which loads as None
    @field_validator("username", "password", "token", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class RegistryEndpointConfig(_CamelModel):
    """Connection details for a source or destination registry."""

    endpoint: str
    type: RegistryType
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)

    @field_validator("type", mode="before")
    @classmethod
    def normalise_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "RegistryEndpointConfig":
        creds = self.credentials
        if not creds.token and not creds.username:
            raise ValueError("either token or username must be provided for authentication")
        if creds.username and not creds.password:
            raise ValueError("password must be provided when using username authentication")
        return self


class NamePatterns(_CamelModel):
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


class RegistryMapping(_CamelModel):
    """Which source registry goes where.

    Slashes in the destination scope the registry: "registry" (account),
    "org/registry" (organisation) or "org/project/registry" (project).
    """

    source_registry: str = Field(alias="sourceRegistry", min_length=1)
    destination_registry: str = Field(alias="destinationRegistry", min_length=1)
    artifact_name_patterns: NamePatterns = Field(
        default_factory=NamePatterns, alias="artifactNamePatterns"
    )


class FiltersConfig(_CamelModel):
    registries: list[str] = Field(default_factory=list)
    artifact_type: str = Field(default="", alias="artifactType")

    @field_validator("registries")
    @classmethod
    def validate_registries_not_blank(cls, v: list[str]) -> list[str]:
        for i, name in enumerate(v):
            if not name:
                raise ValueError(f"filter registry {i} cannot be empty")
        return v

    @field_validator("artifact_type", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class MigrationConfig(_CamelModel):
    """A migration plan file.

    Example YAML:
        version: "1"
        migration:
          concurrency: 5
          failureMode: continue
        source:
          endpoint: https://acme.jfrog.io
          type: JFROG
          credentials: {username: me, password: ${JFROG_PASSWORD}}
        destination:
          endpoint: https://app.harness.io
          type: HAR
          credentials: {token: ${HARNESS_API_KEY}}
        overrides:
          - sourceRegistry: generic-local
            destinationRegistry: generic-migrated
        filters:
          artifactType: GENERIC
    """

    version: str = "1"
    migration: MigrationOptions = Field(default_factory=MigrationOptions)
    source: RegistryEndpointConfig
    destination: RegistryEndpointConfig
    mappings: list[RegistryMapping] = Field(alias="overrides")
    filters: FiltersConfig = Field(default_factory=FiltersConfig)
    overwrite: bool = False

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("mappings")
    @classmethod
    def validate_mappings_not_empty(cls, v: list[RegistryMapping]) -> list[RegistryMapping]:
        if not v:
            raise ValueError("at least one registry mapping must be defined")
        return v

    @model_validator(mode="after")
    def validate_artifact_type(self) -> "MigrationConfig":
        if not self.filters.artifact_type:
            raise ValueError("filter artifact type cannot be empty")
        return self


def _expand_env(content: str) -> str:
    return _ENV_REFERENCE.sub(
        lambda m: os.environ.get(m.group(1) or m.group(2), ""),
        content,
    )


def load_migration_config(config_path: Path) -> MigrationConfig:
    """Load a migration plan, expanding ${VAR} references from the environment.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the document is not a YAML mapping
        ValidationError: If the plan fails Pydantic validation
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    expanded = _expand_env(config_path.read_text(encoding="utf-8"))
    raw = yaml.safe_load(expanded)
    if not isinstance(raw, dict):
        raise ValueError(f"Migration config must be a YAML mapping: {config_path}")
    return MigrationConfig.model_validate(raw)
