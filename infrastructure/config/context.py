"""Resolve the per-run export context from global and environment settings."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from infrastructure.config.errors import ConfigurationError, ContextResolutionError
from infrastructure.config.types import EnvironmentConfig
from infrastructure.snapshot_export.events import EventBinding, parse_event_bindings

DEFAULT_SELECTION_KEY = "dev"

_REQUIRED_KEYS = ("app_name", "environment", "region", "account_number", "databases")


@dataclass(frozen=True)
class VpcConfig:
    id: str = ""
    cidr: str = ""
    private_subnet_ids: tuple[str, ...] = ()

    def missing_fields(self) -> list[str]:
        """Return the names of required VPC fields that are empty."""
        missing = []
        if not self.id:
            missing.append("id")
        if not self.cidr:
            missing.append("cidr")
        if not self.private_subnet_ids:
            missing.append("private_subnet_ids")
        return missing


@dataclass(frozen=True)
class DatabaseConfig:
    db_name: str
    s3_bucket_name: str
    # Empty means the app falls back to the default bindings.
    rds_events: tuple[EventBinding, ...] = ()


@dataclass(frozen=True)
class ExportContext:
    """Immutable configuration resolved once per run."""

    app_name: str
    environment: str
    region: str
    account_number: str
    vpc: VpcConfig
    databases: tuple[DatabaseConfig, ...]
    branch_name: str = ""
    nat_gateway_id: Optional[str] = None
    lambda_memory: int = 128
    lambda_timeout: int = 30
    log_level: str = "INFO"
    database_port: int = 5432
    removal_policy: str = "retain"
    exporter_asset_path: str = "assets/exporter"
    tags: Mapping[str, str] = field(default_factory=dict)
    # Entries rejected while parsing; the remaining databases are still derived.
    database_errors: tuple[ConfigurationError, ...] = ()


def _text(value: Any) -> str:
    return str(value or "").strip()


def _integer(config: Mapping[str, Any], key: str, default: int, environment: str) -> int:
    value = config.get(key)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{key}' must be an integer", environment=environment or None) from exc


def _parse_vpc(raw: Optional[Mapping[str, Any]]) -> VpcConfig:
    raw = raw or {}
    subnets = tuple(_text(s) for s in list(raw.get("private_subnet_ids") or []) if _text(s))
    return VpcConfig(id=_text(raw.get("id")), cidr=_text(raw.get("cidr")), private_subnet_ids=subnets)


def _parse_database(raw: Mapping[str, Any], environment: str) -> DatabaseConfig:
    db_name = _text(raw.get("db_name"))
    bucket_name = _text(raw.get("s3_bucket_name"))
    if not db_name:
        raise ConfigurationError("Database entry is missing 'db_name'", environment=environment)
    if not bucket_name:
        raise ConfigurationError(
            "Database entry is missing 's3_bucket_name'", database=db_name, environment=environment
        )
    try:
        bindings = parse_event_bindings(raw.get("rds_events") or [])
    except ConfigurationError as exc:
        raise ConfigurationError(str(exc), database=db_name, environment=environment) from exc
    return DatabaseConfig(db_name=db_name, s3_bucket_name=bucket_name, rds_events=bindings)


def parse_context(config: EnvironmentConfig | Mapping[str, Any]) -> ExportContext:
    """Parse a merged configuration mapping into an ``ExportContext``."""
    environment = _text(config.get("environment"))
    missing = [key for key in _REQUIRED_KEYS if not config.get(key)]
    if missing:
        raise ConfigurationError(
            f"Missing required configuration keys: {', '.join(missing)}", environment=environment or None
        )

    databases: list[DatabaseConfig] = []
    database_errors: list[ConfigurationError] = []
    for item in list(config.get("databases") or []):
        try:
            databases.append(_parse_database(item, environment))
        except ConfigurationError as exc:
            database_errors.append(exc)
    nat_gateway_id = _text(config.get("nat_gateway_id")) or None

    return ExportContext(
        app_name=_text(config.get("app_name")),
        environment=environment,
        region=_text(config.get("region")),
        account_number=_text(config.get("account_number")),
        vpc=_parse_vpc(config.get("vpc")),
        databases=tuple(databases),
        branch_name=_text(config.get("branch_name")),
        nat_gateway_id=nat_gateway_id,
        lambda_memory=_integer(config, "lambda_memory", 128, environment),
        lambda_timeout=_integer(config, "lambda_timeout", 30, environment),
        log_level=(_text(config.get("log_level")) or "INFO").upper(),
        database_port=_integer(config, "database_port", 5432, environment),
        removal_policy=(_text(config.get("removal_policy")) or "retain").lower(),
        exporter_asset_path=_text(config.get("exporter_asset_path")) or "assets/exporter",
        tags=dict(config.get("tags") or {}),
        database_errors=tuple(database_errors),
    )


def merge_settings(globals_config: Mapping[str, Any], environment: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay environment settings on globals; tag mappings are merged key by key."""
    merged: dict[str, Any] = {**globals_config, **environment}
    merged["tags"] = {**dict(globals_config.get("tags") or {}), **dict(environment.get("tags") or {})}
    return merged


def resolve_context(
    environments: Sequence[Mapping[str, Any]],
    globals_config: Mapping[str, Any],
    selection_key: str,
) -> ExportContext:
    """Select the environment matching ``selection_key`` and parse the merged settings.

    An entry matches when its ``branch_name`` or ``environment`` equals the key.
    """
    key = _text(selection_key)
    for entry in environments:
        if key and key in (_text(entry.get("branch_name")), _text(entry.get("environment"))):
            return parse_context(merge_settings(globals_config, entry))

    known = tuple(
        _text(entry.get("branch_name")) or _text(entry.get("environment"))
        for entry in environments
        if _text(entry.get("branch_name")) or _text(entry.get("environment"))
    )
    raise ContextResolutionError(key, known)


def current_git_branch(cwd: Optional[str] = None) -> Optional[str]:
    """Return the checked-out git branch, or None outside a work tree."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            capture_output=True,
            text=True,
            cwd=cwd,
            check=False,
        )
    except OSError:
        return None
    branch = result.stdout.strip()
    if result.returncode != 0 or not branch or branch == "HEAD":
        return None
    return branch


def selection_key_from(
    branch: Optional[str] = None,
    environment: Optional[str] = None,
    cwd: Optional[str] = None,
) -> str:
    """Pick the environment selection key.

    Explicit values win over ``SNAPSHOT_EXPORT_BRANCH``, which wins over the
    current git branch; ``dev`` is used when nothing else is available.
    """
    for candidate in (branch, environment, os.environ.get("SNAPSHOT_EXPORT_BRANCH")):
        if _text(candidate):
            return _text(candidate)
    return current_git_branch(cwd) or DEFAULT_SELECTION_KEY
