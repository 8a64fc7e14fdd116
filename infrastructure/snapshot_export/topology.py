"""Derive the full set of export resources for one database.

The derivation is pure: the same context, database and bindings always
produce the same ``ResourceTopology``. Provider wiring (ARNs, tokens) is
left to the stack that realizes it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence

from infrastructure.config.context import DatabaseConfig, ExportContext
from infrastructure.config.errors import ConfigurationError
from infrastructure.core.logging_utils import get_logger
from infrastructure.snapshot_export.events import EventBinding, RdsEventId

logger = get_logger(__name__)

# Storage tiering for exported snapshots (days after object creation).
COLD_TIER_DAYS = 7
ARCHIVE_TIER_DAYS = 97
EXPIRATION_DAYS = 365

EXPORTER_RUNTIME = "python3.12"
EXPORTER_HANDLER = "main.handler"
LAMBDA_FUNCTION_NAME_MAX_LENGTH = 64
TOPIC_DISPLAY_NAME = "rds-snapshot-creation"

_CATALOG_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")


class StorageClass(str, Enum):
    GLACIER = "GLACIER"
    DEEP_ARCHIVE = "DEEP_ARCHIVE"


class SubscriptionScope(Enum):
    """Which RDS events a subscription listens to."""

    CLUSTER_SNAPSHOT_CREATION = ("RdsSnapshotEventNotification", ("backup",), "db-cluster-snapshot")
    INSTANCE_SNAPSHOT_CREATION = ("RdsSnapshotEventNotification", ("creation",), "db-snapshot")
    BACKUP_COPY_COMPLETION = ("RdsBackupCopyEventNotification", ("notification",), "db-snapshot")

    def __init__(self, logical_id: str, event_categories: tuple[str, ...], source_type: str) -> None:
        self.logical_id = logical_id
        self.event_categories = event_categories
        self.source_type = source_type


@dataclass(frozen=True)
class LifecycleTransition:
    storage_class: StorageClass
    after_days: int


@dataclass(frozen=True)
class LifecyclePolicy:
    transitions: tuple[LifecycleTransition, ...]
    expiration_days: int

    def __post_init__(self) -> None:
        offsets = [t.after_days for t in self.transitions] + [self.expiration_days]
        if any(earlier >= later for earlier, later in zip(offsets, offsets[1:])) or offsets[0] <= 0:
            raise ConfigurationError(f"Lifecycle offsets must be positive and strictly increasing: {offsets}")


@dataclass(frozen=True)
class BucketSpec:
    bucket_name: str
    lifecycle: LifecyclePolicy
    block_public_access: bool = True


@dataclass(frozen=True)
class RoleSpec:
    logical_id: str
    service_principal: str
    description: str
    policy_name: str
    managed_policies: tuple[str, ...] = ()


@dataclass(frozen=True)
class KeySpec:
    alias: str
    enable_key_rotation: bool = True


@dataclass(frozen=True)
class TopicSpec:
    topic_name: str
    display_name: str = TOPIC_DISPLAY_NAME


@dataclass(frozen=True)
class SubscriptionSpec:
    scope: SubscriptionScope
    enabled: bool = True

    @property
    def logical_id(self) -> str:
        return self.scope.logical_id

    @property
    def event_categories(self) -> list[str]:
        return list(self.scope.event_categories)

    @property
    def source_type(self) -> str:
        return self.scope.source_type


@dataclass(frozen=True)
class SecurityGroupSpec:
    security_group_name: str
    ingress_cidr: str
    ingress_port: int
    description: str = "Allow Lambda to access RDS"


@dataclass(frozen=True)
class FunctionSpec:
    function_name: str
    environment: Mapping[str, str]
    runtime: str = EXPORTER_RUNTIME
    handler: str = EXPORTER_HANDLER
    memory_mb: int = 128
    timeout_seconds: int = 30
    subnet_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class CrawlerSpec:
    crawler_name: str
    database_name: str
    s3_target_path: str
    delete_behavior: str = "DELETE_FROM_DATABASE"
    update_behavior: str = "UPDATE_IN_DATABASE"


@dataclass(frozen=True)
class ResourceTopology:
    """Everything needed to provision the export pipeline for one database."""

    db_name: str
    short_name: str
    stack_name: str
    bucket: BucketSpec
    export_task_role: RoleSpec
    exporter_role: RoleSpec
    crawler_role: RoleSpec
    key: KeySpec
    topic: TopicSpec
    subscriptions: tuple[SubscriptionSpec, ...]
    security_group: SecurityGroupSpec
    function: FunctionSpec
    crawler: CrawlerSpec


def short_identifier(db_name: str) -> str:
    """Return the part of ``db_name`` before its first hyphen (the whole name if none)."""
    return db_name.split("-", 1)[0]


def sanitize_catalog_name(value: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9_]`` with an underscore."""
    return _CATALOG_UNSAFE.sub("_", value)


def resource_prefix(context: ExportContext, db_name: str) -> str:
    return f"{context.app_name}-{short_identifier(db_name)}-{context.environment}"


def default_lifecycle_policy() -> LifecyclePolicy:
    return LifecyclePolicy(
        transitions=(
            LifecycleTransition(StorageClass.GLACIER, COLD_TIER_DAYS),
            LifecycleTransition(StorageClass.DEEP_ARCHIVE, ARCHIVE_TIER_DAYS),
        ),
        expiration_days=EXPIRATION_DAYS,
    )


def derive_subscriptions(event_bindings: Sequence[EventBinding]) -> tuple[SubscriptionSpec, ...]:
    """Choose the RDS event subscriptions the requested bindings need.

    Exactly one snapshot-creation subscription is always emitted; a second one
    for backup copy completion is added only when that event is requested.
    """
    event_ids = {binding.rds_event_id for binding in event_bindings}
    wants_cluster = RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED in event_ids
    wants_backup_copy = RdsEventId.DB_BACKUP_SNAPSHOT_FINISHED_COPY in event_ids

    if wants_cluster:
        creation = SubscriptionScope.CLUSTER_SNAPSHOT_CREATION
    else:
        creation = SubscriptionScope.INSTANCE_SNAPSHOT_CREATION
    subscriptions = [SubscriptionSpec(creation)]

    if wants_backup_copy:
        subscriptions.append(SubscriptionSpec(SubscriptionScope.BACKUP_COPY_COMPLETION))

    logger.debug(
        "Derived RDS event subscriptions",
        extra={"scopes": [s.scope.name for s in subscriptions]},
    )
    return tuple(subscriptions)


def derive_handler_environment(
    event_bindings: Sequence[EventBinding], *, db_name: str, log_level: str = "INFO"
) -> dict[str, str]:
    """Build the exporter's environment; the three event lists share one index per binding."""
    event_ids: list[str] = []
    snapshot_types: list[str] = []
    db_snapshot_types: list[str] = []
    for binding in event_bindings:
        event_ids.append(binding.rds_event_id.value)
        snapshot_types.append(binding.rds_snapshot_type.value)
        db_snapshot_types.append("cluster-snapshot" if binding.is_cluster_snapshot else "snapshot")

    return {
        "RDS_EVENT_IDS": ",".join(event_ids),
        "RDS_SNAPSHOT_TYPES": ",".join(snapshot_types),
        "DB_SNAPSHOT_TYPES": ",".join(db_snapshot_types),
        "DB_NAME": db_name,
        "LOG_LEVEL": log_level,
    }


def _validate(context: ExportContext, database: DatabaseConfig, event_bindings: Sequence[EventBinding]) -> None:
    db_name = database.db_name
    if not db_name.strip():
        raise ConfigurationError("Database name must not be empty", environment=context.environment)
    if not event_bindings:
        raise ConfigurationError(
            "At least one RDS event binding is required", database=db_name, environment=context.environment
        )
    missing = context.vpc.missing_fields()
    if missing:
        raise ConfigurationError(
            f"VPC configuration is missing: {', '.join(missing)}",
            database=db_name,
            environment=context.environment,
        )
    if not database.s3_bucket_name.strip():
        raise ConfigurationError(
            "Export bucket name must not be empty", database=db_name, environment=context.environment
        )


def derive_topology(
    context: ExportContext,
    database: DatabaseConfig,
    event_bindings: Sequence[EventBinding],
) -> ResourceTopology:
    """Derive every resource definition for ``database``.

    Raises:
        ConfigurationError: when the database name or bindings are empty, the
            VPC settings are incomplete, or a derived name exceeds a provider limit.
    """
    _validate(context, database, event_bindings)

    db_name = database.db_name
    prefix = resource_prefix(context, db_name)

    function_name = f"{prefix}-snapshot-exporter"
    if len(function_name) > LAMBDA_FUNCTION_NAME_MAX_LENGTH:
        raise ConfigurationError(
            f"Function name '{function_name}' exceeds {LAMBDA_FUNCTION_NAME_MAX_LENGTH} characters",
            database=db_name,
            environment=context.environment,
        )

    topology = ResourceTopology(
        db_name=db_name,
        short_name=short_identifier(db_name),
        stack_name=prefix,
        bucket=BucketSpec(bucket_name=database.s3_bucket_name, lifecycle=default_lifecycle_policy()),
        export_task_role=RoleSpec(
            logical_id="SnapshotExportTaskRole",
            service_principal="export.rds.amazonaws.com",
            description="Role used by RDS to perform snapshot exports to S3",
            policy_name="SnapshotExportTaskPolicy",
        ),
        exporter_role=RoleSpec(
            logical_id="RdsSnapshotExporterLambdaExecutionRole",
            service_principal="lambda.amazonaws.com",
            description=f'RdsSnapshotExportToS3 Lambda execution role for the "{db_name}" database.',
            policy_name="SnapshotExporterLambdaPolicy",
            managed_policies=(
                "service-role/AWSLambdaBasicExecutionRole",
                "service-role/AWSLambdaVPCAccessExecutionRole",
            ),
        ),
        crawler_role=RoleSpec(
            logical_id="SnapshotExportsGlueCrawlerRole",
            service_principal="glue.amazonaws.com",
            description=f'Role used by Glue to crawl snapshot exports of the "{db_name}" database',
            policy_name="SnapshotExportsGlueCrawlerPolicy",
            managed_policies=("service-role/AWSGlueServiceRole",),
        ),
        key=KeySpec(alias=f"alias/{prefix}-snapshot-exports"),
        topic=TopicSpec(topic_name=f"{prefix}-snapshot-events"),
        subscriptions=derive_subscriptions(event_bindings),
        security_group=SecurityGroupSpec(
            security_group_name=f"{prefix}-lambda-sg",
            ingress_cidr=context.vpc.cidr,
            ingress_port=context.database_port,
        ),
        function=FunctionSpec(
            function_name=function_name,
            environment=derive_handler_environment(event_bindings, db_name=db_name, log_level=context.log_level),
            memory_mb=context.lambda_memory,
            timeout_seconds=context.lambda_timeout,
            subnet_ids=context.vpc.private_subnet_ids,
        ),
        crawler=CrawlerSpec(
            crawler_name=f"{prefix}-snapshot-crawler",
            database_name=sanitize_catalog_name(db_name),
            s3_target_path=f"s3://{database.s3_bucket_name}/",
        ),
    )

    logger.info(
        "Derived snapshot export topology",
        extra={
            "database": db_name,
            "environment": context.environment,
            "stack_name": topology.stack_name,
            "subscriptions": len(topology.subscriptions),
        },
    )
    return topology


def derive_all(
    context: ExportContext, default_bindings: Sequence[EventBinding]
) -> tuple[list[ResourceTopology], list[ConfigurationError]]:
    """Derive one topology per configured database, in configuration order.

    A database that fails validation, here or while its entry was parsed, is
    reported in the returned error list and does not stop derivation for the others.
    """
    topologies: list[ResourceTopology] = []
    errors: list[ConfigurationError] = list(context.database_errors)
    for exc in errors:
        logger.error("Skipping database with invalid configuration", extra={"error": str(exc)})
    for database in context.databases:
        try:
            topologies.append(derive_topology(context, database, database.rds_events or tuple(default_bindings)))
        except ConfigurationError as exc:
            logger.error("Skipping database with invalid configuration", extra={"error": str(exc)})
            errors.append(exc)
    return topologies, errors
