"""Typed configuration contracts for environment-specific settings."""

from __future__ import annotations

from typing import Dict, List, NotRequired, Required, TypedDict


class EventBindingConfig(TypedDict):
    """RDS event identifier paired with the snapshot type it produces."""

    rds_event_id: str
    rds_snapshot_type: str


class DatabaseSettings(TypedDict, total=False):
    """Configuration for one database whose snapshots are exported."""

    db_name: Required[str]
    s3_bucket_name: Required[str]
    rds_events: NotRequired[List[EventBindingConfig]]


class VpcSettings(TypedDict, total=False):
    """Identity of the existing VPC the exporter function runs in."""

    id: str
    cidr: str
    private_subnet_ids: List[str]


class EnvironmentConfig(TypedDict, total=False):
    """Strongly-typed environment configuration contract.

    Global settings and one environment entry are merged into a single
    mapping of this shape before parsing.
    """

    app_name: Required[str]
    environment: Required[str]
    region: Required[str]
    account_number: Required[str | None]
    branch_name: NotRequired[str]
    nat_gateway_id: NotRequired[str]

    vpc: NotRequired[VpcSettings]
    databases: Required[List[DatabaseSettings]]

    lambda_memory: NotRequired[int]
    lambda_timeout: NotRequired[int]
    log_level: NotRequired[str]
    database_port: NotRequired[int]
    removal_policy: NotRequired[str]
    exporter_asset_path: NotRequired[str]

    tags: NotRequired[Dict[str, str]]
