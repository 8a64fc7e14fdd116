from dataclasses import replace

import pytest

from infrastructure.config.context import DatabaseConfig, VpcConfig
from infrastructure.config.errors import ConfigurationError
from infrastructure.snapshot_export.events import DEFAULT_EVENT_BINDINGS
from infrastructure.snapshot_export.topology import SubscriptionScope, derive_all, derive_topology
from tests.fixtures.context_builders import AURORA_CREATED, AUTOMATED_CREATED, BACKUP_COPIED, build_context

ORDERS = DatabaseConfig("orders-aurora-dev", "orders-exports-dev")


def test_derivation_is_deterministic() -> None:
    context = build_context()

    first = derive_topology(context, ORDERS, [AURORA_CREATED, BACKUP_COPIED])
    second = derive_topology(context, ORDERS, [AURORA_CREATED, BACKUP_COPIED])

    assert first == second


def test_topology_contains_every_resource_definition() -> None:
    context = build_context()
    topology = derive_topology(context, ORDERS, [AURORA_CREATED])

    assert topology.db_name == "orders-aurora-dev"
    assert topology.bucket.bucket_name == "orders-exports-dev"
    assert topology.bucket.block_public_access is True
    assert topology.export_task_role.service_principal == "export.rds.amazonaws.com"
    assert topology.exporter_role.service_principal == "lambda.amazonaws.com"
    assert "orders-aurora-dev" in topology.exporter_role.description
    assert topology.exporter_role.managed_policies == (
        "service-role/AWSLambdaBasicExecutionRole",
        "service-role/AWSLambdaVPCAccessExecutionRole",
    )
    assert topology.crawler_role.service_principal == "glue.amazonaws.com"
    assert topology.crawler_role.managed_policies == ("service-role/AWSGlueServiceRole",)
    assert topology.topic.display_name == "rds-snapshot-creation"
    assert topology.security_group.ingress_cidr == "10.0.0.0/16"
    assert topology.security_group.ingress_port == 5432


def test_empty_bindings_fail() -> None:
    """
    Given: 비어 있는 이벤트 바인딩 목록
    When: 토폴로지 도출
    Then: ConfigurationError 발생
    """
    with pytest.raises(ConfigurationError, match="event binding") as excinfo:
        derive_topology(build_context(), ORDERS, [])

    assert excinfo.value.database == "orders-aurora-dev"
    assert excinfo.value.environment == "dev"


@pytest.mark.parametrize("db_name", ["", "   ", "\t"])
def test_blank_database_name_fails(db_name: str) -> None:
    with pytest.raises(ConfigurationError, match="Database name"):
        derive_topology(build_context(), DatabaseConfig(db_name, "bucket"), [AURORA_CREATED])


def test_blank_bucket_name_fails() -> None:
    with pytest.raises(ConfigurationError, match="bucket name") as excinfo:
        derive_topology(build_context(), DatabaseConfig("orders-aurora-dev", "  "), [AURORA_CREATED])

    assert excinfo.value.database == "orders-aurora-dev"


@pytest.mark.parametrize(
    "vpc, missing",
    [
        (VpcConfig(id="", cidr="10.0.0.0/16", private_subnet_ids=("subnet-1",)), "id"),
        (VpcConfig(id="vpc-1", cidr="", private_subnet_ids=("subnet-1",)), "cidr"),
        (VpcConfig(id="vpc-1", cidr="10.0.0.0/16", private_subnet_ids=()), "private_subnet_ids"),
    ],
)
def test_incomplete_vpc_fails(vpc: VpcConfig, missing: str) -> None:
    with pytest.raises(ConfigurationError, match=missing):
        derive_topology(build_context(vpc=vpc), ORDERS, [AURORA_CREATED])


def test_overlong_function_name_fails() -> None:
    context = build_context(app_name="a-very-long-application-name-for-snapshot-exports")

    with pytest.raises(ConfigurationError, match="exceeds 64 characters"):
        derive_topology(context, ORDERS, [AURORA_CREATED])


def test_derive_all_uses_database_bindings_or_defaults_in_order() -> None:
    billing = DatabaseConfig("billing-pg-dev", "billing-exports-dev", rds_events=(AUTOMATED_CREATED, BACKUP_COPIED))
    context = build_context([ORDERS, billing])

    topologies, errors = derive_all(context, DEFAULT_EVENT_BINDINGS)

    assert errors == []
    assert [t.db_name for t in topologies] == ["orders-aurora-dev", "billing-pg-dev"]
    assert [s.scope for s in topologies[0].subscriptions] == [SubscriptionScope.CLUSTER_SNAPSHOT_CREATION]
    assert [s.scope for s in topologies[1].subscriptions] == [
        SubscriptionScope.INSTANCE_SNAPSHOT_CREATION,
        SubscriptionScope.BACKUP_COPY_COMPLETION,
    ]


def test_derive_all_isolates_failing_database() -> None:
    """
    Given: 잘못된 DB 항목이 포함된 컨텍스트
    When: 전체 토폴로지 도출
    Then: 해당 DB만 오류로 보고되고 나머지는 정상 도출
    """
    broken = DatabaseConfig("", "orphan-bucket")
    context = build_context([broken, ORDERS])

    topologies, errors = derive_all(context, DEFAULT_EVENT_BINDINGS)

    assert [t.db_name for t in topologies] == ["orders-aurora-dev"]
    assert len(errors) == 1
    assert isinstance(errors[0], ConfigurationError)


def test_derive_all_reports_every_database_when_vpc_is_missing() -> None:
    context = replace(build_context([ORDERS]), vpc=VpcConfig())

    topologies, errors = derive_all(context, DEFAULT_EVENT_BINDINGS)

    assert topologies == []
    assert [e.database for e in errors] == ["orders-aurora-dev"]
