import pytest

from infrastructure.config.errors import ConfigurationError
from infrastructure.snapshot_export.events import (
    DEFAULT_EVENT_BINDINGS,
    EventBinding,
    RdsEventId,
    RdsSnapshotType,
    parse_event_bindings,
)


@pytest.mark.parametrize(
    "event_id, snapshot_type",
    [
        (RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED, RdsSnapshotType.DB_AUTOMATED_SNAPSHOT),
        (RdsEventId.DB_AUTOMATED_SNAPSHOT_CREATED, RdsSnapshotType.DB_AUTOMATED_SNAPSHOT),
        (RdsEventId.DB_MANUAL_SNAPSHOT_CREATED, RdsSnapshotType.DB_MANUAL_SNAPSHOT),
        (RdsEventId.DB_BACKUP_SNAPSHOT_FINISHED_COPY, RdsSnapshotType.DB_BACKUP_SNAPSHOT),
    ],
)
def test_consistent_bindings_are_accepted(event_id: RdsEventId, snapshot_type: RdsSnapshotType) -> None:
    binding = EventBinding(event_id, snapshot_type)

    assert binding.rds_event_id is event_id
    assert binding.rds_snapshot_type is snapshot_type


@pytest.mark.parametrize(
    "event_id, snapshot_type",
    [
        (RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED, RdsSnapshotType.DB_MANUAL_SNAPSHOT),
        (RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED, RdsSnapshotType.DB_BACKUP_SNAPSHOT),
        (RdsEventId.DB_MANUAL_SNAPSHOT_CREATED, RdsSnapshotType.DB_AUTOMATED_SNAPSHOT),
        (RdsEventId.DB_BACKUP_SNAPSHOT_FINISHED_COPY, RdsSnapshotType.DB_AUTOMATED_SNAPSHOT),
    ],
)
def test_inconsistent_bindings_are_rejected(event_id: RdsEventId, snapshot_type: RdsSnapshotType) -> None:
    with pytest.raises(ConfigurationError, match=event_id.value):
        EventBinding(event_id, snapshot_type)


def test_only_aurora_event_is_cluster_snapshot() -> None:
    bindings = parse_event_bindings(
        [
            {"rds_event_id": "RDS-EVENT-0169", "rds_snapshot_type": "AUTOMATED"},
            {"rds_event_id": "RDS-EVENT-0091", "rds_snapshot_type": "AUTOMATED"},
            {"rds_event_id": "RDS-EVENT-0042", "rds_snapshot_type": "MANUAL"},
            {"rds_event_id": "RDS-EVENT-0197", "rds_snapshot_type": "BACKUP"},
        ]
    )

    cluster = [b.rds_event_id for b in bindings if b.is_cluster_snapshot]
    assert cluster == [RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED]


def test_parse_keeps_order_and_normalizes_type_case() -> None:
    bindings = parse_event_bindings(
        [
            {"rds_event_id": "RDS-EVENT-0197", "rds_snapshot_type": "backup"},
            {"rds_event_id": " RDS-EVENT-0091 ", "rds_snapshot_type": "AUTOMATED"},
        ]
    )

    assert [b.rds_event_id.value for b in bindings] == ["RDS-EVENT-0197", "RDS-EVENT-0091"]
    assert bindings[0].rds_snapshot_type is RdsSnapshotType.DB_BACKUP_SNAPSHOT


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"rds_event_id": "RDS-EVENT-9999", "rds_snapshot_type": "AUTOMATED"}, "Unknown RDS event id"),
        ({"rds_event_id": "RDS-EVENT-0169", "rds_snapshot_type": "HOURLY"}, "Unknown RDS snapshot type"),
        ({"rds_snapshot_type": "AUTOMATED"}, "Unknown RDS event id"),
    ],
)
def test_parse_rejects_unknown_values(raw: dict, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        parse_event_bindings([raw])


def test_default_binding_is_automated_aurora_snapshot() -> None:
    assert DEFAULT_EVENT_BINDINGS == (
        EventBinding(RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED, RdsSnapshotType.DB_AUTOMATED_SNAPSHOT),
    )


def test_plain_string_values_are_coerced_to_enums() -> None:
    binding = EventBinding("RDS-EVENT-0169", "AUTOMATED")

    assert binding.rds_event_id is RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED
    assert binding.rds_snapshot_type is RdsSnapshotType.DB_AUTOMATED_SNAPSHOT
    assert binding == DEFAULT_EVENT_BINDINGS[0]


@pytest.mark.parametrize(
    "event_id, snapshot_type, message",
    [
        ("RDS-EVENT-0197", "MANUAL", "RDS-EVENT-0197 reports BACKUP"),
        ("RDS-EVENT-1234", "AUTOMATED", "Unknown RDS event id"),
        ("RDS-EVENT-0042", "WEEKLY", "Unknown RDS snapshot type"),
    ],
)
def test_plain_string_values_raise_configuration_errors(event_id: str, snapshot_type: str, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        EventBinding(event_id, snapshot_type)
