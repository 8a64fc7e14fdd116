"""RDS snapshot event identifiers and the bindings that drive subscriptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from infrastructure.config.errors import ConfigurationError


class RdsEventId(str, Enum):
    DB_AUTOMATED_AURORA_SNAPSHOT_CREATED = "RDS-EVENT-0169"
    DB_AUTOMATED_SNAPSHOT_CREATED = "RDS-EVENT-0091"
    DB_MANUAL_SNAPSHOT_CREATED = "RDS-EVENT-0042"
    DB_BACKUP_SNAPSHOT_FINISHED_COPY = "RDS-EVENT-0197"


class RdsSnapshotType(str, Enum):
    DB_AUTOMATED_SNAPSHOT = "AUTOMATED"
    DB_BACKUP_SNAPSHOT = "BACKUP"
    DB_MANUAL_SNAPSHOT = "MANUAL"


# Each event identifier is emitted for exactly one kind of snapshot.
SNAPSHOT_TYPE_BY_EVENT: dict[RdsEventId, RdsSnapshotType] = {
    RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED: RdsSnapshotType.DB_AUTOMATED_SNAPSHOT,
    RdsEventId.DB_AUTOMATED_SNAPSHOT_CREATED: RdsSnapshotType.DB_AUTOMATED_SNAPSHOT,
    RdsEventId.DB_MANUAL_SNAPSHOT_CREATED: RdsSnapshotType.DB_MANUAL_SNAPSHOT,
    RdsEventId.DB_BACKUP_SNAPSHOT_FINISHED_COPY: RdsSnapshotType.DB_BACKUP_SNAPSHOT,
}


@dataclass(frozen=True)
class EventBinding:
    """An RDS event identifier paired with the snapshot type it reports.

    Plain string values are coerced to their enum members.
    """

    rds_event_id: RdsEventId
    rds_snapshot_type: RdsSnapshotType

    def __post_init__(self) -> None:
        try:
            event_id = RdsEventId(self.rds_event_id)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown RDS event id: {self.rds_event_id!r}") from exc
        try:
            snapshot_type = RdsSnapshotType(self.rds_snapshot_type)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown RDS snapshot type: {self.rds_snapshot_type!r}") from exc
        object.__setattr__(self, "rds_event_id", event_id)
        object.__setattr__(self, "rds_snapshot_type", snapshot_type)

        expected = SNAPSHOT_TYPE_BY_EVENT[event_id]
        if self.rds_snapshot_type is not expected:
            raise ConfigurationError(
                f"Event {self.rds_event_id.value} reports {expected.value} snapshots, "
                f"not {self.rds_snapshot_type.value}"
            )

    @property
    def is_cluster_snapshot(self) -> bool:
        return self.rds_event_id is RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "EventBinding":
        """Build a binding from a ``{"rds_event_id", "rds_snapshot_type"}`` mapping."""
        event_raw = str(raw.get("rds_event_id", "") or "").strip()
        type_raw = str(raw.get("rds_snapshot_type", "") or "").strip().upper()
        return cls(rds_event_id=event_raw, rds_snapshot_type=type_raw)


DEFAULT_EVENT_BINDINGS: tuple[EventBinding, ...] = (
    EventBinding(
        rds_event_id=RdsEventId.DB_AUTOMATED_AURORA_SNAPSHOT_CREATED,
        rds_snapshot_type=RdsSnapshotType.DB_AUTOMATED_SNAPSHOT,
    ),
)


def parse_event_bindings(raw_items: Iterable[Mapping[str, Any]]) -> tuple[EventBinding, ...]:
    """Parse configured bindings, keeping their order."""
    return tuple(EventBinding.from_mapping(item) for item in raw_items)
