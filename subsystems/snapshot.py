from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List

from interfaces import PointProvider
from .control import ResourcePair
from .types import Mode, OperatingState


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Snapshot(PointProvider):
    """
    Point-in-time state of one subsystem.

    Snapshots are never mutated: each tick derives a new one from its
    predecessor with with_changes(). Equality is structural over every field,
    report_timestamp included.
    """
    report_timestamp: datetime = field(default_factory=utc_now)
    status: OperatingState = OperatingState.STANDBY
    mode: Mode = Mode.AUTOMATIC

    COMPONENT_NAME: ClassVar[str] = ""
    # Fields driven by control logic (and by simulated actuator failures)
    ACTUATOR_POINTS: ClassVar[FrozenSet[str]] = frozenset()
    # Operator setpoints; never touched by the generator
    SETPOINT_POINTS: ClassVar[FrozenSet[str]] = frozenset()

    @classmethod
    def writable_points(cls) -> FrozenSet[str]:
        """Fields that can be written with a manual override."""
        return cls.ACTUATOR_POINTS | cls.SETPOINT_POINTS

    @classmethod
    def point_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def with_changes(self, **changes) -> 'Snapshot':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes) if changes else self

    def actuator_values(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(self.ACTUATOR_POINTS)}

    def get_points(self) -> Dict[str, Any]:
        """Flatten into plain values for external serializers."""
        points: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, ResourcePair):
                points[f"{f.name}_active"] = _plain(value.active)
                points[f"{f.name}_standby"] = _plain(value.standby)
            else:
                points[f.name] = _plain(value)
        return points


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value
