import logging
import math
import random
from abc import abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Mapping, Tuple, Type

from interfaces import PointDefinition, PointMetadataProvider
from .alerts import Alert, AlertEngine, AlertRule
from .control import ResourcePair
from .errors import ConfigurationError, InvalidOperation
from .parameters import SubsystemParameters
from .profiles import get_parameters
from .snapshot import Snapshot, utc_now
from .telemetry import TelemetryGenerator
from .types import Mode, OperatingState

logger = logging.getLogger("Subsystems")


class Subsystem(PointMetadataProvider):
    """
    Generic subsystem coordinator.

    One tick is generate -> apply forced readings -> control -> evaluate.
    Subclasses supply the snapshot type, the seed state, a telemetry
    generator, the control decision and the alert rules. Each instance owns
    its random source, its timers and its parameters; instances share nothing.
    """
    PROFILE: ClassVar[str] = ""
    SNAPSHOT: ClassVar[Type[Snapshot]] = Snapshot
    STATES: ClassVar[FrozenSet[OperatingState]] = frozenset()
    IDLE_STATE: ClassVar[OperatingState] = OperatingState.STANDBY
    COMMANDS: ClassVar[Tuple[str, ...]] = ()
    # Required profile keys, per section
    REQUIRES: ClassVar[Dict[str, Tuple[str, ...]]] = {}
    # Units for fields without a limit band of the same name
    UNITS: ClassVar[Dict[str, str]] = {}
    # Inclusive bounds enforced on manual writes
    BOUNDED_POINTS: ClassVar[Dict[str, Tuple[float, float]]] = {}

    def __init__(self, params: SubsystemParameters = None,
                 rng: random.Random = None,
                 clock: Callable[[], datetime] = None):
        self.params = params or get_parameters(self.PROFILE)
        self.params.require(**self.REQUIRES)
        if self.IDLE_STATE not in self.STATES:
            raise ConfigurationError(f"{self.name}: idle state {self.IDLE_STATE.value} is not a valid state")
        # Own random source, never the module-level one
        self.rng = rng or random.Random(self.params.seed)
        self.clock = clock or utc_now
        self.build_controls()
        self.generator = self.build_generator()
        self.alert_engine = AlertEngine(
            self.params, self.name,
            rules=self.build_rules(),
            invariants=self.build_invariants(),
        )

    @property
    def name(self) -> str:
        return self.SNAPSHOT.COMPONENT_NAME

    # Subsystem hooks

    @abstractmethod
    def seed_fields(self) -> Dict[str, Any]:
        """Initial field values, status included."""
        pass

    def build_controls(self) -> None:
        """Create the instance's timers, sweeps and valve controllers."""
        pass

    @abstractmethod
    def build_generator(self) -> TelemetryGenerator:
        pass

    @abstractmethod
    def build_rules(self) -> List[AlertRule]:
        pass

    def build_invariants(self) -> List[AlertRule]:
        return []

    @abstractmethod
    def control(self, snapshot: Snapshot) -> Snapshot:
        """Automatic control decision: actuator commands and state transitions."""
        pass

    def on_reset(self, snapshot: Snapshot) -> Snapshot:
        return snapshot

    # Operations

    def seed(self) -> Snapshot:
        """
        Initial state. Equal across calls only when the clock is injected,
        since report_timestamp is part of snapshot equality.
        """
        return self.SNAPSHOT(report_timestamp=self.clock(), **self.seed_fields())

    def tick(self, previous: Snapshot, mode: Mode = Mode.AUTOMATIC,
             readings: Mapping[str, Any] = None) -> Tuple[Snapshot, List[Alert]]:
        """
        Advance one step from previous.

        readings forces field values after generation, as an external sensor
        would. In Manual mode only sensor fields are generated and control is
        skipped, so actuators keep their (manually set) positions.
        """
        self._check_snapshot(previous)
        generated = self.generator.generate(previous, previous.status, mode)
        values = generated.merged(include_actuators=mode is Mode.AUTOMATIC)
        if readings:
            self._check_fields(readings)
            values.update(readings)

        snapshot = previous.with_changes(report_timestamp=self.clock(), mode=mode, **values)
        if snapshot.status not in self.STATES:
            raise InvalidOperation(f"{self.name}: {snapshot.status} is not a valid state")

        if mode is Mode.AUTOMATIC:
            snapshot = self.control(snapshot)
            self._log_transition(previous.status, snapshot.status)

        return snapshot, self.evaluate(snapshot)

    def evaluate(self, snapshot: Snapshot) -> List[Alert]:
        """Recompute alerts without advancing state."""
        return self.alert_engine.evaluate(snapshot)

    def set_mode(self, snapshot: Snapshot, mode: Mode) -> Snapshot:
        self._check_snapshot(snapshot)
        if snapshot.mode is not mode:
            logger.info(f"{self.name}: mode {snapshot.mode.value} -> {mode.value}")
        return snapshot.with_changes(mode=mode)

    def set_manual(self, snapshot: Snapshot, field: str, value: Any) -> Snapshot:
        """Override an actuator or setpoint; only allowed in Manual mode."""
        self._check_snapshot(snapshot)
        if snapshot.mode is not Mode.MANUAL:
            raise InvalidOperation(f"{self.name}: manual override of '{field}' requires Manual mode")
        if field not in snapshot.writable_points():
            raise InvalidOperation(f"{self.name}: '{field}' is not writable")

        coerced = _coerce(field, getattr(snapshot, field), value)
        bounds = self.BOUNDED_POINTS.get(field)
        if bounds is not None and not bounds[0] <= coerced <= bounds[1]:
            raise InvalidOperation(f"{self.name}: '{field}' must be within [{bounds[0]}, {bounds[1]}]")

        logger.info(f"{self.name}: manual override {field} = {coerced}")
        return snapshot.with_changes(**{field: coerced})

    def reset(self, snapshot: Snapshot) -> Snapshot:
        """Leave Trouble; there is no automatic recovery."""
        self._check_snapshot(snapshot)
        if snapshot.status is not OperatingState.TROUBLE:
            raise InvalidOperation(f"{self.name}: reset only applies in Trouble, status is {snapshot.status.value}")
        logger.info(f"{self.name}: reset from Trouble to {self.IDLE_STATE.value}")
        return self.on_reset(snapshot.with_changes(status=self.IDLE_STATE))

    def command(self, snapshot: Snapshot, name: str) -> Snapshot:
        """Run a crew command such as toggle_power."""
        self._check_snapshot(snapshot)
        if name not in self.COMMANDS:
            raise InvalidOperation(f"{self.name}: unknown command '{name}'")
        result = getattr(self, name)(snapshot)
        logger.info(f"{self.name}: command {name}")
        return result

    def get_point_definitions(self) -> List[PointDefinition]:
        monitored = set(self.alert_engine.monitored_fields)
        writable = self.SNAPSHOT.writable_points()
        definitions = []
        for name in self.SNAPSHOT.point_names():
            try:
                units = self.params.band(name).unit
            except ConfigurationError:
                units = self.UNITS.get(name, "")
            definitions.append(PointDefinition(
                name=name,
                units=units,
                writable=name in writable,
                monitored=name in monitored,
            ))
        return definitions

    # Helpers

    def _check_snapshot(self, snapshot: Snapshot) -> None:
        if not isinstance(snapshot, self.SNAPSHOT):
            raise InvalidOperation(f"{self.name}: expected a {self.SNAPSHOT.__name__}, got {type(snapshot).__name__}")

    def _check_fields(self, values: Mapping[str, Any]) -> None:
        known = set(self.SNAPSHOT.point_names())
        unknown = sorted(set(values) - known)
        if unknown:
            raise InvalidOperation(f"{self.name}: unknown fields {unknown}")

    def _log_transition(self, before: OperatingState, after: OperatingState) -> None:
        if before is after:
            return
        if after is OperatingState.TROUBLE:
            logger.warning(f"{self.name}: {before.value} -> Trouble")
        else:
            logger.info(f"{self.name}: {before.value} -> {after.value}")


def _coerce(field: str, current: Any, value: Any) -> Any:
    """Convert a manual value to the type of the field it replaces."""
    if isinstance(current, ResourcePair):
        return current.select(_coerce(field, current.active, value))
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        if value in (0, 1):
            return bool(value)
        raise InvalidOperation(f"'{field}' expects a boolean, got {value!r}")
    if isinstance(current, Enum):
        enum_type = type(current)
        if isinstance(value, enum_type):
            return value
        try:
            return enum_type(value)
        except ValueError:
            pass
        try:
            return enum_type[value]
        except (KeyError, TypeError):
            raise InvalidOperation(f"'{field}' expects one of {[m.value for m in enum_type]}, got {value!r}")
    if isinstance(value, bool):
        raise InvalidOperation(f"'{field}' expects a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidOperation(f"'{field}' expects a number, got {value!r}")
    if not math.isfinite(number):
        raise InvalidOperation(f"'{field}' expects a finite number, got {value!r}")
    return int(number) if isinstance(current, int) else number
