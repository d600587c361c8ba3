import os
import time
import threading
import logging
from typing import Any, Dict, List, Tuple, Type

from interfaces import SimulationEngine
from .alerts import Alert, active_alerts
from .atmosphere import CarbonDioxideRemediation
from .electrical import PowerSystem
from .errors import InvalidOperation
from .profiles import get_parameters
from .snapshot import Snapshot
from .subsystem import Subsystem
from .thermal import ExternalCoolantSystem, InternalCoolantSystem
from .types import Mode
from .water import WaterProcessor

logger = logging.getLogger("StationEngine")

SUBSYSTEM_TYPES: Tuple[Type[Subsystem], ...] = (
    CarbonDioxideRemediation,
    InternalCoolantSystem,
    ExternalCoolantSystem,
    PowerSystem,
    WaterProcessor,
)


class StationEngine(SimulationEngine):
    """
    Hosts one instance of every subsystem and ticks them on a schedule.

    The engine keeps only the latest snapshot and alert list per subsystem;
    history belongs to whoever consumes them. Subsystems share no state, the
    lock only serializes the background loop against external calls.
    """

    def __init__(self, subsystems: List[Subsystem] = None, seed: str = None):
        self._seed: str = seed if seed is not None else os.environ.get("STATION_SEED", "")
        self._simulation_speed: float = float(os.environ.get("SIMULATION_SPEED", "1.0"))
        self._tick_interval: float = float(os.environ.get("TICK_INTERVAL", "1.0"))

        if subsystems is None:
            subsystems = [self._create(cls) for cls in SUBSYSTEM_TYPES]
        self._subsystems: Dict[str, Subsystem] = {s.name: s for s in subsystems}

        self._snapshots: Dict[str, Snapshot] = {}
        self._alerts: Dict[str, List[Alert]] = {}
        for name, subsystem in self._subsystems.items():
            snapshot = subsystem.seed()
            self._snapshots[name] = snapshot
            self._alerts[name] = subsystem.evaluate(snapshot)

        self._tick_count = 0
        self._running = False
        self._thread = None
        self._lock = threading.Lock()
        logger.info(f"Station engine created with {len(self._subsystems)} subsystems")

    def _create(self, cls: Type[Subsystem]) -> Subsystem:
        overrides = {}
        if self._seed:
            # One derived seed per subsystem so instances never share a sequence
            overrides['seed'] = self._seed + "_" + cls.PROFILE
        return cls(get_parameters(cls.PROFILE, **overrides))

    @property
    def subsystem_names(self) -> List[str]:
        return list(self._subsystems)

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def running(self) -> bool:
        return self._running

    def subsystem(self, name: str) -> Subsystem:
        try:
            return self._subsystems[name]
        except KeyError:
            raise InvalidOperation(f"Unknown subsystem: {name}")

    def get_snapshot(self, name: str) -> Snapshot:
        self.subsystem(name)
        return self._snapshots[name]

    def get_alerts(self, name: str) -> List[Alert]:
        self.subsystem(name)
        return list(self._alerts[name])

    def tick_all(self) -> Dict[str, Tuple[Snapshot, List[Alert]]]:
        """Advance every subsystem one tick in its current mode."""
        results = {}
        with self._lock:
            for name, subsystem in self._subsystems.items():
                previous = self._snapshots[name]
                snapshot, alerts = subsystem.tick(previous, mode=previous.mode)
                self._log_alert_changes(name, self._alerts[name], alerts)
                self._snapshots[name] = snapshot
                self._alerts[name] = alerts
                results[name] = (snapshot, alerts)
            self._tick_count += 1
        return results

    def set_mode(self, name: str, mode: Mode) -> Snapshot:
        return self._apply(name, lambda s, snap: s.set_mode(snap, mode))

    def set_manual(self, name: str, field: str, value: Any) -> Snapshot:
        return self._apply(name, lambda s, snap: s.set_manual(snap, field, value))

    def command(self, name: str, command: str) -> Snapshot:
        return self._apply(name, lambda s, snap: s.command(snap, command))

    def reset(self, name: str) -> Snapshot:
        return self._apply(name, lambda s, snap: s.reset(snap))

    def _apply(self, name: str, operation) -> Snapshot:
        subsystem = self.subsystem(name)
        with self._lock:
            snapshot = operation(subsystem, self._snapshots[name])
            self._snapshots[name] = snapshot
            self._alerts[name] = subsystem.evaluate(snapshot)
        return snapshot

    def get_status(self) -> Dict[str, Any]:
        """Plain-data view of every subsystem for external consumers."""
        with self._lock:
            return {
                'tick_count': self._tick_count,
                'seed': self._seed,
                'simulation_speed': self._simulation_speed,
                'subsystems': {
                    name: {
                        'status': snapshot.status.value,
                        'mode': snapshot.mode.value,
                        'points': snapshot.get_points(),
                        'alerts': [a.to_dict() for a in active_alerts(self._alerts[name])],
                    }
                    for name, snapshot in self._snapshots.items()
                },
            }

    def _log_alert_changes(self, name: str, before: List[Alert], after: List[Alert]) -> None:
        previous = {a.field: a.severity for a in before}
        for alert in after:
            if previous.get(alert.field) is alert.severity:
                continue
            if alert.is_nominal:
                logger.info(f"{name}.{alert.field} back to normal")
            elif alert.severity.is_error:
                logger.warning(f"{name}.{alert.field} {alert.severity.value}: {alert.message}")
            else:
                logger.info(f"{name}.{alert.field} {alert.severity.value}: {alert.message}")

    def start(self) -> None:
        """Start the simulation loop."""
        self._running = True
        self._thread = threading.Thread(target=self._simulation_loop, daemon=True)
        self._thread.start()
        logger.info("Station Engine Started")

    def stop(self) -> None:
        """Stop the simulation loop."""
        self._running = False
        if self._thread:
            self._thread.join()
        logger.info("Station Engine Stopped")

    def _simulation_loop(self) -> None:
        while self._running:
            start_time = time.time()
            self.tick_all()

            # Sleep to maintain simulation speed
            elapsed = time.time() - start_time
            sleep_time = max(0.01, self._tick_interval / self._simulation_speed - elapsed)
            time.sleep(sleep_time)
