"""
Thermal control: the internal (cabin side) coolant loops and the external
ammonia loop with its radiator.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .alerts import AlertRule, Expect, FieldRule, FlagRule, InvariantRule
from .control import ResourcePair, Sweep, TickCounter, ValveController
from .errors import InvalidOperation
from .snapshot import Snapshot
from .subsystem import Subsystem
from .telemetry import GeneratedFields, TelemetryGenerator
from .types import CoolantLoop, Mode, OperatingState, PumpOption, Severity

logger = logging.getLogger("Subsystems")

COOLANT_STATES = frozenset({OperatingState.STANDBY, OperatingState.ON, OperatingState.TROUBLE})


def _valve_rule(field: str, label: str) -> FieldRule:
    return FieldRule(field, band='mix_valve_position', messages={
        Severity.HIGH_ERROR: f"{label} is fully open",
        Severity.HIGH_WARNING: f"{label} is almost fully open",
        Severity.LOW_ERROR: f"{label} is fully closed",
        Severity.LOW_WARNING: f"{label} is almost fully closed",
    })


def _default_loops() -> ResourcePair:
    return ResourcePair(active=CoolantLoop.LOW_TEMP, standby=CoolantLoop.MED_TEMP)


@dataclass(frozen=True)
class InternalCoolantSnapshot(Snapshot):
    low_temp_pump_on: bool = False
    med_temp_pump_on: bool = False
    # 0 = bypass the heat exchanger, 100 = all flow through it
    low_temp_mix_valve_position: float = 0.0
    med_temp_mix_valve_position: float = 0.0
    crossover_mix_valve_position: float = 0.0
    # Both loops running as one on the active loop's pump
    single_loop: bool = False
    loops: ResourcePair = field(default_factory=_default_loops)
    temp_low_loop: float = 4.0  # °C
    temp_med_loop: float = 10.5  # °C
    set_temp_low_loop: float = 4.0
    set_temp_med_loop: float = 10.5

    COMPONENT_NAME = "InternalCoolantSystem"
    ACTUATOR_POINTS = frozenset({
        'low_temp_pump_on', 'med_temp_pump_on', 'low_temp_mix_valve_position',
        'med_temp_mix_valve_position', 'crossover_mix_valve_position',
        'single_loop', 'loops',
    })
    SETPOINT_POINTS = frozenset({'set_temp_low_loop', 'set_temp_med_loop'})


class InternalCoolantGenerator(TelemetryGenerator):
    """Loop temperatures drift up while the system is off; pumps fail at random."""

    def generate(self, previous: InternalCoolantSnapshot, status: OperatingState, mode: Mode) -> GeneratedFields:
        if status is OperatingState.ON:
            sensors = {
                'temp_low_loop': self.draw_tenths_range('temp_low_loop'),
                'temp_med_loop': self.draw_tenths_range('temp_med_loop'),
            }
            actuators = {
                'low_temp_pump_on': not self.fails(),
                'med_temp_pump_on': not self.fails(),
            }
            return GeneratedFields(sensors=sensors, actuators=actuators)

        # Equipment heat load with no coolant flow
        ceiling = self.params.telemetry('standby_max_temperature')
        warming = self.params.step('standby_warming')
        sensors = {}
        for name in ('temp_low_loop', 'temp_med_loop'):
            value = getattr(previous, name)
            sensors[name] = value + warming if value < ceiling else value
        return GeneratedFields(sensors=sensors)


class InternalCoolantSystem(Subsystem):
    PROFILE = "internal_coolant"
    SNAPSHOT = InternalCoolantSnapshot
    STATES = COOLANT_STATES
    IDLE_STATE = OperatingState.ON
    COMMANDS = ('toggle_power',)
    REQUIRES = {
        'limits': ('temp_low_loop', 'temp_med_loop', 'mix_valve_position', 'crossover_mix_valve_position'),
        'setpoints': ('valve_start_position', 'crossover_start_position'),
        'steps': ('mix_valve', 'standby_warming'),
        'telemetry': ('temp_low_loop', 'temp_med_loop', 'standby_max_temperature'),
    }
    BOUNDED_POINTS = {
        'low_temp_mix_valve_position': (0, 100),
        'med_temp_mix_valve_position': (0, 100),
        'crossover_mix_valve_position': (0, 100),
        'set_temp_low_loop': (0, 20),
        'set_temp_med_loop': (0, 35),
    }

    def build_controls(self) -> None:
        self.valve = ValveController(self.params.step('mix_valve'))

    def build_generator(self) -> TelemetryGenerator:
        return InternalCoolantGenerator(self.params, self.rng)

    def seed_fields(self) -> Dict[str, Any]:
        return dict(
            status=OperatingState.ON,
            low_temp_pump_on=True,
            med_temp_pump_on=True,
            low_temp_mix_valve_position=15.0,
            med_temp_mix_valve_position=32.0,
            crossover_mix_valve_position=0.0,
            single_loop=False,
            loops=ResourcePair(active=CoolantLoop.LOW_TEMP, standby=CoolantLoop.MED_TEMP),
            temp_low_loop=4.0,
            temp_med_loop=10.5,
            set_temp_low_loop=4.0,
            set_temp_med_loop=10.5,
        )

    def build_rules(self) -> List[AlertRule]:
        return [
            FieldRule('temp_low_loop', label="Low loop temperature"),
            FieldRule('temp_med_loop', label="Med loop temperature"),
            _valve_rule('low_temp_mix_valve_position', "Low temp mixing valve"),
            _valve_rule('med_temp_mix_valve_position', "Med temp mixing valve"),
            FieldRule('crossover_mix_valve_position', messages={
                Severity.HIGH_ERROR: "Crossover mixing valve is fully open",
                Severity.HIGH_WARNING: "Crossover mixing valve is almost fully open",
            }),
            FlagRule('low_temp_pump_on', {
                OperatingState.ON: Expect(True, Severity.HIGH_ERROR, "Low temperature pump is off"),
            }),
            FlagRule('med_temp_pump_on', {
                OperatingState.ON: Expect(True, Severity.HIGH_ERROR, "Med temperature pump is off"),
            }),
        ]

    def control(self, snapshot: InternalCoolantSnapshot) -> InternalCoolantSnapshot:
        if snapshot.status is not OperatingState.ON:
            return snapshot

        low_on = snapshot.low_temp_pump_on
        med_on = snapshot.med_temp_pump_on

        if not low_on and not med_on:
            return snapshot.with_changes(status=OperatingState.TROUBLE)

        if low_on and med_on:
            return snapshot.with_changes(
                single_loop=False,
                crossover_mix_valve_position=0.0,
                low_temp_mix_valve_position=self._mix(
                    snapshot.low_temp_mix_valve_position, snapshot.temp_low_loop, snapshot.set_temp_low_loop),
                med_temp_mix_valve_position=self._mix(
                    snapshot.med_temp_mix_valve_position, snapshot.temp_med_loop, snapshot.set_temp_med_loop),
            )

        # One pump down: run both loops as one on the surviving pump
        running = CoolantLoop.LOW_TEMP if low_on else CoolantLoop.MED_TEMP
        crossover = snapshot.crossover_mix_valve_position
        if not snapshot.single_loop and crossover == 0:
            crossover = self.params.setpoint('crossover_start_position')
        if snapshot.loops.active != running:
            logger.info(f"{self.name}: single loop operation on {running.value}")
        loops = snapshot.loops.select(running)

        too_cold = (snapshot.temp_low_loop < snapshot.set_temp_low_loop
                    or snapshot.temp_med_loop < snapshot.set_temp_med_loop)
        too_warm = (snapshot.temp_low_loop > snapshot.set_temp_low_loop
                    or snapshot.temp_med_loop > snapshot.set_temp_med_loop)
        if too_cold:
            crossover = self.valve.close(crossover)
        elif too_warm:
            crossover = self.valve.open(crossover)

        return snapshot.with_changes(
            single_loop=True,
            loops=loops,
            crossover_mix_valve_position=crossover,
        )

    def _mix(self, position: float, temperature: float, setpoint: float) -> float:
        # Warmer than wanted: more flow through the heat exchanger
        if temperature > setpoint:
            return self.valve.open(position)
        if temperature < setpoint:
            return self.valve.close(position)
        return position

    def on_reset(self, snapshot: InternalCoolantSnapshot) -> InternalCoolantSnapshot:
        return snapshot.with_changes(low_temp_pump_on=True, med_temp_pump_on=True, single_loop=False)

    def toggle_power(self, snapshot: InternalCoolantSnapshot) -> InternalCoolantSnapshot:
        if snapshot.status is OperatingState.STANDBY:
            start = self.params.setpoint('valve_start_position')
            return snapshot.with_changes(
                status=OperatingState.ON,
                low_temp_mix_valve_position=start,
                med_temp_mix_valve_position=start,
                low_temp_pump_on=True,
                med_temp_pump_on=True,
            )
        if snapshot.status is OperatingState.ON:
            return snapshot.with_changes(
                status=OperatingState.STANDBY,
                low_temp_pump_on=False,
                med_temp_pump_on=False,
                single_loop=False,
            )
        raise InvalidOperation(f"{self.name}: reset required before toggling power")


def _default_pumps() -> ResourcePair:
    return ResourcePair(active=PumpOption.PUMP_A, standby=PumpOption.PUMP_B)


PUMP_FIELDS = {
    PumpOption.PUMP_A: 'pump_a_on',
    PumpOption.PUMP_B: 'pump_b_on',
}


@dataclass(frozen=True)
class ExternalCoolantSnapshot(Snapshot):
    radiator_rotation: float = 0.0  # deg.
    pump_a_on: bool = False
    pump_b_on: bool = False
    # active = lead pump, standby = lag pump
    pumps: ResourcePair = field(default_factory=_default_pumps)
    mix_valve_position: float = 0.0  # %
    line_a_pressure: int = 2068  # kPa
    line_b_pressure: int = 2068  # kPa
    line_heater_on: bool = False
    radiator_deployed: bool = True
    output_fluid_temperature: float = 2.8  # °C
    set_temperature: float = 2.8  # °C

    COMPONENT_NAME = "ExternalCoolantSystem"
    ACTUATOR_POINTS = frozenset({
        'radiator_rotation', 'pump_a_on', 'pump_b_on', 'pumps',
        'mix_valve_position', 'line_heater_on',
    })
    SETPOINT_POINTS = frozenset({'set_temperature'})

    @property
    def lead_pump(self) -> PumpOption:
        return self.pumps.active


class ExternalCoolantGenerator(TelemetryGenerator):
    """
    Line pressures always fluctuate. With the pumps stopped (Standby or
    Trouble) the loop no longer picks up station heat and the fluid cools
    toward the radiator's sink.
    """

    def generate(self, previous: ExternalCoolantSnapshot, status: OperatingState, mode: Mode) -> GeneratedFields:
        sensors: Dict[str, Any] = {
            'line_a_pressure': self.draw_range('line_pressure'),
            'line_b_pressure': self.draw_range('line_pressure'),
        }
        actuators = {}

        if status is not OperatingState.ON:
            floor = self.params.telemetry('standby_min_temperature')
            temperature = previous.output_fluid_temperature
            if temperature > floor:
                temperature = round(temperature - self.params.step('standby_cooling'), 2)
            sensors['output_fluid_temperature'] = temperature
        else:
            sensors['output_fluid_temperature'] = self.draw_tenths_range('output_fluid_temperature')

        if status is OperatingState.ON:
            actuators['pump_a_on'] = not self.fails()
            actuators['pump_b_on'] = not self.fails()
        return GeneratedFields(sensors=sensors, actuators=actuators)


def _check_lead_pump(snapshot: ExternalCoolantSnapshot, params) -> Optional[Tuple[Severity, str]]:
    if snapshot.status is OperatingState.ON and not getattr(snapshot, PUMP_FIELDS[snapshot.lead_pump]):
        return Severity.HIGH_WARNING, f"Lead pump {snapshot.lead_pump.value} is not running"
    return None


class ExternalCoolantSystem(Subsystem):
    PROFILE = "external_coolant"
    SNAPSHOT = ExternalCoolantSnapshot
    STATES = COOLANT_STATES
    IDLE_STATE = OperatingState.ON
    COMMANDS = ('toggle_power', 'toggle_radiator_deployed')
    REQUIRES = {
        'limits': ('radiator_rotation', 'line_pressure', 'output_fluid_temperature', 'mix_valve_position'),
        'steps': ('mix_valve', 'radiator_rotation', 'standby_cooling'),
        'cycles': ('pump_rotation',),
        'telemetry': ('line_pressure', 'output_fluid_temperature', 'standby_min_temperature'),
    }
    UNITS = {'line_a_pressure': 'kPa', 'line_b_pressure': 'kPa'}
    BOUNDED_POINTS = {
        'mix_valve_position': (0, 100),
        'radiator_rotation': (-215, 215),
        'set_temperature': (2.2, 6.1),
    }

    def build_controls(self) -> None:
        self.valve = ValveController(self.params.step('mix_valve'))
        rotation = self.params.band('radiator_rotation')
        # Sweep inside the ideal range; fall back to the hard range less tolerance
        low = rotation.ideal_low if rotation.ideal_low is not None else rotation.low + rotation.tolerance
        high = rotation.ideal_high if rotation.ideal_high is not None else rotation.high - rotation.tolerance
        self.radiator_sweep = Sweep(low, high, self.params.step('radiator_rotation'))
        self.pump_timer = TickCounter(self.params.cycle('pump_rotation'))

    def build_generator(self) -> TelemetryGenerator:
        return ExternalCoolantGenerator(self.params, self.rng)

    def seed_fields(self) -> Dict[str, Any]:
        return dict(
            status=OperatingState.ON,
            radiator_rotation=0.0,
            pump_a_on=True,
            pump_b_on=True,
            pumps=ResourcePair(active=PumpOption.PUMP_A, standby=PumpOption.PUMP_B),
            mix_valve_position=25.0,
            line_a_pressure=2050,
            line_b_pressure=2060,
            line_heater_on=False,
            radiator_deployed=True,
            output_fluid_temperature=2.8,
            set_temperature=2.8,
        )

    def build_rules(self) -> List[AlertRule]:
        return [
            FlagRule('pump_a_on', {
                OperatingState.ON: Expect(True, Severity.HIGH_ERROR, "External coolant pump A is off"),
            }),
            FlagRule('pump_b_on', {
                OperatingState.ON: Expect(True, Severity.HIGH_ERROR, "External coolant pump B is off"),
            }),
            _valve_rule('mix_valve_position', "Mix valve"),
            FlagRule('radiator_deployed', default=Expect(
                True, Severity.LOW_WARNING, "External coolant radiator is retracted")),
            FieldRule('radiator_rotation', messages={
                Severity.HIGH_ERROR: "Coolant radiator has exceeded maximum available rotation",
                Severity.HIGH_WARNING: "Coolant radiator has exceeded allowed rotation",
                Severity.LOW_ERROR: "Coolant radiator has exceeded maximum available rotation",
                Severity.LOW_WARNING: "Coolant radiator has exceeded allowed rotation",
            }),
            FieldRule('line_a_pressure', band='line_pressure', label="Coolant line A pressure"),
            FieldRule('line_b_pressure', band='line_pressure', label="Coolant line B pressure"),
            FieldRule('output_fluid_temperature', label="External coolant temperature"),
        ]

    def build_invariants(self) -> List[AlertRule]:
        return [InvariantRule('lead_pump', _check_lead_pump)]

    def control(self, snapshot: ExternalCoolantSnapshot) -> ExternalCoolantSnapshot:
        if snapshot.status is not OperatingState.ON:
            return snapshot

        if not snapshot.pump_a_on and not snapshot.pump_b_on:
            return snapshot.with_changes(status=OperatingState.TROUBLE)

        changes: Dict[str, Any] = {}

        # Mix valve first, the line heater only once the valve is shut
        valve = snapshot.mix_valve_position
        heater = snapshot.line_heater_on
        if snapshot.output_fluid_temperature > snapshot.set_temperature:
            if heater:
                heater = False
            else:
                valve = self.valve.open(valve)
        elif snapshot.output_fluid_temperature < snapshot.set_temperature:
            if self.valve.at_closed(valve):
                heater = True
            else:
                valve = self.valve.close(valve)
        changes['mix_valve_position'] = valve
        changes['line_heater_on'] = heater

        if snapshot.radiator_deployed:
            changes['radiator_rotation'] = self.radiator_sweep.next(snapshot.radiator_rotation)
        else:
            changes['radiator_rotation'] = 0.0

        # Lead/lag: fail over to a running lag pump, otherwise rotate on schedule
        pumps = snapshot.pumps
        lead_running = getattr(snapshot, PUMP_FIELDS[pumps.active])
        lag_running = getattr(snapshot, PUMP_FIELDS[pumps.standby])
        if not lead_running and lag_running:
            pumps = pumps.swap()
            self.pump_timer.reset()
            logger.info(f"{self.name}: lead pump failed over to {pumps.active.value}")
        elif self.pump_timer.advance():
            pumps = pumps.swap()
            logger.info(f"{self.name}: lead pump rotated to {pumps.active.value}")
        changes['pumps'] = pumps

        return snapshot.with_changes(**changes)

    def on_reset(self, snapshot: ExternalCoolantSnapshot) -> ExternalCoolantSnapshot:
        self.pump_timer.reset()
        return snapshot.with_changes(pump_a_on=True, pump_b_on=True)

    def toggle_power(self, snapshot: ExternalCoolantSnapshot) -> ExternalCoolantSnapshot:
        if snapshot.status is OperatingState.STANDBY:
            return snapshot.with_changes(status=OperatingState.ON, pump_a_on=True, pump_b_on=True)
        if snapshot.status is OperatingState.ON:
            return snapshot.with_changes(status=OperatingState.STANDBY, pump_a_on=False, pump_b_on=False)
        raise InvalidOperation(f"{self.name}: reset required before toggling power")

    def toggle_radiator_deployed(self, snapshot: ExternalCoolantSnapshot) -> ExternalCoolantSnapshot:
        if snapshot.radiator_deployed:
            return snapshot.with_changes(radiator_deployed=False, radiator_rotation=0.0)
        return snapshot.with_changes(radiator_deployed=True)
