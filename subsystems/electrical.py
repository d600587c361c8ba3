"""
Power generation and storage: sun-tracking solar arrays charging a battery
through a shunt that switches between charge and discharge.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .alerts import AlertRule, Expect, FieldRule, FlagRule, InvariantRule
from .control import Sweep
from .parameters import SubsystemParameters
from .snapshot import Snapshot
from .subsystem import Subsystem
from .telemetry import CountdownPhase, GeneratedFields, TelemetryGenerator
from .thresholds import classify
from .types import Mode, OperatingState, Severity, ShuntState


@dataclass(frozen=True)
class PowerSnapshot(Snapshot):
    shunt_status: ShuntState = ShuntState.CHARGE
    solar_array_rotation: float = 0.0  # deg.
    solar_array_voltage: int = 0  # V
    solar_deployed: bool = True
    battery_temperature: float = 8.0  # °C
    battery_charge_level: float = 85.0  # %
    battery_voltage: float = 126.0  # V
    in_eclipse: bool = False

    COMPONENT_NAME = "PowerSystem"
    ACTUATOR_POINTS = frozenset({'shunt_status', 'solar_array_rotation'})


class PowerGenerator(TelemetryGenerator):
    """
    Station day/night comes from a countdown phase. Arrays only produce
    charging voltage in sunlight while deployed and sun-tracking (automatic);
    battery voltage sags as the charge level drops.
    """

    def __init__(self, params: SubsystemParameters, rng, eclipse: CountdownPhase):
        super().__init__(params, rng)
        self.eclipse = eclipse

    def generate(self, previous: PowerSnapshot, status: OperatingState, mode: Mode) -> GeneratedFields:
        in_eclipse = self.eclipse.advance()

        if not previous.solar_deployed:
            solar = 0
        elif in_eclipse or mode is Mode.MANUAL:
            solar = self.draw_range('solar_voltage_eclipse')
        else:
            solar = self.draw_range('solar_voltage_sunlight')

        charge = previous.battery_charge_level
        if charge > self.params.setpoint('battery_sag_high'):
            battery_voltage = self.draw_range('battery_voltage_high')
        elif charge > self.params.setpoint('battery_sag_low'):
            battery_voltage = self.draw_range('battery_voltage_mid')
        else:
            battery_voltage = self.draw_range('battery_voltage_low')

        return GeneratedFields(sensors={
            'in_eclipse': in_eclipse,
            'solar_array_voltage': solar,
            'battery_voltage': float(battery_voltage),
            'battery_temperature': float(self.draw_range('battery_temperature')),
        })


def _check_shunt(snapshot: PowerSnapshot, params: SubsystemParameters) -> Optional[Tuple[Severity, str]]:
    charging_voltage = snapshot.solar_array_voltage >= params.setpoint('min_output_to_charge')
    if snapshot.shunt_status is ShuntState.CHARGE and not charging_voltage:
        return Severity.HIGH_WARNING, "Shunt set to charge without enough solar array voltage"
    if snapshot.shunt_status is ShuntState.DISCHARGE and charging_voltage:
        return Severity.LOW_WARNING, "Shunt set to discharge while solar array voltage can charge"
    return None


class PowerSystem(Subsystem):
    PROFILE = "power_system"
    SNAPSHOT = PowerSnapshot
    STATES = frozenset({OperatingState.ON, OperatingState.TROUBLE})
    IDLE_STATE = OperatingState.ON
    COMMANDS = ('toggle_solar_deployed',)
    REQUIRES = {
        'limits': ('battery_charge_level', 'battery_temperature', 'battery_voltage',
                   'solar_array_rotation', 'solar_array_voltage'),
        'setpoints': ('min_output_to_charge', 'charge_ceiling', 'battery_sag_high', 'battery_sag_low'),
        'steps': ('battery_drain', 'battery_charge', 'solar_rotation'),
        'cycles': ('eclipse',),
        'telemetry': ('solar_voltage_eclipse', 'solar_voltage_sunlight', 'battery_voltage_high',
                      'battery_voltage_mid', 'battery_voltage_low', 'battery_temperature'),
    }
    BOUNDED_POINTS = {'solar_array_rotation': (-215, 215)}
    # Measurements that put the system in Trouble when in their error band
    FAULT_FIELDS = ('battery_temperature', 'battery_voltage', 'solar_array_voltage')

    def build_controls(self) -> None:
        self.eclipse = CountdownPhase(self.params.cycle('eclipse'), phase=False)
        rotation = self.params.band('solar_array_rotation')
        low = rotation.ideal_low if rotation.ideal_low is not None else rotation.low + rotation.tolerance
        high = rotation.ideal_high if rotation.ideal_high is not None else rotation.high - rotation.tolerance
        self.panel_sweep = Sweep(low, high, self.params.step('solar_rotation'))

    def build_generator(self) -> TelemetryGenerator:
        return PowerGenerator(self.params, self.rng, self.eclipse)

    def seed_fields(self) -> Dict[str, Any]:
        return dict(
            status=OperatingState.ON,
            shunt_status=ShuntState.CHARGE,
            solar_array_rotation=0.0,
            solar_array_voltage=172,
            solar_deployed=True,
            battery_temperature=8.0,
            battery_charge_level=85.0,
            battery_voltage=126.0,
            in_eclipse=False,
        )

    def build_rules(self) -> List[AlertRule]:
        return [
            FieldRule('battery_charge_level', messages={
                Severity.HIGH_ERROR: "Battery charge has exceeded maximum",
                Severity.HIGH_WARNING: "Battery charge is high",
                Severity.LOW_ERROR: "Battery charge level is below minimum",
                Severity.LOW_WARNING: "Battery charge is approaching minimum",
            }),
            FieldRule('battery_temperature'),
            FieldRule('battery_voltage'),
            FieldRule('solar_array_rotation', messages={
                Severity.HIGH_ERROR: "Solar array has exceeded maximum rotation",
                Severity.HIGH_WARNING: "Solar array rotation is at maximum",
                Severity.LOW_ERROR: "Solar array has exceeded maximum rotation",
                Severity.LOW_WARNING: "Solar array rotation is at maximum",
            }),
            FieldRule('solar_array_voltage', messages={
                Severity.HIGH_ERROR: "Voltage is above limit",
                Severity.HIGH_WARNING: "Voltage output is elevated",
            }),
            FlagRule('solar_deployed', default=Expect(True, Severity.LOW_WARNING, "Solar arrays are retracted")),
        ]

    def build_invariants(self) -> List[AlertRule]:
        return [InvariantRule('shunt_status', _check_shunt)]

    def control(self, snapshot: PowerSnapshot) -> PowerSnapshot:
        if snapshot.status is not OperatingState.ON:
            return snapshot

        charge = snapshot.battery_charge_level
        if snapshot.solar_array_voltage < self.params.setpoint('min_output_to_charge'):
            shunt = ShuntState.DISCHARGE
            charge = max(0.0, charge - self.params.step('battery_drain'))
        else:
            shunt = ShuntState.CHARGE
            charge = min(self.params.setpoint('charge_ceiling'), charge + self.params.step('battery_charge'))

        changes: Dict[str, Any] = {'shunt_status': shunt, 'battery_charge_level': charge}
        if snapshot.solar_deployed:
            changes['solar_array_rotation'] = self.panel_sweep.next(snapshot.solar_array_rotation)

        snapshot = snapshot.with_changes(**changes)
        if self._fault(snapshot):
            return snapshot.with_changes(status=OperatingState.TROUBLE)
        return snapshot

    def _fault(self, snapshot: PowerSnapshot) -> bool:
        return any(classify(getattr(snapshot, name), self.params.band(name)).is_error
                   for name in self.FAULT_FIELDS)

    def toggle_solar_deployed(self, snapshot: PowerSnapshot) -> PowerSnapshot:
        return snapshot.with_changes(solar_deployed=not snapshot.solar_deployed)
