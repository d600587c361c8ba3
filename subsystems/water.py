"""
Water recovery: waste water is pumped through a heater and catalytic reactor
into the product (clean water) tank. Water that fails the post-reactor
quality check is diverted back for reprocessing.
"""
from dataclasses import dataclass
from typing import Any, Dict, List

from .alerts import AlertRule, Expect, FieldRule, FlagRule
from .errors import InvalidOperation
from .snapshot import Snapshot
from .subsystem import Subsystem
from .telemetry import GeneratedFields, TelemetryGenerator
from .thresholds import classify
from .types import DiverterValvePosition, Mode, OperatingState, Severity


@dataclass(frozen=True)
class WaterProcessorSnapshot(Snapshot):
    pump_on: bool = False
    filters_ok: bool = True
    heater_on: bool = False
    post_heater_temp: float = 20.0  # °C
    post_reactor_quality_ok: bool = True
    diverter_valve_position: DiverterValvePosition = DiverterValvePosition.REPROCESS
    product_tank_level: float = 80.0  # %
    waste_tank_level: float = 40.0  # %
    crewed: bool = True

    COMPONENT_NAME = "WaterProcessor"
    ACTUATOR_POINTS = frozenset({'pump_on', 'heater_on', 'diverter_valve_position'})


class WaterProcessorGenerator(TelemetryGenerator):
    """
    The waste tank fills from crew use while idle and drains while the
    processor runs. Heater and reactor readings only mean something while
    processing; otherwise the post-heater line sits at ambient.
    """

    def generate(self, previous: WaterProcessorSnapshot, status: OperatingState, mode: Mode) -> GeneratedFields:
        sensors: Dict[str, Any] = {}
        waste = previous.waste_tank_level

        if status is OperatingState.PROCESSING:
            sensors['post_heater_temp'] = float(self.draw_range('post_heater_processing'))
            sensors['post_reactor_quality_ok'] = not self.fails()
            sensors['waste_tank_level'] = max(0.0, waste - self.params.step('waste_processing'))
            if previous.filters_ok and self.fails(self.params.telemetry('filter_degradation_probability')):
                sensors['filters_ok'] = False
        else:
            sensors['post_heater_temp'] = self.params.telemetry('ambient_temperature')
            inflow = self.params.step('waste_inflow') if previous.crewed else 0.0
            sensors['waste_tank_level'] = min(self.params.setpoint('tank_capacity'), waste + inflow)

        return GeneratedFields(sensors=sensors)


class WaterProcessor(Subsystem):
    PROFILE = "water_processor"
    SNAPSHOT = WaterProcessorSnapshot
    STATES = frozenset({OperatingState.STANDBY, OperatingState.PROCESSING, OperatingState.TROUBLE})
    IDLE_STATE = OperatingState.STANDBY
    COMMANDS = ('toggle_crewed', 'replace_filters')
    REQUIRES = {
        'limits': ('product_tank_level', 'post_heater_temp'),
        'setpoints': ('tank_capacity', 'waste_high_level', 'product_low_level', 'crewed_start_level'),
        'steps': ('water_usage', 'product_fill', 'waste_processing', 'waste_inflow'),
        'telemetry': ('post_heater_processing', 'ambient_temperature', 'filter_degradation_probability'),
    }
    UNITS = {'waste_tank_level': '%'}

    def build_generator(self) -> TelemetryGenerator:
        return WaterProcessorGenerator(self.params, self.rng)

    def seed_fields(self) -> Dict[str, Any]:
        return dict(
            status=OperatingState.STANDBY,
            pump_on=False,
            filters_ok=True,
            heater_on=False,
            post_heater_temp=20.0,
            post_reactor_quality_ok=True,
            diverter_valve_position=DiverterValvePosition.REPROCESS,
            product_tank_level=80.0,
            waste_tank_level=40.0,
            crewed=True,
        )

    def build_rules(self) -> List[AlertRule]:
        processing = (OperatingState.PROCESSING,)
        return [
            FieldRule('product_tank_level', messages={
                Severity.HIGH_ERROR: "Clean water tank is at capacity",
                Severity.HIGH_WARNING: "Clean water tank is nearing capacity",
            }),
            FlagRule('filters_ok', default=Expect(True, Severity.HIGH_WARNING, "Filters in need of changing")),
            FieldRule('post_heater_temp', label="Pre reactor water temp", states=processing),
            FlagRule('post_reactor_quality_ok', {
                OperatingState.PROCESSING: Expect(
                    True, Severity.HIGH_WARNING, "Post reactor water quality is below limit(s). Reprocessing"),
            }),
            FlagRule('pump_on', {
                OperatingState.PROCESSING: Expect(True, Severity.HIGH_ERROR, "Water pump is off while processing"),
            }),
            FlagRule('heater_on', {
                OperatingState.PROCESSING: Expect(True, Severity.HIGH_ERROR, "Water heater is off while processing"),
            }),
        ]

    def control(self, snapshot: WaterProcessorSnapshot) -> WaterProcessorSnapshot:
        diverter = (DiverterValvePosition.ACCEPT if snapshot.post_reactor_quality_ok
                    else DiverterValvePosition.REPROCESS)
        snapshot = snapshot.with_changes(diverter_valve_position=diverter)

        capacity = self.params.setpoint('tank_capacity')
        product = snapshot.product_tank_level
        waste = snapshot.waste_tank_level

        if snapshot.status is OperatingState.STANDBY:
            tank_full = waste >= self.params.setpoint('waste_high_level') and product < capacity
            tank_low = product < self.params.setpoint('product_low_level') and waste > 0
            if tank_full or tank_low:
                return self._start(snapshot)
            # Crew water usage
            if snapshot.crewed:
                product = max(0.0, product - self.params.step('water_usage'))
            return snapshot.with_changes(product_tank_level=product)

        if snapshot.status is OperatingState.PROCESSING:
            if classify(snapshot.post_heater_temp, self.params.band('post_heater_temp')).is_error:
                return snapshot.with_changes(
                    status=OperatingState.TROUBLE, pump_on=False, heater_on=False,
                    diverter_valve_position=DiverterValvePosition.REPROCESS,
                )
            fill = self.params.step('product_fill')
            if waste <= 0:
                return self._stop(snapshot)
            if product >= capacity - fill:
                return self._stop(snapshot).with_changes(product_tank_level=capacity)
            return snapshot.with_changes(product_tank_level=min(capacity, product + fill))

        return snapshot

    def _start(self, snapshot: WaterProcessorSnapshot) -> WaterProcessorSnapshot:
        return snapshot.with_changes(status=OperatingState.PROCESSING, pump_on=True, heater_on=True)

    def _stop(self, snapshot: WaterProcessorSnapshot) -> WaterProcessorSnapshot:
        return snapshot.with_changes(status=OperatingState.STANDBY, pump_on=False, heater_on=False)

    def on_reset(self, snapshot: WaterProcessorSnapshot) -> WaterProcessorSnapshot:
        return snapshot.with_changes(pump_on=False, heater_on=False)

    def toggle_crewed(self, snapshot: WaterProcessorSnapshot) -> WaterProcessorSnapshot:
        """Switch occupancy; a crew arriving with waste to treat starts processing."""
        snapshot = snapshot.with_changes(crewed=not snapshot.crewed)
        if (snapshot.status is OperatingState.STANDBY
                and snapshot.waste_tank_level > self.params.setpoint('crewed_start_level')):
            return self._start(snapshot)
        return snapshot

    def replace_filters(self, snapshot: WaterProcessorSnapshot) -> WaterProcessorSnapshot:
        if snapshot.status is OperatingState.PROCESSING:
            raise InvalidOperation(f"{self.name}: stop processing before replacing filters")
        return snapshot.with_changes(filters_ok=True)
