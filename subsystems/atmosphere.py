"""
Carbon dioxide remediation.

Two zeolite beds alternate: the absorbing bed is cold and takes CO2 out of
the cabin air, the regenerating bed is heated to release it. The circulation
fan runs while processing and the bed selector valve routes air through the
absorbing bed.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .alerts import Alert, AlertRule, Expect, FieldRule, FlagRule, InvariantRule
from .control import ResourcePair, TickCounter
from .parameters import SubsystemParameters
from .snapshot import Snapshot
from .subsystem import Subsystem
from .telemetry import GeneratedFields, TelemetryGenerator
from .thresholds import classify
from .types import BedOption, Mode, OperatingState, Severity

BED_FIELDS = {
    BedOption.BED_1: 'bed1_temperature',
    BedOption.BED_2: 'bed2_temperature',
}


def _default_beds() -> ResourcePair:
    return ResourcePair(active=BedOption.BED_1, standby=BedOption.BED_2)


@dataclass(frozen=True)
class CarbonDioxideSnapshot(Snapshot):
    fan_on: bool = False
    bed_selector_valve: BedOption = BedOption.BED_1
    # active = absorbing bed, standby = regenerating bed
    beds: ResourcePair = field(default_factory=_default_beds)
    bed1_temperature: int = 20  # °C
    bed2_temperature: int = 20  # °C
    co2_output_level: float = 0.0  # mmHg, air returned to the cabin
    co2_level: float = 0.0  # mmHg, air entering the scrubber
    crewed: bool = True

    COMPONENT_NAME = "CarbonDioxideRemediation"
    ACTUATOR_POINTS = frozenset({'fan_on', 'bed_selector_valve', 'beds'})

    @property
    def absorbing_bed(self) -> BedOption:
        return self.beds.active

    @property
    def regenerating_bed(self) -> BedOption:
        return self.beds.standby


class CarbonDioxideGenerator(TelemetryGenerator):
    """
    Cabin CO2 is drawn up to a ceiling that depends on occupancy. While
    processing the regenerating bed is hot and the absorbing bed cool; when
    the bed timer is about to elapse the beds are drawn for the swapped roles,
    since the valves switch at the start of that tick. A start from standby is
    anticipated the same way.
    """

    def __init__(self, params: SubsystemParameters, rng, bed_timer: TickCounter):
        super().__init__(params, rng)
        self.bed_timer = bed_timer

    def generate(self, previous: CarbonDioxideSnapshot, status: OperatingState, mode: Mode) -> GeneratedFields:
        sensors: Dict[str, Any] = {}
        key = 'co2_level_crewed' if previous.crewed else 'co2_level_uncrewed'
        sensors['co2_level'] = self.draw_tenths_range(key)

        processing = status is OperatingState.PROCESSING
        if status is OperatingState.STANDBY and mode is Mode.AUTOMATIC:
            # Control starts the beds this tick
            processing = sensors['co2_level'] > self.params.setpoint('co2_output_limit')

        if processing:
            beds = previous.beds
            if status is OperatingState.PROCESSING and mode is Mode.AUTOMATIC and self.bed_timer.due:
                beds = beds.swap()
            sensors[BED_FIELDS[beds.standby]] = self.draw_range('regeneration_temperature')
            sensors[BED_FIELDS[beds.active]] = self.draw_range('absorbing_temperature')
            sensors['co2_output_level'] = self.draw_tenths_range('co2_output_processing')
        else:
            sensors['bed1_temperature'] = self.draw_range('ambient_bed_temperature')
            sensors['bed2_temperature'] = self.draw_range('ambient_bed_temperature')
            sensors['co2_output_level'] = 0.0

        actuators = {}
        # Transient fan fault, independent of the value draws above
        if self.fails():
            actuators['fan_on'] = not previous.fan_on
        return GeneratedFields(sensors=sensors, actuators=actuators)


class BedTemperatureRule(AlertRule):
    """
    While processing, the regenerating bed is held to the regeneration band;
    otherwise (and for the absorbing bed) the general bed band applies.
    """

    def __init__(self, bed: BedOption):
        super().__init__(BED_FIELDS[bed])
        self.bed = bed
        self.label = f"Bed {bed.value[-1]} temperature"

    def bands(self):
        return ('bed_temperature', 'regeneration_temperature')

    def evaluate(self, snapshot: CarbonDioxideSnapshot, params: SubsystemParameters) -> Alert:
        regenerating = (snapshot.status is OperatingState.PROCESSING
                        and snapshot.regenerating_bed is self.bed)
        band = params.band('regeneration_temperature' if regenerating else 'bed_temperature')
        severity = classify(getattr(snapshot, self.field), band)
        if severity is Severity.NONE:
            return Alert.nominal(self.field)
        messages = {
            Severity.HIGH_ERROR: f"{self.label} is above maximum",
            Severity.HIGH_WARNING: f"{self.label} is elevated",
            Severity.LOW_ERROR: f"{self.label} is below minimum",
            Severity.LOW_WARNING: f"{self.label} is low",
        }
        return Alert(self.field, messages[severity], severity)


def _check_beds_alternate(snapshot: CarbonDioxideSnapshot, params) -> Optional[Tuple[Severity, str]]:
    if snapshot.beds.active == snapshot.beds.standby:
        return Severity.HIGH_ERROR, "Regenerating bed is same as absorbing bed"
    return None


def _check_selector_valve(snapshot: CarbonDioxideSnapshot, params) -> Optional[Tuple[Severity, str]]:
    if snapshot.status is OperatingState.PROCESSING and snapshot.bed_selector_valve != snapshot.absorbing_bed:
        return Severity.HIGH_WARNING, "Bed selector valve is not routing air through the absorbing bed"
    return None


class CarbonDioxideRemediation(Subsystem):
    PROFILE = "co2_remediation"
    SNAPSHOT = CarbonDioxideSnapshot
    STATES = frozenset({OperatingState.STANDBY, OperatingState.PROCESSING, OperatingState.TROUBLE})
    IDLE_STATE = OperatingState.STANDBY
    COMMANDS = ('toggle_crewed',)
    REQUIRES = {
        'limits': ('co2_level', 'co2_output_level', 'bed_temperature', 'regeneration_temperature'),
        'setpoints': ('co2_output_limit',),
        'cycles': ('bed_cycle',),
        'telemetry': ('co2_level_crewed', 'co2_level_uncrewed', 'co2_output_processing',
                      'regeneration_temperature', 'absorbing_temperature', 'ambient_bed_temperature'),
    }
    UNITS = {'bed1_temperature': '°C', 'bed2_temperature': '°C'}

    def build_controls(self) -> None:
        self.bed_timer = TickCounter(self.params.cycle('bed_cycle'))

    def build_generator(self) -> TelemetryGenerator:
        return CarbonDioxideGenerator(self.params, self.rng, self.bed_timer)

    def seed_fields(self) -> Dict[str, Any]:
        return dict(
            status=OperatingState.STANDBY,
            fan_on=False,
            bed_selector_valve=BedOption.BED_1,
            beds=ResourcePair(active=BedOption.BED_1, standby=BedOption.BED_2),
            bed1_temperature=200,
            bed2_temperature=20,
            co2_output_level=0.0,
            co2_level=3.0,
            crewed=True,
        )

    def build_rules(self) -> List[AlertRule]:
        return [
            BedTemperatureRule(BedOption.BED_1),
            BedTemperatureRule(BedOption.BED_2),
            FlagRule('fan_on', {
                OperatingState.PROCESSING: Expect(True, Severity.HIGH_ERROR, "No fan running while system processing"),
                OperatingState.STANDBY: Expect(False, Severity.HIGH_WARNING, "Fan running while system in standby"),
            }),
            FieldRule('co2_level', label="Carbon dioxide level"),
            FieldRule('co2_output_level', label="Carbon dioxide output"),
        ]

    def build_invariants(self) -> List[AlertRule]:
        return [
            InvariantRule('regenerating_bed', _check_beds_alternate),
            InvariantRule('bed_selector_valve', _check_selector_valve),
        ]

    def control(self, snapshot: CarbonDioxideSnapshot) -> CarbonDioxideSnapshot:
        limit = self.params.setpoint('co2_output_limit')

        if snapshot.status is OperatingState.PROCESSING:
            if snapshot.co2_level <= limit:
                return snapshot.with_changes(status=OperatingState.STANDBY, fan_on=False)

            if self.bed_timer.advance():
                beds = snapshot.beds.swap()
                snapshot = snapshot.with_changes(beds=beds, bed_selector_valve=beds.active)

            if self._fault(snapshot):
                return snapshot.with_changes(status=OperatingState.TROUBLE, fan_on=False)
            return snapshot

        if snapshot.status is OperatingState.STANDBY:
            if snapshot.co2_level > limit:
                return snapshot.with_changes(status=OperatingState.PROCESSING, fan_on=True)
            return snapshot.with_changes(fan_on=False)

        return snapshot

    def _fault(self, snapshot: CarbonDioxideSnapshot) -> bool:
        if not snapshot.fan_on:
            return True
        if classify(snapshot.co2_output_level, self.params.band('co2_output_level')).is_error:
            return True
        regenerating = getattr(snapshot, BED_FIELDS[snapshot.regenerating_bed])
        absorbing = getattr(snapshot, BED_FIELDS[snapshot.absorbing_bed])
        return regenerating < absorbing

    def on_reset(self, snapshot: CarbonDioxideSnapshot) -> CarbonDioxideSnapshot:
        self.bed_timer.reset()
        return snapshot.with_changes(fan_on=False)

    def toggle_crewed(self, snapshot: CarbonDioxideSnapshot) -> CarbonDioxideSnapshot:
        """Switch between crewed and uncrewed occupancy (changes the CO2 ceiling)."""
        return snapshot.with_changes(crewed=not snapshot.crewed)
