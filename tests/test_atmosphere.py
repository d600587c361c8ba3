import pytest

from conftest import build
from subsystems import (
    BedOption, CarbonDioxideRemediation, InvalidOperation, Mode, OperatingState,
    ResourcePair, Severity
)


def processing(co2, **changes):
    snapshot = co2.seed().with_changes(status=OperatingState.PROCESSING, fan_on=True)
    return snapshot.with_changes(**changes)


def alert_for(alerts, field):
    return next(a for a in alerts if a.field == field)


class TestCarbonDioxideControl:

    def test_starts_processing_above_limit(self, co2):
        snapshot, alerts = co2.tick(co2.seed(), readings={'co2_level': 2.0})
        assert snapshot.status is OperatingState.PROCESSING
        assert snapshot.fan_on

    def test_stays_in_standby_below_limit(self, co2):
        snapshot, _ = co2.tick(co2.seed(), readings={'co2_level': 0.5})
        assert snapshot.status is OperatingState.STANDBY
        assert not snapshot.fan_on

    def test_stops_at_limit(self, co2):
        snapshot, _ = co2.tick(processing(co2), readings={'co2_level': 0.4})
        assert snapshot.status is OperatingState.STANDBY
        assert not snapshot.fan_on

    def test_beds_swap_when_cycle_elapses(self, co2):
        co2.bed_timer.count = co2.bed_timer.length
        snapshot, alerts = co2.tick(processing(co2), readings={'co2_level': 2.0})
        assert snapshot.status is OperatingState.PROCESSING
        assert snapshot.absorbing_bed is BedOption.BED_2
        assert snapshot.regenerating_bed is BedOption.BED_1
        assert snapshot.bed_selector_valve is BedOption.BED_2
        assert co2.bed_timer.count == 0
        # Generated temperatures follow the new roles
        assert snapshot.bed1_temperature > snapshot.bed2_temperature
        assert not [a for a in alerts if a.severity.is_error]

    def test_no_swap_mid_cycle(self, co2):
        snapshot, _ = co2.tick(processing(co2), readings={'co2_level': 2.0})
        assert snapshot.absorbing_bed is BedOption.BED_1
        assert co2.bed_timer.count == 1

    def test_roles_stay_complementary(self):
        co2 = build(CarbonDioxideRemediation, seed=5)
        snapshot = co2.seed()
        swaps = 0
        for _ in range(200):
            previous = snapshot
            snapshot, alerts = co2.tick(snapshot)
            assert snapshot.absorbing_bed != snapshot.regenerating_bed
            if snapshot.beds != previous.beds:
                swaps += 1
            assert snapshot.status is not OperatingState.TROUBLE
            assert not [a for a in alerts if a.severity.is_error]
        assert swaps > 0

    def test_fan_failure_is_trouble(self, co2):
        snapshot, alerts = co2.tick(processing(co2, fan_on=False), readings={'co2_level': 2.0})
        assert snapshot.status is OperatingState.TROUBLE
        assert alert_for(alerts, 'status').severity is Severity.HIGH_ERROR

    def test_cold_regenerating_bed_is_trouble(self, co2):
        readings = {'co2_level': 2.0, 'bed1_temperature': 30, 'bed2_temperature': 20}
        snapshot, _ = co2.tick(processing(co2), readings=readings)
        assert snapshot.status is OperatingState.TROUBLE

    def test_trouble_waits_for_reset(self, co2):
        snapshot = processing(co2).with_changes(status=OperatingState.TROUBLE)
        for _ in range(5):
            snapshot, _ = co2.tick(snapshot, readings={'co2_level': 0.1})
            assert snapshot.status is OperatingState.TROUBLE
        snapshot = co2.reset(snapshot)
        assert snapshot.status is OperatingState.STANDBY
        assert not snapshot.fan_on


class TestCarbonDioxideAlerts:

    def test_regenerating_bed_uses_regeneration_band(self, co2):
        snapshot = processing(co2, bed1_temperature=25, bed2_temperature=140)
        alert = alert_for(co2.evaluate(snapshot), 'bed2_temperature')
        assert alert.severity is Severity.LOW_ERROR
        assert alert.message == "Bed 2 temperature is below minimum"

    def test_absorbing_bed_uses_general_band(self, co2):
        snapshot = processing(co2, bed1_temperature=232, bed2_temperature=200)
        alert = alert_for(co2.evaluate(snapshot), 'bed1_temperature')
        assert alert.severity is Severity.HIGH_ERROR
        assert alert.message == "Bed 1 temperature is above maximum"

    def test_fan_expectations(self, co2):
        standby = co2.seed().with_changes(fan_on=True)
        assert alert_for(co2.evaluate(standby), 'fan_on').severity is Severity.HIGH_WARNING
        stopped = processing(co2, fan_on=False)
        assert alert_for(co2.evaluate(stopped), 'fan_on').message == "No fan running while system processing"

    def test_co2_level_bands(self, co2):
        assert alert_for(co2.evaluate(co2.seed().with_changes(co2_level=8.0)), 'co2_level').severity \
            is Severity.HIGH_ERROR
        assert alert_for(co2.evaluate(co2.seed().with_changes(co2_level=6.0)), 'co2_level').severity \
            is Severity.HIGH_WARNING

    def test_co2_level_at_ideal_ceiling_is_nominal(self, co2):
        assert alert_for(co2.evaluate(co2.seed().with_changes(co2_level=5.0)), 'co2_level').is_nominal
        assert alert_for(co2.evaluate(co2.seed().with_changes(co2_level=5.1)), 'co2_level').severity \
            is Severity.HIGH_WARNING

    def test_selector_valve_must_follow_absorbing_bed(self, co2):
        snapshot = processing(co2, bed_selector_valve=BedOption.BED_2)
        alert = alert_for(co2.evaluate(snapshot), 'bed_selector_valve')
        assert alert.severity is Severity.HIGH_WARNING


class TestCarbonDioxideOperations:

    def test_toggle_crewed(self, co2):
        snapshot = co2.command(co2.seed(), 'toggle_crewed')
        assert snapshot.crewed is False

    def test_uncrewed_ceiling_is_higher(self):
        co2 = build(CarbonDioxideRemediation, seed=11)
        snapshot = co2.command(co2.seed(), 'toggle_crewed')
        levels = []
        for _ in range(100):
            snapshot, _ = co2.tick(snapshot)
            levels.append(snapshot.co2_level)
        assert max(levels) > 2.9
        assert max(levels) <= 7.9

    def test_manual_bed_selection(self, co2):
        snapshot = co2.set_mode(co2.seed(), Mode.MANUAL)
        snapshot = co2.set_manual(snapshot, 'beds', 'Bed2')
        assert snapshot.beds == ResourcePair(BedOption.BED_2, BedOption.BED_1)
        snapshot = co2.set_manual(snapshot, 'bed_selector_valve', 'BED_2')
        assert snapshot.bed_selector_valve is BedOption.BED_2

    def test_manual_bad_value(self, co2):
        snapshot = co2.set_mode(co2.seed(), Mode.MANUAL)
        with pytest.raises(InvalidOperation):
            co2.set_manual(snapshot, 'beds', 'Bed3')
        with pytest.raises(InvalidOperation):
            co2.set_manual(snapshot, 'fan_on', 'yes')
