import pytest

from conftest import build
from subsystems import (
    DiverterValvePosition, InvalidOperation, OperatingState, Severity, WaterProcessor
)


def alert_for(alerts, field):
    return next(a for a in alerts if a.field == field)


def processing(water, **changes):
    snapshot = water.seed().with_changes(status=OperatingState.PROCESSING, pump_on=True, heater_on=True)
    return snapshot.with_changes(**changes)


class TestWaterControl:

    def test_starts_when_product_tank_low(self, water):
        seed = water.seed().with_changes(product_tank_level=0.0)
        snapshot, _ = water.tick(seed, readings={'waste_tank_level': 90.0})
        assert snapshot.status is OperatingState.PROCESSING
        assert snapshot.pump_on and snapshot.heater_on

    def test_starts_when_waste_tank_high(self, water):
        seed = water.seed().with_changes(product_tank_level=60.0)
        snapshot, _ = water.tick(seed, readings={'waste_tank_level': 80.0})
        assert snapshot.status is OperatingState.PROCESSING

    def test_crew_draws_product_water_in_standby(self, water):
        snapshot, _ = water.tick(water.seed(), readings={'waste_tank_level': 40.0})
        assert snapshot.status is OperatingState.STANDBY
        assert snapshot.product_tank_level == 78.0

    def test_no_usage_when_uncrewed(self, water):
        seed = water.seed().with_changes(crewed=False)
        snapshot, _ = water.tick(seed)
        assert snapshot.product_tank_level == 80.0
        assert snapshot.waste_tank_level == 40.0

    def test_waste_tank_fills_while_idle(self, water):
        snapshot, _ = water.tick(water.seed())
        assert snapshot.waste_tank_level == 43.0

    def test_fills_product_tank(self, water):
        snapshot, alerts = water.tick(processing(water, product_tank_level=50.0))
        assert snapshot.status is OperatingState.PROCESSING
        assert snapshot.product_tank_level == 55.0
        assert snapshot.waste_tank_level == 36.0
        assert snapshot.diverter_valve_position is DiverterValvePosition.ACCEPT
        assert not [a for a in alerts if a.severity.is_error]

    def test_stops_when_product_tank_full(self, water):
        snapshot, alerts = water.tick(processing(water, product_tank_level=96.0))
        assert snapshot.status is OperatingState.STANDBY
        assert snapshot.product_tank_level == 100.0
        assert not snapshot.pump_on and not snapshot.heater_on
        alert = alert_for(alerts, 'product_tank_level')
        assert alert.severity is Severity.HIGH_ERROR
        assert alert.message == "Clean water tank is at capacity"

    def test_stops_when_waste_tank_empty(self, water):
        snapshot, _ = water.tick(processing(water, waste_tank_level=3.0))
        assert snapshot.waste_tank_level == 0.0
        assert snapshot.status is OperatingState.STANDBY

    def test_bad_quality_is_reprocessed(self, water):
        snapshot, alerts = water.tick(processing(water, product_tank_level=50.0),
                                      readings={'post_reactor_quality_ok': False})
        assert snapshot.diverter_valve_position is DiverterValvePosition.REPROCESS
        assert alert_for(alerts, 'post_reactor_quality_ok').severity is Severity.HIGH_WARNING

    def test_heater_fault_is_trouble(self, water):
        snapshot, alerts = water.tick(processing(water), readings={'post_heater_temp': 150.0})
        assert snapshot.status is OperatingState.TROUBLE
        assert not snapshot.pump_on and not snapshot.heater_on
        assert snapshot.diverter_valve_position is DiverterValvePosition.REPROCESS
        snapshot = water.reset(snapshot)
        assert snapshot.status is OperatingState.STANDBY

    def test_levels_stay_in_range(self):
        water = build(WaterProcessor, seed=8, failure_probability=0.2)
        snapshot = water.seed()
        for _ in range(300):
            snapshot, _ = water.tick(snapshot)
            assert 0 <= snapshot.product_tank_level <= 100
            assert 0 <= snapshot.waste_tank_level <= 100
            assert snapshot.status is not OperatingState.TROUBLE


class TestWaterAlerts:

    def test_post_heater_only_checked_while_processing(self, water):
        standby = water.seed().with_changes(post_heater_temp=19.0)
        assert alert_for(water.evaluate(standby), 'post_heater_temp').is_nominal
        running = processing(water, post_heater_temp=112.0)
        alert = alert_for(water.evaluate(running), 'post_heater_temp')
        assert alert.severity is Severity.LOW_WARNING
        assert alert.message == "Pre reactor water temp low"

    def test_pump_must_run_while_processing(self, water):
        alerts = water.evaluate(processing(water, pump_on=False))
        assert alert_for(alerts, 'pump_on').severity is Severity.HIGH_ERROR

    def test_filters(self, water):
        alerts = water.evaluate(water.seed().with_changes(filters_ok=False))
        assert alert_for(alerts, 'filters_ok').message == "Filters in need of changing"


class TestWaterCommands:

    def test_crew_arrival_starts_processing(self, water):
        seed = water.seed().with_changes(crewed=False)
        snapshot = water.command(seed, 'toggle_crewed')
        assert snapshot.crewed
        assert snapshot.status is OperatingState.PROCESSING

    def test_replace_filters(self, water):
        snapshot = water.seed().with_changes(filters_ok=False)
        assert water.command(snapshot, 'replace_filters').filters_ok
        with pytest.raises(InvalidOperation):
            water.command(processing(water, filters_ok=False), 'replace_filters')
