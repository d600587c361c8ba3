import random

import pytest

from conftest import build
from subsystems import (
    CoolantLoop, ExternalCoolantSystem, InternalCoolantSystem, InvalidOperation,
    Mode, OperatingState, PumpOption, Severity
)


def alert_for(alerts, field):
    return next(a for a in alerts if a.field == field)


class TestInternalCoolant:

    def test_mix_valves_track_setpoints(self, internal_coolant):
        seed = internal_coolant.seed()
        readings = {'temp_low_loop': 8.0, 'temp_med_loop': 5.0}
        snapshot, _ = internal_coolant.tick(seed, readings=readings)
        # Low loop too warm: more flow through the heat exchanger
        assert snapshot.low_temp_mix_valve_position == seed.low_temp_mix_valve_position + 1
        assert snapshot.med_temp_mix_valve_position == seed.med_temp_mix_valve_position - 1
        assert snapshot.crossover_mix_valve_position == 0
        assert not snapshot.single_loop

    def test_valves_stay_in_range(self):
        subsystem = build(InternalCoolantSystem, seed=1, failure_probability=0.3)
        setpoints = random.Random("setpoints")
        snapshot = subsystem.seed()
        for tick in range(300):
            if tick % 50 < 5:
                # Hold the extremes long enough to drive the valves into their stops
                readings = {'set_temp_low_loop': (0.0, 20.0)[tick // 50 % 2],
                            'set_temp_med_loop': (35.0, 0.0)[tick // 50 % 2]}
            else:
                readings = {'set_temp_low_loop': setpoints.uniform(0, 20),
                            'set_temp_med_loop': setpoints.uniform(0, 35)}
            snapshot, _ = subsystem.tick(snapshot, readings=readings)
            for name in ('low_temp_mix_valve_position', 'med_temp_mix_valve_position',
                         'crossover_mix_valve_position'):
                assert 0 <= getattr(snapshot, name) <= 100
            assert snapshot.loops.active != snapshot.loops.standby
            if snapshot.status is OperatingState.TROUBLE:
                snapshot = subsystem.reset(snapshot)

    def test_fractional_valve_step(self):
        subsystem = build(InternalCoolantSystem, steps={'mix_valve': 0.5})
        snapshot = subsystem.seed()
        for _ in range(10):
            snapshot, _ = subsystem.tick(snapshot, readings={'temp_low_loop': 9.0})
        assert snapshot.low_temp_mix_valve_position == pytest.approx(20.0)

    def test_fractional_crossover_step(self):
        subsystem = build(InternalCoolantSystem, steps={'mix_valve': 0.5})
        readings = {'med_temp_pump_on': False, 'temp_low_loop': 6.0, 'temp_med_loop': 12.0}
        snapshot, _ = subsystem.tick(subsystem.seed(), readings=readings)
        assert snapshot.crossover_mix_valve_position == pytest.approx(40.5)

    def test_single_loop_on_pump_failure(self, internal_coolant):
        readings = {'med_temp_pump_on': False, 'temp_low_loop': 6.0, 'temp_med_loop': 12.0}
        snapshot, alerts = internal_coolant.tick(internal_coolant.seed(), readings=readings)
        assert snapshot.status is OperatingState.ON
        assert snapshot.single_loop
        assert snapshot.loops.active is CoolantLoop.LOW_TEMP
        # Crossover opens to its start position, then one step for the warm loops
        assert snapshot.crossover_mix_valve_position == 41
        assert alert_for(alerts, 'med_temp_pump_on').severity is Severity.HIGH_ERROR

    def test_single_loop_moves_to_running_pump(self, internal_coolant):
        readings = {'low_temp_pump_on': False, 'temp_low_loop': 3.0, 'temp_med_loop': 9.0}
        snapshot, _ = internal_coolant.tick(internal_coolant.seed(), readings=readings)
        assert snapshot.loops.active is CoolantLoop.MED_TEMP
        assert snapshot.crossover_mix_valve_position == 39

    def test_both_pumps_down_is_trouble(self, internal_coolant):
        readings = {'low_temp_pump_on': False, 'med_temp_pump_on': False}
        snapshot, alerts = internal_coolant.tick(internal_coolant.seed(), readings=readings)
        assert snapshot.status is OperatingState.TROUBLE
        snapshot = internal_coolant.reset(snapshot)
        assert snapshot.status is OperatingState.ON
        assert snapshot.low_temp_pump_on and snapshot.med_temp_pump_on

    def test_standby_warms_up(self, internal_coolant):
        snapshot = internal_coolant.command(internal_coolant.seed(), 'toggle_power')
        assert snapshot.status is OperatingState.STANDBY
        assert not snapshot.low_temp_pump_on
        start = snapshot.temp_low_loop
        for _ in range(4):
            snapshot, _ = internal_coolant.tick(snapshot)
        assert snapshot.temp_low_loop == start + 2.0
        assert snapshot.status is OperatingState.STANDBY

    def test_power_on_resets_valves(self, internal_coolant):
        standby = internal_coolant.command(internal_coolant.seed(), 'toggle_power')
        snapshot = internal_coolant.command(standby, 'toggle_power')
        assert snapshot.status is OperatingState.ON
        assert snapshot.low_temp_mix_valve_position == 10
        assert snapshot.med_temp_mix_valve_position == 10

    def test_toggle_power_in_trouble(self, internal_coolant):
        trouble = internal_coolant.seed().with_changes(status=OperatingState.TROUBLE)
        with pytest.raises(InvalidOperation):
            internal_coolant.command(trouble, 'toggle_power')

    def test_setpoint_override_bounds(self, internal_coolant):
        snapshot = internal_coolant.set_mode(internal_coolant.seed(), Mode.MANUAL)
        snapshot = internal_coolant.set_manual(snapshot, 'set_temp_low_loop', 6)
        assert snapshot.set_temp_low_loop == 6.0
        with pytest.raises(InvalidOperation):
            internal_coolant.set_manual(snapshot, 'set_temp_low_loop', 25)
        with pytest.raises(InvalidOperation):
            internal_coolant.set_manual(snapshot, 'low_temp_mix_valve_position', 101)

    def test_valve_alerts(self, internal_coolant):
        snapshot = internal_coolant.seed().with_changes(low_temp_mix_valve_position=100,
                                                        med_temp_mix_valve_position=3)
        alerts = internal_coolant.evaluate(snapshot)
        assert alert_for(alerts, 'low_temp_mix_valve_position').message == "Low temp mixing valve is fully open"
        assert alert_for(alerts, 'med_temp_mix_valve_position').severity is Severity.LOW_WARNING


class TestExternalCoolant:

    def test_mix_valve_before_heater(self, external_coolant):
        seed = external_coolant.seed()
        snapshot, _ = external_coolant.tick(seed, readings={'output_fluid_temperature': 2.0})
        assert snapshot.mix_valve_position == seed.mix_valve_position - 1
        assert not snapshot.line_heater_on

    def test_heater_once_valve_closed(self, external_coolant):
        seed = external_coolant.seed().with_changes(mix_valve_position=0)
        snapshot, _ = external_coolant.tick(seed, readings={'output_fluid_temperature': 2.0})
        assert snapshot.line_heater_on
        assert snapshot.mix_valve_position == 0

    def test_heater_off_before_valve_opens(self, external_coolant):
        seed = external_coolant.seed().with_changes(line_heater_on=True)
        snapshot, _ = external_coolant.tick(seed, readings={'output_fluid_temperature': 4.0})
        assert not snapshot.line_heater_on
        assert snapshot.mix_valve_position == seed.mix_valve_position

    def test_radiator_sweeps_within_ideal_range(self):
        subsystem = build(ExternalCoolantSystem, seed=2)
        snapshot = subsystem.seed()
        seen = set()
        for _ in range(900):
            snapshot, _ = subsystem.tick(snapshot)
            assert -205 <= snapshot.radiator_rotation <= 205
            seen.add(snapshot.radiator_rotation)
        assert max(seen) == 205
        assert min(seen) < 0

    def test_retracted_radiator(self, external_coolant):
        snapshot = external_coolant.command(external_coolant.seed(), 'toggle_radiator_deployed')
        snapshot, alerts = external_coolant.tick(snapshot)
        assert snapshot.radiator_rotation == 0.0
        assert alert_for(alerts, 'radiator_deployed').severity is Severity.LOW_WARNING

    def test_lead_pump_failover(self, external_coolant):
        snapshot, alerts = external_coolant.tick(external_coolant.seed(), readings={'pump_a_on': False})
        assert snapshot.status is OperatingState.ON
        assert snapshot.lead_pump is PumpOption.PUMP_B
        assert alert_for(alerts, 'lead_pump').is_nominal
        assert alert_for(alerts, 'pump_a_on').severity is Severity.HIGH_ERROR

    def test_lead_pump_rotation(self, external_coolant):
        snapshot = external_coolant.seed()
        leads = []
        for _ in range(external_coolant.pump_timer.length + 1):
            snapshot, _ = external_coolant.tick(snapshot)
            leads.append(snapshot.lead_pump)
        assert leads[:-1] == [PumpOption.PUMP_A] * external_coolant.pump_timer.length
        assert leads[-1] is PumpOption.PUMP_B

    def test_both_pumps_down_is_trouble(self, external_coolant):
        readings = {'pump_a_on': False, 'pump_b_on': False}
        snapshot, alerts = external_coolant.tick(external_coolant.seed(), readings=readings)
        assert snapshot.status is OperatingState.TROUBLE
        assert alert_for(alerts, 'status').severity is Severity.HIGH_ERROR

    def test_standby_cools_down(self, external_coolant):
        snapshot = external_coolant.command(external_coolant.seed(), 'toggle_power')
        start = snapshot.output_fluid_temperature
        snapshot, _ = external_coolant.tick(snapshot)
        assert snapshot.output_fluid_temperature == pytest.approx(start - 1.75)
        assert not snapshot.pump_a_on and not snapshot.pump_b_on

    def test_trouble_cools_down(self, external_coolant):
        snapshot = external_coolant.seed().with_changes(
            status=OperatingState.TROUBLE, pump_a_on=False, pump_b_on=False, output_fluid_temperature=4.0)
        temperatures = [snapshot.output_fluid_temperature]
        for _ in range(5):
            snapshot, _ = external_coolant.tick(snapshot)
            assert snapshot.status is OperatingState.TROUBLE
            temperatures.append(snapshot.output_fluid_temperature)
        assert temperatures == sorted(temperatures, reverse=True)
        assert temperatures[-1] < temperatures[0]

    def test_fractional_valve_step(self):
        subsystem = build(ExternalCoolantSystem, steps={'mix_valve': 0.5})
        snapshot = subsystem.seed()
        for _ in range(4):
            snapshot, _ = subsystem.tick(snapshot, readings={'output_fluid_temperature': 2.0})
        assert snapshot.mix_valve_position == pytest.approx(23.0)
        assert not snapshot.line_heater_on

    def test_pressure_alerts(self, external_coolant):
        snapshot = external_coolant.seed().with_changes(line_a_pressure=345, line_b_pressure=2600)
        alerts = external_coolant.evaluate(snapshot)
        assert alert_for(alerts, 'line_a_pressure').severity is Severity.LOW_ERROR
        assert alert_for(alerts, 'line_b_pressure').severity is Severity.HIGH_WARNING
