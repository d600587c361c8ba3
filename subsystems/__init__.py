from .types import (
    OperatingState, Mode, Severity, BedOption, CoolantLoop, PumpOption,
    ShuntState, DiverterValvePosition
)
from .errors import SubsystemError, ConfigurationError, InvalidOperation
from .parameters import LimitBand, SubsystemParameters
from .profiles import PROFILES, load_profiles, get_profile, get_parameters
from .thresholds import classify, classify_flag
from .control import ResourcePair, TickCounter, Sweep, ValveController
from .snapshot import Snapshot
from .alerts import (
    Alert, AlertRule, FieldRule, FlagRule, Expect, InvariantRule, StatusRule,
    AlertEngine, active_alerts
)
from .telemetry import TelemetryGenerator, GeneratedFields, CountdownPhase
from .subsystem import Subsystem
from .atmosphere import CarbonDioxideRemediation, CarbonDioxideSnapshot
from .thermal import (
    InternalCoolantSystem, InternalCoolantSnapshot,
    ExternalCoolantSystem, ExternalCoolantSnapshot
)
from .electrical import PowerSystem, PowerSnapshot
from .water import WaterProcessor, WaterProcessorSnapshot
from .engine import StationEngine, SUBSYSTEM_TYPES

__all__ = [
    'OperatingState', 'Mode', 'Severity', 'BedOption', 'CoolantLoop', 'PumpOption',
    'ShuntState', 'DiverterValvePosition',
    'SubsystemError', 'ConfigurationError', 'InvalidOperation',
    'LimitBand', 'SubsystemParameters',
    'PROFILES', 'load_profiles', 'get_profile', 'get_parameters',
    'classify', 'classify_flag',
    'ResourcePair', 'TickCounter', 'Sweep', 'ValveController',
    'Snapshot',
    'Alert', 'AlertRule', 'FieldRule', 'FlagRule', 'Expect', 'InvariantRule', 'StatusRule',
    'AlertEngine', 'active_alerts',
    'TelemetryGenerator', 'GeneratedFields', 'CountdownPhase',
    'Subsystem',
    'CarbonDioxideRemediation', 'CarbonDioxideSnapshot',
    'InternalCoolantSystem', 'InternalCoolantSnapshot',
    'ExternalCoolantSystem', 'ExternalCoolantSnapshot',
    'PowerSystem', 'PowerSnapshot',
    'WaterProcessor', 'WaterProcessorSnapshot',
    'StationEngine', 'SUBSYSTEM_TYPES'
]
