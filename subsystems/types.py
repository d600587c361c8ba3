from enum import Enum

class OperatingState(Enum):
    STANDBY = "Standby"
    ON = "On"
    PROCESSING = "Processing"
    TROUBLE = "Trouble"

class Mode(Enum):
    AUTOMATIC = "Automatic"
    MANUAL = "Manual"

class Severity(Enum):
    NONE = "None"
    LOW_WARNING = "LowWarning"
    LOW_ERROR = "LowError"
    HIGH_WARNING = "HighWarning"
    HIGH_ERROR = "HighError"

    @property
    def is_error(self) -> bool:
        return self in (Severity.LOW_ERROR, Severity.HIGH_ERROR)

class BedOption(Enum):
    BED_1 = "Bed1"
    BED_2 = "Bed2"

class CoolantLoop(Enum):
    LOW_TEMP = "LowTemp"
    MED_TEMP = "MedTemp"

class PumpOption(Enum):
    PUMP_A = "PumpA"
    PUMP_B = "PumpB"

class ShuntState(Enum):
    CHARGE = "Charge"
    DISCHARGE = "Discharge"

class DiverterValvePosition(Enum):
    ACCEPT = "Accept"
    REPROCESS = "Reprocess"
