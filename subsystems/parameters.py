import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .errors import ConfigurationError

# Configure logging
logger = logging.getLogger("Subsystems")

Range = Tuple[Optional[float], Optional[float]]
Seed = Union[int, str, None]


def _parse_range(name: str, raw: Any) -> Range:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        raise ConfigurationError(f"{name}: range must be a [min, max] pair, got {raw!r}")
    low, high = raw
    try:
        low = None if low is None else float(low)
        high = None if high is None else float(high)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name}: range bounds must be numeric, got {raw!r}")
    if low is None and high is None:
        raise ConfigurationError(f"{name}: range needs at least one bound")
    if low is not None and high is not None and low >= high:
        raise ConfigurationError(f"{name}: range minimum {low} is not below maximum {high}")
    return (low, high)


@dataclass(frozen=True)
class LimitBand:
    """
    Limit configuration for one measured field.

    hard_range: values at or beyond a bound are errors.
    ideal_range: values outside it (but inside the hard range) are warnings.
    tolerance: margin inside a hard bound that already counts as a warning.
    Either side of a range may be None for one-sided measurements.
    """
    hard_range: Range
    ideal_range: Optional[Range] = None
    tolerance: float = 0.0
    unit: str = ""
    name: str = ""

    def __post_init__(self):
        label = self.name or "limit band"
        object.__setattr__(self, 'hard_range', _parse_range(label, self.hard_range))
        if self.ideal_range is not None:
            object.__setattr__(self, 'ideal_range', _parse_range(f"{label} ideal", self.ideal_range))
        try:
            tolerance = float(self.tolerance)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{label}: tolerance must be numeric, got {self.tolerance!r}")
        if tolerance < 0:
            raise ConfigurationError(f"{label}: tolerance must not be negative")
        object.__setattr__(self, 'tolerance', tolerance)

        low, high = self.hard_range
        if low is not None and high is not None and tolerance >= (high - low) / 2:
            raise ConfigurationError(
                f"{label}: tolerance {tolerance} must be smaller than half the range span"
            )

        if self.ideal_range is not None:
            ideal_low, ideal_high = self.ideal_range
            # None on the ideal side means "same as the hard side"
            if ideal_low is not None and low is not None and ideal_low < low:
                raise ConfigurationError(f"{label}: ideal range must lie inside the hard range")
            if ideal_high is not None and high is not None and ideal_high > high:
                raise ConfigurationError(f"{label}: ideal range must lie inside the hard range")
            if ideal_low is not None and high is not None and ideal_low >= high:
                raise ConfigurationError(f"{label}: ideal range must lie inside the hard range")
            if ideal_high is not None and low is not None and ideal_high <= low:
                raise ConfigurationError(f"{label}: ideal range must lie inside the hard range")

    @property
    def low(self) -> Optional[float]:
        return self.hard_range[0]

    @property
    def high(self) -> Optional[float]:
        return self.hard_range[1]

    @property
    def ideal_low(self) -> Optional[float]:
        return self.ideal_range[0] if self.ideal_range else None

    @property
    def ideal_high(self) -> Optional[float]:
        return self.ideal_range[1] if self.ideal_range else None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> 'LimitBand':
        """Build a band from a profile entry ({range, ideal, tolerance, unit})."""
        if not isinstance(data, dict) or 'range' not in data:
            raise ConfigurationError(f"{name}: limit entry needs a 'range'")
        return cls(
            hard_range=data['range'],
            ideal_range=data.get('ideal'),
            tolerance=data.get('tolerance', 0.0),
            unit=data.get('unit', ''),
            name=name,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {'range': list(self.hard_range), 'tolerance': self.tolerance}
        if self.ideal_range is not None:
            result['ideal'] = list(self.ideal_range)
        if self.unit:
            result['unit'] = self.unit
        return result


class SubsystemParameters:
    """
    Construction parameters of one subsystem instance.

    Limit bands, setpoints, step sizes, cycle lengths, telemetry draw ranges,
    the failure probability and the RNG seed. Every value is validated here,
    so a subsystem never starts with a broken configuration.
    """

    def __init__(self, name: str,
                 limits: Dict[str, LimitBand] = None,
                 setpoints: Dict[str, float] = None,
                 steps: Dict[str, float] = None,
                 cycles: Dict[str, int] = None,
                 telemetry: Dict[str, Any] = None,
                 failure_probability: float = 0.1,
                 seed: Seed = None,
                 description: str = ""):
        self.name = name
        self.description = description
        self._limits: Dict[str, LimitBand] = dict(limits or {})
        self._setpoints: Dict[str, float] = {}
        self._steps: Dict[str, float] = {}
        self._cycles: Dict[str, int] = {}
        self._telemetry: Dict[str, Any] = {}

        for key, value in (setpoints or {}).items():
            self._setpoints[key] = self._number(f"setpoint '{key}'", value)

        for key, value in (steps or {}).items():
            step = self._number(f"step '{key}'", value)
            if step <= 0:
                raise ConfigurationError(f"{name}: step '{key}' must be positive")
            self._steps[key] = step

        for key, value in (cycles or {}).items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigurationError(f"{name}: cycle '{key}' must be a positive integer tick count")
            self._cycles[key] = value

        for key, value in (telemetry or {}).items():
            if isinstance(value, (list, tuple)):
                if len(value) != 2:
                    raise ConfigurationError(f"{name}: telemetry range '{key}' must be a [min, max] pair")
                low = self._number(f"telemetry '{key}'", value[0])
                high = self._number(f"telemetry '{key}'", value[1])
                if low > high:
                    raise ConfigurationError(f"{name}: telemetry range '{key}' is inverted")
                self._telemetry[key] = (low, high)
            else:
                self._telemetry[key] = self._number(f"telemetry '{key}'", value)

        probability = self._number("failure_probability", failure_probability)
        if not 0.0 <= probability <= 1.0:
            raise ConfigurationError(f"{name}: failure_probability must be within [0, 1]")
        self.failure_probability = probability

        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, (int, str))):
            raise ConfigurationError(f"{name}: seed must be an integer or a string")
        self.seed = seed

    def _number(self, label: str, value: Any) -> float:
        if isinstance(value, bool):
            raise ConfigurationError(f"{self.name}: {label} must be numeric, got {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{self.name}: {label} must be numeric, got {value!r}")

    @classmethod
    def from_profile(cls, data: Dict[str, Any]) -> 'SubsystemParameters':
        """Build parameters from a loaded profile mapping."""
        if not isinstance(data, dict):
            raise ConfigurationError("profile must be a mapping")
        name = data.get('name', 'Unknown')
        raw_limits = data.get('limits') or {}
        if not isinstance(raw_limits, dict):
            raise ConfigurationError(f"{name}: 'limits' must be a mapping")
        limits = {key: LimitBand.from_dict(key, value) for key, value in raw_limits.items()}
        for section in ('setpoints', 'steps', 'cycles', 'telemetry'):
            if not isinstance(data.get(section) or {}, dict):
                raise ConfigurationError(f"{name}: '{section}' must be a mapping")
        logger.debug(f"Building parameters for {name}: {len(limits)} limit bands")
        return cls(
            name=name,
            limits=limits,
            setpoints=data.get('setpoints'),
            steps=data.get('steps'),
            cycles=data.get('cycles'),
            telemetry=data.get('telemetry'),
            failure_probability=data.get('failure_probability', 0.1),
            seed=data.get('seed'),
            description=data.get('description', ''),
        )

    def require(self, limits: Iterable[str] = (), setpoints: Iterable[str] = (),
                steps: Iterable[str] = (), cycles: Iterable[str] = (),
                telemetry: Iterable[str] = ()) -> None:
        """Raise ConfigurationError listing every required key that is missing."""
        missing = []
        for section, keys, store in (
            ('limits', limits, self._limits),
            ('setpoints', setpoints, self._setpoints),
            ('steps', steps, self._steps),
            ('cycles', cycles, self._cycles),
            ('telemetry', telemetry, self._telemetry),
        ):
            missing.extend(f"{section}.{key}" for key in keys if key not in store)
        if missing:
            raise ConfigurationError(f"{self.name}: missing parameters: {', '.join(missing)}")

    def band(self, key: str) -> LimitBand:
        """Get a limit band."""
        try:
            return self._limits[key]
        except KeyError:
            raise ConfigurationError(f"{self.name}: no limit band '{key}'")

    def setpoint(self, key: str) -> float:
        """Get a setpoint / threshold value."""
        try:
            return self._setpoints[key]
        except KeyError:
            raise ConfigurationError(f"{self.name}: no setpoint '{key}'")

    def step(self, key: str) -> float:
        """Get a per-tick step size."""
        try:
            return self._steps[key]
        except KeyError:
            raise ConfigurationError(f"{self.name}: no step '{key}'")

    def cycle(self, key: str) -> int:
        """Get a cycle length in ticks."""
        try:
            return self._cycles[key]
        except KeyError:
            raise ConfigurationError(f"{self.name}: no cycle '{key}'")

    def telemetry_range(self, key: str) -> Tuple[float, float]:
        """Get a telemetry draw range (inclusive)."""
        value = self._telemetry.get(key)
        if not isinstance(value, tuple):
            raise ConfigurationError(f"{self.name}: no telemetry range '{key}'")
        return value

    def telemetry(self, key: str) -> float:
        """Get a scalar telemetry value."""
        value = self._telemetry.get(key)
        if value is None or isinstance(value, tuple):
            raise ConfigurationError(f"{self.name}: no telemetry value '{key}'")
        return value

    def get_all(self) -> Dict[str, Any]:
        """Get all parameters as a plain mapping (same shape as a profile)."""
        return {
            'name': self.name,
            'description': self.description,
            'seed': self.seed,
            'failure_probability': self.failure_probability,
            'limits': {key: band.to_dict() for key, band in self._limits.items()},
            'setpoints': dict(self._setpoints),
            'steps': dict(self._steps),
            'cycles': dict(self._cycles),
            'telemetry': {key: list(value) if isinstance(value, tuple) else value
                          for key, value in self._telemetry.items()},
        }
