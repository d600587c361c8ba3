"""
Alert engine.

Every monitored field yields exactly one Alert per evaluation, nominal ones
included (severity NONE, no message). Per-field rules run first in declared
order, then the cross-field invariant rules, then the common status rule.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import ConfigurationError
from .parameters import SubsystemParameters
from .snapshot import Snapshot
from .thresholds import classify, classify_flag
from .types import OperatingState, Severity


@dataclass(frozen=True)
class Alert:
    field: str
    message: Optional[str] = None
    severity: Severity = Severity.NONE

    @classmethod
    def nominal(cls, field: str) -> 'Alert':
        return cls(field=field)

    @property
    def is_nominal(self) -> bool:
        return self.severity is Severity.NONE

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {'field': self.field, 'message': self.message, 'severity': self.severity.value}


def _label(field: str) -> str:
    return field.replace('_', ' ').capitalize()


class AlertRule(ABC):
    """One rule producing the single alert of one field."""

    def __init__(self, field: str):
        self.field = field

    def bands(self) -> Iterable[str]:
        """Limit band keys this rule reads; checked when the engine is built."""
        return ()

    @abstractmethod
    def evaluate(self, snapshot: Snapshot, params: SubsystemParameters) -> Alert:
        pass


class FieldRule(AlertRule):
    """
    Classify a numeric field against its limit band.

    band defaults to the field name. When states is given, the field is only
    checked in those operating states and reports nominal otherwise.
    """

    def __init__(self, field: str, band: str = None, label: str = None,
                 messages: Dict[Severity, str] = None,
                 states: Iterable[OperatingState] = None):
        super().__init__(field)
        self.band = band or field
        label = label or _label(field)
        self.messages = {
            Severity.HIGH_ERROR: f"{label} critically high",
            Severity.HIGH_WARNING: f"{label} high",
            Severity.LOW_ERROR: f"{label} critically low",
            Severity.LOW_WARNING: f"{label} low",
        }
        self.messages.update(messages or {})
        self.states = frozenset(states) if states is not None else None

    def bands(self) -> Iterable[str]:
        return (self.band,)

    def evaluate(self, snapshot: Snapshot, params: SubsystemParameters) -> Alert:
        if self.states is not None and snapshot.status not in self.states:
            return Alert.nominal(self.field)
        severity = classify(getattr(snapshot, self.field), params.band(self.band))
        if severity is Severity.NONE:
            return Alert.nominal(self.field)
        return Alert(self.field, self.messages[severity], severity)


@dataclass(frozen=True)
class Expect:
    """Expected value of a boolean flag, with the alert raised on mismatch."""
    value: bool
    severity: Severity
    message: str


class FlagRule(AlertRule):
    """
    Two-state check of a boolean "should-be" field. The expectation comes
    from a per-state table; states missing from it fall back to default, and
    with no default the field is nominal.
    """

    def __init__(self, field: str, expectations: Dict[OperatingState, Expect] = None,
                 default: Expect = None):
        super().__init__(field)
        self.expectations = dict(expectations or {})
        self.default = default

    def evaluate(self, snapshot: Snapshot, params: SubsystemParameters) -> Alert:
        expect = self.expectations.get(snapshot.status, self.default)
        if expect is None:
            return Alert.nominal(self.field)
        severity = classify_flag(getattr(snapshot, self.field), expect.value, expect.severity)
        if severity is Severity.NONE:
            return Alert.nominal(self.field)
        return Alert(self.field, expect.message, severity)


Check = Callable[[Snapshot, SubsystemParameters], Optional[Tuple[Severity, str]]]


class InvariantRule(AlertRule):
    """Named cross-field rule; check returns None when the invariant holds."""

    def __init__(self, name: str, check: Check):
        super().__init__(name)
        self.check = check

    def evaluate(self, snapshot: Snapshot, params: SubsystemParameters) -> Alert:
        outcome = self.check(snapshot, params)
        if outcome is None:
            return Alert.nominal(self.field)
        severity, message = outcome
        return Alert(self.field, message, severity)


class StatusRule(AlertRule):
    """Trouble is reported as a HIGH_ERROR on the status field."""

    def __init__(self, component: str):
        super().__init__('status')
        self.component = component

    def evaluate(self, snapshot: Snapshot, params: SubsystemParameters) -> Alert:
        if snapshot.status is OperatingState.TROUBLE:
            return Alert('status', f"{self.component} in trouble, reset required", Severity.HIGH_ERROR)
        return Alert.nominal('status')


class AlertEngine:
    """Evaluates every rule of one subsystem against a snapshot."""

    def __init__(self, params: SubsystemParameters, component: str,
                 rules: Iterable[AlertRule] = (), invariants: Iterable[AlertRule] = ()):
        self.params = params
        self.rules: List[AlertRule] = list(rules) + list(invariants) + [StatusRule(component)]

        fields = [rule.field for rule in self.rules]
        duplicates = {name for name in fields if fields.count(name) > 1}
        if duplicates:
            raise ConfigurationError(f"{component}: more than one alert rule for {sorted(duplicates)}")
        # Fail at construction if a band is missing from the profile
        for rule in self.rules:
            for band in rule.bands():
                params.band(band)

    @property
    def monitored_fields(self) -> List[str]:
        return [rule.field for rule in self.rules]

    def evaluate(self, snapshot: Snapshot) -> List[Alert]:
        return [rule.evaluate(snapshot, self.params) for rule in self.rules]


def active_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """Alerts that are not nominal."""
    return [alert for alert in alerts if not alert.is_nominal]
