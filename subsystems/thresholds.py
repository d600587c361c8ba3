"""
Threshold classification.

Evaluation order is fixed:
    1. at/above hard max               -> HIGH_ERROR
    2. at/above hard max - tolerance   -> HIGH_WARNING
    3. at/below hard min               -> LOW_ERROR
    4. at/below hard min + tolerance   -> LOW_WARNING
    5. strictly beyond an ideal bound  -> HIGH_WARNING / LOW_WARNING
    6. otherwise                       -> NONE

Hard bounds and their tolerance edges are inclusive and belong to the more
severe band: a value exactly at a hard bound is an error, a value exactly at
bound -/+ tolerance is a warning. Ideal bounds are inclusive of the nominal
band instead: a value exactly at an ideal bound is NONE, so a sweep parked on
an ideal bound stays nominal. Open (None) sides of a range are not checked.
"""
from typing import Optional

from .parameters import LimitBand
from .types import Severity


def classify(value: float, band: LimitBand) -> Severity:
    """Classify a measured value against a limit band."""
    high = band.high
    low = band.low

    if high is not None:
        if value >= high:
            return Severity.HIGH_ERROR
        if value >= high - band.tolerance:
            return Severity.HIGH_WARNING

    if low is not None:
        if value <= low:
            return Severity.LOW_ERROR
        if value <= low + band.tolerance:
            return Severity.LOW_WARNING

    if band.ideal_high is not None and value > band.ideal_high:
        return Severity.HIGH_WARNING
    if band.ideal_low is not None and value < band.ideal_low:
        return Severity.LOW_WARNING

    return Severity.NONE


def classify_flag(value: bool, expected: Optional[bool], severity: Severity) -> Severity:
    """
    Two-state check for boolean "should-be" fields (pump/fan on flags).
    expected=None means no expectation in the current state.
    """
    if expected is None or bool(value) == expected:
        return Severity.NONE
    return severity
