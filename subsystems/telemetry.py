"""
Telemetry generation.

A generator draws the raw (pre-control) field values of one tick from a
state-dependent range, using the random.Random owned by its subsystem.
Component failures are separate Bernoulli draws so they never correlate with
the value draws of the same tick.
"""
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict

from .parameters import SubsystemParameters
from .snapshot import Snapshot
from .types import Mode, OperatingState


@dataclass
class GeneratedFields:
    """Raw values of one tick, split by what Manual mode may change."""
    sensors: Dict[str, Any] = field(default_factory=dict)
    actuators: Dict[str, Any] = field(default_factory=dict)

    def merged(self, include_actuators: bool = True) -> Dict[str, Any]:
        values = dict(self.sensors)
        if include_actuators:
            values.update(self.actuators)
        return values


class CountdownPhase:
    """
    Boolean phase (day/night) that flips every `length` ticks.
    Independent of the random source.
    """

    def __init__(self, length: int, phase: bool = True):
        if length < 1:
            raise ValueError("CountdownPhase length must be positive")
        self.length = length
        self.phase = phase
        self.remaining = length

    def advance(self) -> bool:
        self.remaining -= 1
        if self.remaining <= 0:
            self.phase = not self.phase
            self.remaining = self.length
        return self.phase


class TelemetryGenerator(ABC):
    """Base class for per-subsystem telemetry generators."""

    def __init__(self, params: SubsystemParameters, rng: random.Random):
        self.params = params
        self.rng = rng

    def draw_int(self, low: float, high: float) -> int:
        """Uniform integer in [low, high], both ends included."""
        return self.rng.randint(int(low), int(high))

    def draw_tenths(self, low: float, high: float) -> float:
        """Uniform value in [low, high] with one decimal place."""
        return self.draw_int(round(low * 10), round(high * 10)) / 10.0

    def draw_range(self, key: str) -> int:
        """Integer draw from a configured telemetry range."""
        low, high = self.params.telemetry_range(key)
        return self.draw_int(low, high)

    def draw_tenths_range(self, key: str) -> float:
        low, high = self.params.telemetry_range(key)
        return self.draw_tenths(low, high)

    def fails(self, probability: float = None) -> bool:
        """Separate failure draw, by default with the configured failure probability."""
        if probability is None:
            probability = self.params.failure_probability
        if probability <= 0.0:
            return False
        return self.rng.random() < probability

    @abstractmethod
    def generate(self, previous: Snapshot, status: OperatingState, mode: Mode) -> GeneratedFields:
        """Produce raw field values for the next tick."""
        pass
