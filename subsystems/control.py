"""
Control primitives shared by the subsystem state machines.

Each subsystem instance owns its own counters and sweeps, so two instances
never share timer state.
"""
from dataclasses import dataclass
from typing import Any

from .errors import InvalidOperation


@dataclass(frozen=True)
class ResourcePair:
    """
    Two interchangeable resources (beds, loops, pumps) with complementary
    roles. The active slot is absorbing/primary/lead, the standby slot is
    regenerating/secondary/lag.
    """
    active: Any
    standby: Any

    def __post_init__(self):
        if self.active == self.standby:
            raise InvalidOperation(f"Resource pair roles must differ, both are {self.active!r}")

    def swap(self) -> 'ResourcePair':
        """Exchange roles; the only way roles change."""
        return ResourcePair(active=self.standby, standby=self.active)

    def select(self, slot: Any) -> 'ResourcePair':
        """Make an existing slot the active one."""
        if slot == self.active:
            return self
        if slot == self.standby:
            return self.swap()
        raise InvalidOperation(f"Unknown slot {slot!r} for pair ({self.active!r}, {self.standby!r})")


class TickCounter:
    """Elapsed-tick timer: advance() returns True once every length + 1 calls."""

    def __init__(self, length: int, count: int = 0):
        if length < 1:
            raise ValueError("TickCounter length must be positive")
        self.length = length
        self.count = count

    def advance(self) -> bool:
        if self.count < self.length:
            self.count += 1
            return False
        self.count = 0
        return True

    def reset(self) -> None:
        self.count = 0

    @property
    def due(self) -> bool:
        """True when the next advance() will elapse."""
        return self.count >= self.length


class Sweep:
    """
    Ping-pong position sweep between two bounds (radiator / solar panel
    rotation). Moves one step while strictly inside the bounds, otherwise
    flips direction and stays put for that call.
    """

    def __init__(self, low: float, high: float, step: float, increasing: bool = True):
        if low >= high:
            raise ValueError("Sweep low bound must be below high bound")
        self.low = low
        self.high = high
        self.step = step
        self.increasing = increasing

    def next(self, position: float) -> float:
        if self.increasing:
            if position < self.high:
                return min(self.high, position + self.step)
            self.increasing = False
            return position
        if position > self.low:
            return max(self.low, position - self.step)
        self.increasing = True
        return position


class ValveController:
    """Bounded valve position stepped by a fixed increment per tick."""

    def __init__(self, step: float, low: float = 0.0, high: float = 100.0):
        self.step = step
        self.low = low
        self.high = high

    def clamp(self, position: float) -> float:
        return max(self.low, min(self.high, position))

    def open(self, position: float) -> float:
        return self.clamp(position + self.step)

    def close(self, position: float) -> float:
        return self.clamp(position - self.step)

    def at_closed(self, position: float) -> bool:
        return position <= self.low
