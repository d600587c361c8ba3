"""
Abstract interfaces following Interface Segregation Principle (ISP) and
Dependency Inversion Principle (DIP).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List
from dataclasses import dataclass


class PointProvider(ABC):
    """Interface for components that expose readable points."""

    @abstractmethod
    def get_points(self) -> Dict[str, Any]:
        """Return a dictionary of point names to plain values."""
        pass


@dataclass
class PointDefinition:
    """Metadata for a subsystem point."""
    name: str
    units: str = ""
    writable: bool = False
    description: str = ""
    monitored: bool = False  # Has an alert rule


class PointMetadataProvider(ABC):
    """Interface for components that provide metadata about their points."""

    @abstractmethod
    def get_point_definitions(self) -> List[PointDefinition]:
        """Return a list of point definitions."""
        pass


class SimulationEngine(ABC):
    """Interface for hosts that tick subsystems on a schedule."""

    @abstractmethod
    def start(self) -> None:
        """Start the simulation loop."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the simulation loop."""
        pass

    @abstractmethod
    def tick_all(self) -> Dict[str, Any]:
        """Advance every hosted subsystem by one tick."""
        pass
