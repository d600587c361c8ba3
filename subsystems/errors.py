class SubsystemError(Exception):
    """Base class for errors raised by the subsystem engine."""


class ConfigurationError(SubsystemError):
    """Invalid profile or limit band, rejected before the first tick."""


class InvalidOperation(SubsystemError):
    """Operation refused in the current mode or state; nothing was changed."""
