"""varfx error hierarchy.

These are raised synchronously to the caller for API misuse. Errors raised
inside listeners never reach the emitter; they are logged instead.
"""


class VariableError(Exception):
    """Base error for all varfx usage errors."""


class InvalidArgumentError(VariableError, TypeError):
    """An executor, listener or hook that is not callable."""


class ClosedError(VariableError, RuntimeError):
    """emit() or listen() on a Variable whose last listener has gone."""


class ConfigurationError(VariableError, RuntimeError):
    """A lifecycle hook registered twice."""
