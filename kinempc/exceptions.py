"""
Errors raised by kinempc.

Three families, all under ``KineMPCError``:
- configuration: a config file or value cannot be used
- formulation: the state or path polynomial handed to a control cycle is malformed
- solver: the NLP backend is unavailable, or a failed plan was asked for its command

Solver non-convergence is reported through ``MPCResult.status``; a
``SolverFailedError`` is only raised when a caller asks a failed result for
its actuator command.
"""

from typing import Any, Optional


class KineMPCError(Exception):
    """Root of the kinempc errors.

    ``details`` carries machine-readable context and is appended to the
    message as ``key=value`` pairs.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({context})"


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(KineMPCError):
    """A configuration source could not be turned into an MPCConfig."""


class ConfigNotFoundError(ConfigurationError):

    def __init__(self, config_path: str):
        super().__init__(f"Configuration file not found: {config_path}", {"path": config_path})


class ConfigValidationError(ConfigurationError):
    """A configuration value is out of range or of the wrong type.

    ``key`` is the dotted path of the offending entry, e.g. ``planner.horizon``.
    """

    def __init__(self, key: str, reason: str, value: Any = None):
        details = {"key": key, "reason": reason}
        if value is not None:
            details["value"] = str(value)
        super().__init__(f"Invalid configuration for '{key}': {reason}", details)
        self.key = key


# =============================================================================
# Formulation
# =============================================================================


class FormulationError(KineMPCError):
    """The inputs of a control cycle cannot be formulated into an NLP."""


class InvalidStateError(FormulationError):

    def __init__(self, state_name: str, reason: str):
        super().__init__(
            f"Invalid state '{state_name}': {reason}",
            {"state": state_name, "reason": reason},
        )


class InvalidPolynomialError(FormulationError):

    def __init__(self, reason: str, coefficients: Optional[list] = None):
        details = {"reason": reason}
        if coefficients is not None:
            details["coefficients"] = coefficients
        super().__init__(f"Invalid path polynomial: {reason}", details)


# =============================================================================
# Solver
# =============================================================================


class SolverError(KineMPCError):
    """The NLP backend misbehaved or its result cannot be used."""


class SolverFailedError(SolverError):
    """A failed solve was asked for its actuator command.

    ``status`` is the backend's status string, unmodified; a CPU-time
    timeout and a convergence failure differ only there.
    """

    def __init__(self, status: str = "Unknown", iterations: Optional[int] = None):
        details = {"status": status}
        if iterations is not None:
            details["iterations"] = iterations
        super().__init__(f"Solver failed to find a solution: {status}", details)
        self.status = status


class SolverBackendError(SolverError):
    """The named NLP backend is unknown or could not be built."""

    def __init__(self, backend: str, reason: str):
        super().__init__(
            f"Solver backend '{backend}' unavailable: {reason}",
            {"backend": backend, "reason": reason},
        )
        self.backend = backend
