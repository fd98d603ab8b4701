"""
Configuration management for kinempc.

This module provides:
- MPCConfig: Immutable typed configuration shared by formulator and solver
- ConfigManager: Layered loading (defaults < YAML file < environment)
- create_default_config: Default configuration as a plain dictionary
- load_config: Load and validate a configuration from a YAML file
"""

from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from kinempc.exceptions import ConfigNotFoundError, ConfigValidationError
from kinempc.logging import LOG_WARN


# =============================================================================
# Configuration Dataclasses
# =============================================================================


def _require_number(key: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigValidationError(key, "must be a number", value)


def _require_integer(key: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(key, "must be an integer", value)


@dataclass(frozen=True)
class PlannerConfig:
    """Horizon length and discretization."""

    horizon: int = 10
    timestep: float = 0.1

    def validate(self) -> None:
        """Validate planner configuration."""
        _require_integer("planner.horizon", self.horizon)
        _require_number("planner.timestep", self.timestep)
        if self.horizon < 2:
            raise ConfigValidationError("planner.horizon", "must be >= 2", self.horizon)
        if not self.timestep > 0:
            raise ConfigValidationError("planner.timestep", "must be > 0", self.timestep)


@dataclass(frozen=True)
class VehicleConfig:
    """Vehicle geometry and actuator limits.

    ``lf`` is the distance between the front axle and the center of gravity,
    calibrated by matching the turning radius of the real vehicle at constant
    steering angle and speed.
    """

    lf: float = 2.67
    max_steering_deg: float = 25.0
    max_throttle: float = 1.0

    @property
    def max_steering_rad(self) -> float:
        return self.max_steering_deg * math.pi / 180

    def validate(self) -> None:
        """Validate vehicle configuration."""
        for name in ("lf", "max_steering_deg", "max_throttle"):
            _require_number(f"vehicle.{name}", getattr(self, name))
        if not self.lf > 0:
            raise ConfigValidationError("vehicle.lf", "must be > 0", self.lf)
        if not 0 < self.max_steering_deg < 90:
            raise ConfigValidationError(
                "vehicle.max_steering_deg", "must be in (0, 90)", self.max_steering_deg
            )
        if not self.max_throttle > 0:
            raise ConfigValidationError("vehicle.max_throttle", "must be > 0", self.max_throttle)


@dataclass(frozen=True)
class ReferenceConfig:
    """Reference targets tracked by the cost function."""

    cte: float = 0.0
    epsi: float = 0.0
    v: float = 130.0

    def validate(self) -> None:
        """Validate reference targets."""
        for name in ("cte", "epsi", "v"):
            value = getattr(self, name)
            _require_number(f"reference.{name}", value)
            if not math.isfinite(value):
                raise ConfigValidationError(f"reference.{name}", "must be finite", value)


@dataclass(frozen=True)
class CostWeights:
    """Relative weights of the competing objectives.

    Priority order: heading error, then cross-track error, then steering
    smoothness; speed tracking, raw actuation and throttle smoothness last.
    """

    cte: float = 1500.0
    epsi: float = 2000.0
    v: float = 1.0
    actuator: float = 10.0
    steering_rate: float = 1000.0
    throttle_rate: float = 10.0

    def follows_priority_order(self) -> bool:
        """Whether the weights keep epsi > cte > steering_rate > the rest."""
        low_priority = max(self.v, self.actuator, self.throttle_rate)
        return self.epsi > self.cte > self.steering_rate > low_priority

    def validate(self) -> None:
        """Validate weights (negative weights make the problem unbounded)."""
        for f in fields(self):
            value = getattr(self, f.name)
            _require_number(f"weights.{f.name}", value)
            if not (math.isfinite(value) and value >= 0):
                raise ConfigValidationError(f"weights.{f.name}", "must be finite and >= 0", value)


@dataclass(frozen=True)
class SolverConfig:
    """NLP backend configuration."""

    backend: str = "ipopt"
    print_level: int = 0
    max_cpu_time: float = 0.5
    max_iterations: int = 3000
    tolerance: float = 1e-8

    def validate(self) -> None:
        """Validate solver configuration."""
        _require_integer("solver.print_level", self.print_level)
        _require_number("solver.max_cpu_time", self.max_cpu_time)
        _require_integer("solver.max_iterations", self.max_iterations)
        _require_number("solver.tolerance", self.tolerance)
        valid_backends = {"ipopt"}
        if not isinstance(self.backend, str) or self.backend not in valid_backends:
            raise ConfigValidationError(
                "solver.backend", f"must be one of {valid_backends}", self.backend
            )
        if not 0 <= self.print_level <= 12:
            raise ConfigValidationError("solver.print_level", "must be in [0, 12]", self.print_level)
        if not self.max_cpu_time > 0:
            raise ConfigValidationError("solver.max_cpu_time", "must be > 0", self.max_cpu_time)
        if self.max_iterations < 1:
            raise ConfigValidationError(
                "solver.max_iterations", "must be >= 1", self.max_iterations
            )
        if not self.tolerance > 0:
            raise ConfigValidationError("solver.tolerance", "must be > 0", self.tolerance)


_SECTIONS = {
    "planner": PlannerConfig,
    "vehicle": VehicleConfig,
    "reference": ReferenceConfig,
    "weights": CostWeights,
    "solver": SolverConfig,
}


@dataclass(frozen=True)
class MPCConfig:
    """Complete controller configuration.

    Constructed once and never mutated; derive variants with ``replace`` or
    ``with_weights``.
    """

    planner: PlannerConfig = field(default_factory=PlannerConfig)
    vehicle: VehicleConfig = field(default_factory=VehicleConfig)
    reference: ReferenceConfig = field(default_factory=ReferenceConfig)
    weights: CostWeights = field(default_factory=CostWeights)
    solver: SolverConfig = field(default_factory=SolverConfig)

    def validate(self) -> None:
        """Validate all configuration settings."""
        self.planner.validate()
        self.vehicle.validate()
        self.reference.validate()
        self.weights.validate()
        self.solver.validate()

        if not self.weights.follows_priority_order():
            LOG_WARN(
                "Cost weights break the epsi > cte > steering_rate priority order: "
                f"{asdict(self.weights)}"
            )

    def with_weights(self, **overrides: float) -> "MPCConfig":
        """Return a copy with some cost weights replaced."""
        return replace(self, weights=replace(self.weights, **overrides))

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        return {name: asdict(getattr(self, name)) for name in _SECTIONS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MPCConfig":
        """Create MPCConfig from a (possibly partial) dictionary."""
        sections = {}
        for name, section_cls in _SECTIONS.items():
            section_data = data.get(name) or {}
            if not isinstance(section_data, dict):
                raise ConfigValidationError(name, "must be a mapping", section_data)
            known = {f.name for f in fields(section_cls)}
            for key in section_data:
                if key not in known:
                    raise ConfigValidationError(f"{name}.{key}", "unknown configuration key")
            sections[name] = section_cls(**section_data)
        return cls(**sections)


# =============================================================================
# Configuration Manager
# =============================================================================


class ConfigManager:
    """Configuration loading with environment variable support.

    Environment variables take precedence over config files.
    Config files take precedence over defaults.

    Environment variable format: KINEMPC_<SECTION>_<KEY>
    Example: KINEMPC_PLANNER_HORIZON=12, KINEMPC_SOLVER_MAX_CPU_TIME=0.2
    """

    ENV_PREFIX = "KINEMPC"

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to YAML configuration file.
        """
        self._config: Optional[MPCConfig] = None
        self._config_path = Path(config_path) if config_path else None
        self._raw_config: Dict[str, Any] = {}

    def load(self, validate: bool = True) -> MPCConfig:
        """Load and return configuration."""
        self._raw_config = create_default_config()

        if self._config_path:
            self._load_from_file(self._config_path)

        self._load_from_env()

        self._config = MPCConfig.from_dict(self._raw_config)

        if validate:
            self._config.validate()

        return self._config

    def _load_from_file(self, path: Path) -> None:
        """Load configuration from YAML file."""
        if not path.exists():
            raise ConfigNotFoundError(str(path))

        with open(path, "r") as f:
            try:
                file_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigValidationError(str(path), f"not valid YAML: {e}") from e

        if file_config:
            if not isinstance(file_config, dict):
                raise ConfigValidationError(str(path), "top level must be a mapping")
            self._deep_update(self._raw_config, file_config)

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        for key, value in os.environ.items():
            if not key.startswith(f"{self.ENV_PREFIX}_"):
                continue
            section, _, name = key[len(self.ENV_PREFIX) + 1 :].lower().partition("_")
            # KINEMPC_LOG_* belongs to the logging setup
            if section in _SECTIONS and name:
                target = self._raw_config.setdefault(section, {})
                # A non-mapping section from the file is rejected by from_dict
                if isinstance(target, dict):
                    target[name] = self._parse_value(value)

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string value to appropriate Python type."""
        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        return value

    @staticmethod
    def _deep_update(base: dict, update: dict) -> dict:
        """Deep merge update into base dictionary."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                ConfigManager._deep_update(base[key], value)
            else:
                base[key] = value
        return base

    @property
    def config(self) -> MPCConfig:
        """Get current configuration (loads if not already loaded)."""
        if self._config is None:
            self.load()
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key path (e.g. "planner.horizon")."""
        value = self._raw_config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value


# =============================================================================
# Factory Functions
# =============================================================================


def create_default_config() -> Dict[str, Any]:
    """Create the default configuration dictionary."""
    return {
        "planner": {
            "horizon": 10,
            "timestep": 0.1,
        },
        "vehicle": {
            "lf": 2.67,
            "max_steering_deg": 25.0,
            "max_throttle": 1.0,
        },
        "reference": {
            "cte": 0.0,
            "epsi": 0.0,
            "v": 130.0,
        },
        "weights": {
            "cte": 1500.0,
            "epsi": 2000.0,
            "v": 1.0,
            "actuator": 10.0,
            "steering_rate": 1000.0,
            "throttle_rate": 10.0,
        },
        "solver": {
            "backend": "ipopt",
            "print_level": 0,
            "max_cpu_time": 0.5,
            "max_iterations": 3000,
            "tolerance": 1e-8,
        },
    }


def load_config(path: Union[str, Path], validate: bool = True) -> MPCConfig:
    """Load configuration from a YAML file (environment overrides applied)."""
    return ConfigManager(path).load(validate=validate)
