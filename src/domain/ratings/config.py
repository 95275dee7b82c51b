"""Load rating and validation settings from TOML files."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from domain.ratings.model import RatingParameters
from domain.validation import ValidationLimits

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "configs" / "ratings" / "default.toml"


@dataclass(frozen=True)
class RatingSystemConfig:
    """Rating constants plus validation thresholds for one dataset."""

    name: str
    description: str | None
    file_path: Path
    parameters: RatingParameters = field(default_factory=RatingParameters)
    limits: ValidationLimits = field(default_factory=ValidationLimits)

    def as_config_json(self) -> dict[str, Any]:
        return {
            "initial_mu": self.parameters.initial_mu,
            "initial_sigma": self.parameters.initial_sigma,
            "beta": self.parameters.beta,
            "kappa": self.parameters.kappa,
            "tau": self.parameters.tau,
            "ordinal_z": self.parameters.ordinal_z,
            "quick_kill_ceiling": self.limits.quick_kill_ceiling,
            "long_kill_ceiling": self.limits.long_kill_ceiling,
            "death_ceiling": self.limits.death_ceiling,
            "min_level": self.limits.min_level,
            "max_level": self.limits.max_level,
            "min_ranked_team_size": self.limits.min_ranked_team_size,
            "max_team_size_difference": self.limits.max_team_size_difference,
            "stale_after_years": self.limits.stale_after_years,
        }


def _read_toml(file_path: Path) -> dict[str, Any]:
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")
    with file_path.open("rb") as file:
        return tomllib.load(file)


def load_rating_config(file_path: Path) -> RatingSystemConfig:
    """Load one rating config file."""
    return _parse_config(_read_toml(file_path), file_path)


def _parse_config(raw: dict[str, Any], file_path: Path) -> RatingSystemConfig:
    system_raw = raw.get("system", {})
    openskill_raw = raw.get("openskill", {})
    validation_raw = raw.get("validation", {})

    name = str(system_raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"{file_path}: [system].name is required")

    description_value = system_raw.get("description")
    description = None if description_value is None else str(description_value)

    defaults = RatingParameters()
    parameters = RatingParameters(
        initial_mu=float(openskill_raw.get("initial_mu", defaults.initial_mu)),
        initial_sigma=float(openskill_raw.get("initial_sigma", defaults.initial_sigma)),
        beta=float(openskill_raw.get("beta", defaults.beta)),
        kappa=float(openskill_raw.get("kappa", defaults.kappa)),
        tau=float(openskill_raw.get("tau", defaults.tau)),
        ordinal_z=float(openskill_raw.get("ordinal_z", defaults.ordinal_z)),
    )
    _validate_parameters(file_path=file_path, parameters=parameters)

    limit_defaults = ValidationLimits()
    limits = ValidationLimits(
        quick_kill_ceiling=_parse_int(validation_raw, "quick_kill_ceiling", limit_defaults.quick_kill_ceiling, file_path),
        long_kill_ceiling=_parse_int(validation_raw, "long_kill_ceiling", limit_defaults.long_kill_ceiling, file_path),
        death_ceiling=_parse_int(validation_raw, "death_ceiling", limit_defaults.death_ceiling, file_path),
        min_level=_parse_int(validation_raw, "min_level", limit_defaults.min_level, file_path),
        max_level=_parse_int(validation_raw, "max_level", limit_defaults.max_level, file_path),
        min_ranked_team_size=_parse_int(
            validation_raw, "min_ranked_team_size", limit_defaults.min_ranked_team_size, file_path
        ),
        max_team_size_difference=_parse_int(
            validation_raw, "max_team_size_difference", limit_defaults.max_team_size_difference, file_path
        ),
        stale_after_years=_parse_int(validation_raw, "stale_after_years", limit_defaults.stale_after_years, file_path),
    )
    _validate_limits(file_path=file_path, limits=limits)

    return RatingSystemConfig(
        name=name,
        description=description,
        file_path=file_path,
        parameters=parameters,
        limits=limits,
    )


def _parse_int(section: dict[str, Any], key: str, default: int, file_path: Path) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{file_path}: [validation].{key} must be an integer")
    return value


def _validate_parameters(*, file_path: Path, parameters: RatingParameters) -> None:
    if parameters.initial_mu <= 0.0:
        raise ValueError(f"{file_path}: [openskill].initial_mu must be > 0")
    if parameters.initial_sigma <= 0.0:
        raise ValueError(f"{file_path}: [openskill].initial_sigma must be > 0")
    if parameters.beta <= 0.0:
        raise ValueError(f"{file_path}: [openskill].beta must be > 0")
    if parameters.kappa <= 0.0:
        raise ValueError(f"{file_path}: [openskill].kappa must be > 0")
    if parameters.tau < 0.0:
        raise ValueError(f"{file_path}: [openskill].tau must be >= 0")
    if parameters.ordinal_z <= 0.0:
        raise ValueError(f"{file_path}: [openskill].ordinal_z must be > 0")


def _validate_limits(*, file_path: Path, limits: ValidationLimits) -> None:
    for key in (
        "quick_kill_ceiling",
        "long_kill_ceiling",
        "death_ceiling",
        "max_team_size_difference",
        "stale_after_years",
    ):
        if getattr(limits, key) < 0:
            raise ValueError(f"{file_path}: [validation].{key} must be >= 0")
    if limits.min_level > limits.max_level:
        raise ValueError(f"{file_path}: [validation].min_level must be <= max_level")
    if limits.min_ranked_team_size < 1:
        raise ValueError(f"{file_path}: [validation].min_ranked_team_size must be >= 1")


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "RatingSystemConfig",
    "load_rating_config",
]
