"""Configuration management for sequintools."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Optional, Dict, Any, List
import yaml

from sequintools import constants
from sequintools.exceptions import ConfigurationError


@dataclass
class RuntimeConfig:
    """Runtime configuration."""

    log_level: str = "WARNING"
    log_file: Optional[Path] = None
    # Enable tqdm progress where available
    enable_progress: bool = False


@dataclass
class PerformanceConfig:
    """Performance-related configuration."""

    # Decompression threads per alignment handle, and bedcov worker processes
    threads: int = 1


@dataclass
class CoverageConfig:
    """Defaults for the ``bedcov`` command."""

    min_mapq: int = constants.BEDCOV_MIN_MAPQ
    flank: int = constants.BEDCOV_FLANK
    # 0 removes the pileup depth limit
    max_depth: int = constants.BEDCOV_MAX_DEPTH
    thresholds: List[int] = field(default_factory=list)


@dataclass
class CalibrationConfig:
    """Defaults for the ``calibrate`` command."""

    flank: int = constants.CALIBRATE_FLANK
    seed: int = constants.CALIBRATE_SEED
    fold_coverage: float = constants.CALIBRATE_FOLD_COVERAGE
    window_size: int = constants.CALIBRATE_WINDOW_SIZE
    min_mapq: int = constants.CALIBRATE_MIN_MAPQ
    exclude_uncalibrated_reads: bool = False
    write_index: bool = False


@dataclass
class Config:
    """Main configuration class."""

    reference: Optional[Path] = None

    # Sub-configurations
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)

    # Convenience properties
    @property
    def threads(self) -> int:
        return self.performance.threads

    @threads.setter
    def threads(self, value: int):
        self.performance.threads = value

    def validate(self) -> None:
        """Validate configuration."""
        if self.reference is not None and not Path(self.reference).exists():
            raise ConfigurationError(f"Reference file not found: {self.reference}")

        # Validate numeric ranges
        if self.performance.threads < 1:
            raise ConfigurationError("Threads must be >= 1")
        if self.runtime.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ConfigurationError(f"Invalid runtime.log_level: {self.runtime.log_level}")

        cov = self.coverage
        if cov.min_mapq < 0 or cov.min_mapq > 255:
            raise ConfigurationError("coverage.min_mapq must be between 0 and 255")
        if cov.flank < 0:
            raise ConfigurationError("coverage.flank must be >= 0")
        if cov.max_depth < 0:
            raise ConfigurationError("coverage.max_depth must be >= 0 (0 removes the limit)")
        if any(t < 0 for t in cov.thresholds):
            raise ConfigurationError("coverage.thresholds must be >= 0")

        cal = self.calibration
        if cal.flank < 0:
            raise ConfigurationError("calibration.flank must be >= 0")
        if cal.seed < 0:
            raise ConfigurationError("calibration.seed must be >= 0")
        if cal.fold_coverage <= 0:
            raise ConfigurationError("calibration.fold_coverage must be > 0")
        if cal.window_size < 1:
            raise ConfigurationError("calibration.window_size must be >= 1")
        if cal.min_mapq < 0 or cal.min_mapq > 255:
            raise ConfigurationError("calibration.min_mapq must be between 0 and 255")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""

        def path_to_str(obj):
            if isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, dict):
                return {k: path_to_str(v) for k, v in obj.items()}
            elif isinstance(obj, (list, tuple)):
                return [path_to_str(item) for item in obj]
            return obj

        return path_to_str(asdict(self))


def _typed_value(value: Any, kind: str, label: str) -> Any:
    """Check a YAML value against an option's declared type ``kind``."""

    def fail(expected: str) -> ConfigurationError:
        return ConfigurationError(f"Option '{label}' must be {expected}, got {value!r}")

    # bool is an int subclass
    if kind == "bool":
        if not isinstance(value, bool):
            raise fail("a boolean")
        return value
    if kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise fail("an integer")
        return value
    if kind == "float":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise fail("a number")
        return float(value)
    if kind == "str":
        if not isinstance(value, str):
            raise fail("a string")
        return value
    if kind == "List[int]":
        if not isinstance(value, list) or any(
            isinstance(item, bool) or not isinstance(item, int) for item in value
        ):
            raise fail("a list of integers")
        return value
    # Optional[Path]
    if value is None:
        return None
    if not isinstance(value, str):
        raise fail("a path")
    return Path(value) if value else None


def load_config(path: Path) -> Config:
    """Load configuration from YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")

    def update_section(section: Any, values: Optional[Dict[str, Any]], name: str) -> None:
        if values is None:
            return
        if not isinstance(values, dict):
            raise ConfigurationError(f"Section '{name}' must be a mapping")
        kinds = {f.name: f.type for f in fields(section)}
        for key, value in values.items():
            if key not in kinds:
                raise ConfigurationError(f"Unknown option in section '{name}': {key}")
            setattr(section, key, _typed_value(value, kinds[key], f"{name}.{key}"))

    def build_config(data: Dict[str, Any]) -> Config:
        cfg = Config()

        if data.get("reference") is not None:
            cfg.reference = _typed_value(data["reference"], "Optional[Path]", "reference")
        if data.get("threads") is not None:
            cfg.performance.threads = _typed_value(data["threads"], "int", "threads")

        update_section(cfg.runtime, data.get("runtime"), "runtime")
        update_section(cfg.performance, data.get("performance"), "performance")
        update_section(cfg.coverage, data.get("coverage"), "coverage")
        update_section(cfg.calibration, data.get("calibration"), "calibration")

        return cfg

    return build_config(data)


def save_config(cfg: Config, path: Path) -> None:
    """Save configuration to YAML file."""
    data = cfg.to_dict()
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
