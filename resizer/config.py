"""
Configuration management for the image resizer.

Structured configuration classes with validation and sensible defaults
for the quality search, output encoding and storage location.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from dotenv import load_dotenv

ENV_PREFIX = "RESIZER_"


@dataclass
class SearchConfig:
    """Configuration for the size-constrained quality search."""

    min_quality: int = 10
    max_quality: int = 100
    max_iterations: int = 10
    tolerance: float = 0.05

    def __post_init__(self) -> None:
        if not (1 <= self.min_quality <= self.max_quality <= 100):
            raise ValueError("Quality bounds must satisfy 1 <= min_quality <= max_quality <= 100")
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if not (0.0 <= self.tolerance < 1.0):
            raise ValueError("tolerance must be in [0, 1)")


@dataclass
class OutputConfig:
    """Configuration for output defaults and encoding."""

    default_width: int = 500
    default_height: int = 500
    default_quality: int = 90
    png_compress_level: int = 9
    background: Tuple[int, int, int] = (255, 255, 255)
    max_batch_files: int = 12

    def __post_init__(self) -> None:
        if self.default_width <= 0 or self.default_height <= 0:
            raise ValueError("Default dimensions must be positive")
        if not (1 <= self.default_quality <= 100):
            raise ValueError("default_quality must be between 1 and 100")
        if not (0 <= self.png_compress_level <= 9):
            raise ValueError("png_compress_level must be between 0 and 9")
        self.background = tuple(int(c) for c in self.background)  # type: ignore[assignment]
        if len(self.background) != 3 or any(not (0 <= c <= 255) for c in self.background):
            raise ValueError("background must be an RGB triple of 0-255 values")
        if self.max_batch_files <= 0:
            raise ValueError("max_batch_files must be positive")


@dataclass
class ResizerConfig:
    """
    Complete configuration for the image resizer.

    Groups the search and output settings together with the storage root
    that holds the generated files and the record manifest.
    """

    storage_root: Union[str, Path] = "uploads"
    records_filename: str = "records.jsonl"
    search_config: SearchConfig = field(default_factory=SearchConfig)
    output_config: OutputConfig = field(default_factory=OutputConfig)

    def __post_init__(self) -> None:
        """Validate and normalize configuration."""
        self.storage_root = Path(self.storage_root)
        if not self.records_filename:
            raise ValueError("records_filename must not be empty")

    @property
    def records_path(self) -> Path:
        """Get record manifest path."""
        return Path(self.storage_root) / self.records_filename

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, object] | None) -> "ResizerConfig":
        """
        Create configuration from dictionary.

        Args:
            config_dict: Configuration mapping (can be None)

        Returns:
            ResizerConfig instance
        """
        if not config_dict:
            return cls()

        config_data: Dict[str, object] = dict(config_dict)
        allowed_top_level = {
            "storage_root",
            "records_filename",
            "search_config",
            "output_config",
        }
        unexpected = set(config_data) - allowed_top_level
        if unexpected:
            raise ValueError(
                f"Unsupported configuration keys provided: {sorted(unexpected)}"
            )

        search_config = SearchConfig(**_extract_mapping(config_data, "search_config"))
        output_config = OutputConfig(**_extract_mapping(config_data, "output_config"))

        primary_keys = {"storage_root", "records_filename"}
        main_config = {key: config_data[key] for key in primary_keys if key in config_data}

        return cls(
            **main_config,
            search_config=search_config,
            output_config=output_config,
        )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ResizerConfig":
        """
        Create configuration from ``RESIZER_*`` environment variables.

        A ``.env`` file in the working directory is loaded first when reading
        the process environment.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        config: Dict[str, Any] = {}
        search: Dict[str, Any] = {}
        output: Dict[str, Any] = {}

        if env.get(ENV_PREFIX + "STORAGE_ROOT"):
            config["storage_root"] = env[ENV_PREFIX + "STORAGE_ROOT"]
        _read_int(env, "MAX_ITERATIONS", search, "max_iterations")
        _read_int(env, "MIN_QUALITY", search, "min_quality")
        _read_float(env, "TOLERANCE", search, "tolerance")
        _read_int(env, "DEFAULT_WIDTH", output, "default_width")
        _read_int(env, "DEFAULT_HEIGHT", output, "default_height")
        _read_int(env, "DEFAULT_QUALITY", output, "default_quality")
        _read_int(env, "PNG_COMPRESS_LEVEL", output, "png_compress_level")
        _read_int(env, "MAX_BATCH_FILES", output, "max_batch_files")

        if search:
            config["search_config"] = search
        if output:
            config["output_config"] = output
        return cls.from_dict(config)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to dictionary.

        Returns:
            Dictionary representation of configuration
        """
        return {
            "storage_root": str(self.storage_root),
            "records_filename": self.records_filename,
            "search_config": {
                "min_quality": self.search_config.min_quality,
                "max_quality": self.search_config.max_quality,
                "max_iterations": self.search_config.max_iterations,
                "tolerance": self.search_config.tolerance,
            },
            "output_config": {
                "default_width": self.output_config.default_width,
                "default_height": self.output_config.default_height,
                "default_quality": self.output_config.default_quality,
                "png_compress_level": self.output_config.png_compress_level,
                "background": list(self.output_config.background),
                "max_batch_files": self.output_config.max_batch_files,
            },
        }


def _extract_mapping(source: Mapping[str, object], key: str) -> Dict[str, object]:
    """Extract nested mapping from top-level configuration."""

    value = source.get(key)
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    raise ValueError(f"Configuration field '{key}' must be a mapping")


def _read_int(env: Mapping[str, str], name: str, target: Dict[str, Any], key: str) -> None:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return
    try:
        target[key] = int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


def _read_float(env: Mapping[str, str], name: str, target: Dict[str, Any], key: str) -> None:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return
    try:
        target[key] = float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
