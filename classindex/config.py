"""Configuration loading and validation for the class index."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from classindex.header import to_internal
from classindex.writer import OutputShape


class ConfigError(Exception):
    """Error in class index configuration."""

    def __init__(
        self,
        message: str,
        file: Optional[str] = None,
        error_type: str = "config_invalid",
    ):
        super().__init__(message)
        self.message = message
        self.file = file
        self.error_type = error_type

    def to_json(self) -> dict[str, Any]:
        """Serialize error to JSON format for machine parsing."""
        result: dict[str, Any] = {
            "error": self.error_type,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        return result

    def __str__(self) -> str:
        if self.file:
            return f"{self.message} | file: {self.file}"
        return self.message


DEFAULT_CONFIG_PATH = "classindex.yaml"
DEFAULT_BASE_CLASS = "org.nanonative.nano.core.model.Service"
DEFAULT_CLASSES_DIR = "target/classes"
DEFAULT_OUTPUT_PATH = "META-INF/classindex/services.properties"


@dataclass
class IndexConfig:
    """Complete class index configuration."""

    base_classes: list[str] = field(default_factory=lambda: [DEFAULT_BASE_CLASS])  # dotted
    classes_dir: str = DEFAULT_CLASSES_DIR
    archives: list[str] = field(default_factory=list)
    output_path: str = DEFAULT_OUTPUT_PATH  # relative to classes_dir
    output_shape: OutputShape = OutputShape.PROPERTIES
    use_precomputed: bool = True
    verbose: bool = False

    @property
    def requested_bases(self) -> list[str]:
        """Base classes as internal names, de-duplicated, in order."""
        seen: dict[str, None] = {}
        for name in self.base_classes:
            seen.setdefault(to_internal(name), None)
        return list(seen)

    @property
    def output_file(self) -> Path:
        return Path(self.classes_dir) / self.output_path


def get_default_config() -> IndexConfig:
    """Return the default configuration."""
    return IndexConfig()


def parse_base_classes(value: Any, config_file: Optional[str] = None) -> list[str]:
    """Accept a comma-separated string or a list of dotted names.

    Blank entries are dropped. ``None`` yields an empty list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ConfigError(
            f"base_classes must be a list or comma-separated string, got {type(value).__name__}",
            file=config_file,
        )

    names = []
    for item in items:
        if not isinstance(item, str):
            raise ConfigError(f"Invalid base class entry: {item!r}", file=config_file)
        item = item.strip()
        if item:
            names.append(item)
    return names


def _parse_shape(value: Any, config_file: Optional[str] = None) -> OutputShape:
    if isinstance(value, OutputShape):
        return value
    try:
        return OutputShape.parse(str(value))
    except ValueError as e:
        raise ConfigError(str(e), file=config_file)


def validate_config(config: IndexConfig, config_file: Optional[str] = None) -> None:
    """Validate configuration values.

    An empty base list is allowed; the run simply produces nothing.

    Raises:
        ConfigError: If configuration is invalid.
    """
    if config.output_shape is OutputShape.FLAT and len(config.requested_bases) > 1:
        raise ConfigError(
            "flat output supports exactly one base class, "
            f"got {len(config.requested_bases)}",
            file=config_file,
        )
    if not config.output_path or Path(config.output_path).is_absolute():
        raise ConfigError(
            f"output_path must be a relative path, got '{config.output_path}'",
            file=config_file,
        )
    if not isinstance(config.archives, list):
        raise ConfigError("archives must be a list of paths", file=config_file)


def load_config(config_path: Path | str) -> IndexConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the classindex.yaml file.

    Returns:
        IndexConfig with loaded values merged with defaults.

    Raises:
        ConfigError: If the file exists but contains invalid configuration.
    """
    config_path = Path(config_path)
    config_file = str(config_path)

    defaults = get_default_config()

    if not config_path.exists():
        return defaults

    try:
        content = config_path.read_text()
        if not content.strip():
            return defaults

        data = yaml.safe_load(content)
        if not data:
            return defaults
        if not isinstance(data, dict):
            raise ConfigError(
                "Top-level classindex config must be a mapping",
                file=config_file,
            )

    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}", file=config_file)

    base_classes = (
        parse_base_classes(data["base_classes"], config_file)
        if "base_classes" in data
        else defaults.base_classes
    )

    config = IndexConfig(
        base_classes=base_classes,
        classes_dir=str(data.get("classes_dir", defaults.classes_dir)),
        archives=data.get("archives") or [],
        output_path=str(data.get("output_path", defaults.output_path)),
        output_shape=_parse_shape(data.get("output_shape", defaults.output_shape), config_file),
        use_precomputed=bool(data.get("use_precomputed", defaults.use_precomputed)),
        verbose=bool(data.get("verbose", defaults.verbose)),
    )

    validate_config(config, config_file)

    return config
