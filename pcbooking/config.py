"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import Resource
from .domain.time_grid import DEFAULT_TIMEZONE, SLOT_MINUTES, TimeGrid
from .domain.long_press import LONG_PRESS_MS, LongPressGate, ScrollLock


class GridConfig(BaseModel):
    """Settings for the day grid and touch input."""
    slot_minutes: int = SLOT_MINUTES
    long_press_ms: int = LONG_PRESS_MS

    @field_validator("slot_minutes")
    @classmethod
    def validate_slot_minutes(cls, value: int) -> int:
        """Slots must tile an hour exactly."""
        if value <= 0 or 60 % value != 0:
            raise ValueError(f"slot_minutes must evenly divide 60, got {value}")
        return value

    @field_validator("long_press_ms")
    @classmethod
    def validate_long_press(cls, value: int) -> int:
        """Ensure the long-press delay is positive."""
        if value <= 0:
            raise ValueError("long_press_ms must be greater than zero")
        return value


class ResourceConfig(BaseModel):
    """A machine registered at start-up."""
    id: str
    name: str

    def to_domain(self) -> Resource:
        return Resource(id=self.id, name=self.name)


def _default_resources() -> List[ResourceConfig]:
    return [
        ResourceConfig(id="1", name="1号機（白）富士通"),
        ResourceConfig(id="2", name="2号機（黒）ダイナブック"),
    ]


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = DEFAULT_TIMEZONE
    database_url: str = "sqlite:///pcbooking.db"
    log_level: str = "INFO"
    grid: GridConfig = Field(default_factory=GridConfig)
    resources: List[ResourceConfig] = Field(default_factory=_default_resources)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Ensure the log level is one the logging module knows."""
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @field_validator("resources")
    @classmethod
    def validate_resources(cls, value: List[ResourceConfig]) -> List[ResourceConfig]:
        """Ensure resource ids and names are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for resource in value:
            id_key = resource.id.lower()
            name_key = resource.name.lower()
            if id_key in seen_ids:
                raise ValueError(f"Duplicate resource id detected: {resource.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate resource name detected: {resource.name}")
            seen_ids.add(id_key)
            seen_names.add(name_key)
        return value

    def build_grid(self) -> TimeGrid:
        """Create the time grid for the configured timezone."""
        return TimeGrid(timezone=self.timezone, slot_minutes=self.grid.slot_minutes)

    def build_long_press_gate(self, scroll_lock: Optional[ScrollLock] = None) -> LongPressGate:
        """Create the touch long-press gate with the configured delay."""
        return LongPressGate(scroll_lock=scroll_lock, hold_ms=self.grid.long_press_ms)

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_resource(self, identifier: str) -> ResourceConfig | None:
        """Find a resource by its id or display name."""
        for resource in self.resources:
            if resource.id == identifier:
                return resource
        for resource in self.resources:
            if resource.name.lower() == identifier.lower():
                return resource
        return None

    def resolve_resource(self, identifier: str) -> str:
        """
        Resolve a resource identifier (id or display name) to a resource id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        resource = self.find_resource(identifier.strip())
        if resource:
            return resource.id

        known = ", ".join(r.id for r in self.resources) or "none"
        raise ValueError(
            f"Unknown resource identifier: '{identifier}'. "
            f"Use a configured id or name (known ids: {known})."
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
