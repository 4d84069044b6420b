"""
Configuration module for modpack.

Provides strongly-typed configuration with pydantic, supporting both
file-based and environment variable configuration. The classification
rules handed to the classifier are derived from these settings as an
immutable value.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from modpack.core import ConfigurationError

DEFAULT_FRAMEWORK_ALLOW_LIST = frozenset(
    {
        "PresentationCore",
        "PresentationFramework",
        "System.Xaml",
        "WindowsBase",
    }
)

DEFAULT_PLATFORM_DIRS = [
    Path(r"C:\Windows\Microsoft.NET\assembly"),
    Path(r"C:\Windows\assembly"),
    Path(
        r"C:\Program Files (x86)\Reference Assemblies\Microsoft\Framework"
        r"\.NETFramework\v4.0"
    ),
]

_TFM_PATTERN = re.compile(r"^net\d+(\.\d+)*$")


@dataclass(frozen=True)
class ClassificationRules:
    """Read-only rules deciding which references become package requirements."""

    family_prefix: str
    framework_allow_list: frozenset[str]

    def in_family(self, name: str) -> bool:
        """Case-insensitive family prefix test."""
        return name.casefold().startswith(self.family_prefix.casefold())

    def is_useful_framework(self, name: str) -> bool:
        return name in self.framework_allow_list


class Settings(BaseSettings):
    """
    Main modpack configuration.

    Can be configured via:
    1. Configuration file (modpack.toml, modpack.yaml or JSON)
    2. Environment variables with MODPACK_ prefix
    3. Programmatic overrides
    """

    model_config = SettingsConfigDict(
        env_prefix="MODPACK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        frozen=True,
    )

    family_prefix: str = Field(
        default="Infragistics",
        description="Name prefix identifying modules of the packaged family",
    )
    framework_allow_list: frozenset[str] = Field(
        default=DEFAULT_FRAMEWORK_ALLOW_LIST,
        description="Platform components declared as framework requirements",
    )
    search_pattern: str = Field(
        default="Infragistics*.dll",
        description="Glob pattern selecting modules in the input directory",
    )
    target_framework: str = Field(
        default="net40",
        description="Target framework moniker for dependency groups and lib folder",
    )
    authors: str = Field(
        default="Infragistics",
        description="Authors written into every manifest",
    )
    description_template: str = Field(
        default="This package contains the infragistics assembly {name}.",
        description="Package description, formatted with the module's raw name",
    )
    platform_dirs: list[Path] = Field(
        default_factory=lambda: list(DEFAULT_PLATFORM_DIRS),
        description="Directories holding platform-provided components",
    )
    nuget_executable: str = Field(
        default="NuGet.exe",
        description="Executable used to turn manifests into package archives",
    )
    pack_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Timeout for a single packaging subprocess",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("family_prefix")
    @classmethod
    def prefix_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("family_prefix must not be empty")
        return v.strip()

    @field_validator("description_template")
    @classmethod
    def template_has_name(cls, v: str) -> str:
        if "{name}" not in v:
            raise ValueError("description_template must contain '{name}'")
        return v

    @field_validator("target_framework")
    @classmethod
    def short_tfm(cls, v: str) -> str:
        if not _TFM_PATTERN.match(v):
            raise ValueError(f"Invalid target framework moniker: {v!r}")
        return v

    @property
    def rules(self) -> ClassificationRules:
        """Classification rules injected into the reference classifier."""
        return ClassificationRules(
            family_prefix=self.family_prefix,
            framework_allow_list=frozenset(self.framework_allow_list),
        )

    def describe(self, module_name: str) -> str:
        """Render the templated package description for a module."""
        return self.description_template.format(name=module_name)

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Load settings from a TOML, YAML or JSON file."""
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()
        content = path.read_text()

        try:
            if suffix == ".toml":
                import tomllib

                data = tomllib.loads(content)
            elif suffix in (".yaml", ".yml"):
                import yaml

                data = yaml.safe_load(content) or {}
            elif suffix == ".json":
                data = json.loads(content)
            else:
                raise ConfigurationError(f"Unsupported config format: {suffix}")
            return cls(**data)
        except ConfigurationError:
            raise
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}")
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration {path}: {e}")


def load_settings(
    config_path: Path | None = None,
    directory: Path | None = None,
) -> Settings:
    """
    Load settings with automatic discovery.

    Priority:
    1. Explicit config_path if provided
    2. modpack.toml in directory
    3. .modpack/config.toml in directory
    4. modpack.yaml / .modpack/config.yaml in directory
    5. Default settings
    """
    if config_path is not None:
        return Settings.from_file(config_path)

    root = directory or Path.cwd()
    candidates = [
        root / "modpack.toml",
        root / ".modpack" / "config.toml",
        root / "modpack.yaml",
        root / ".modpack" / "config.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return Settings.from_file(candidate)

    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration from environment: {e}")
