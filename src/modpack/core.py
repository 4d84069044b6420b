"""
modpack Core Types

Shared data types and the error hierarchy used across the modpack
pipeline: module descriptors, declared references and version helpers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable


class ModpackError(Exception):
    """Base exception for modpack errors."""

    pass


class ConfigurationError(ModpackError):
    """Raised when there's a configuration problem."""

    pass


class LoadError(ModpackError):
    """Raised when a module or one of its references cannot be described."""

    def __init__(self, target: str | Path, reason: str) -> None:
        self.target = str(target)
        self.reason = reason
        super().__init__(f"Could not load {self.target}: {reason}")


class BrokenReferenceError(ModpackError):
    """Raised when one or more references of a module cannot be resolved."""

    def __init__(self, module_name: str, references: Iterable[str]) -> None:
        self.module_name = module_name
        self.references = list(references)
        super().__init__(
            "One or more of the module's references could not be loaded: "
            + ", ".join(self.references)
        )


class WriteError(ModpackError):
    """Raised when a manifest or package archive cannot be persisted."""

    def __init__(self, target: str | Path, reason: str) -> None:
        self.target = str(target)
        self.reason = reason
        super().__init__(f"Could not write {self.target}: {reason}")


class Origin(str, Enum):
    """Where a resolved module comes from."""

    LOCAL = "local"
    PLATFORM = "platform"


Version = tuple[int, ...]


def parse_version(value: str | Iterable[int]) -> Version:
    """
    Parse a dotted version string or sequence into a version tuple.

    Args:
        value: "14.2.20142.1000" or an iterable of integers

    Returns:
        Tuple of 2 to 4 non-negative integers

    Raises:
        ValueError: If the value is not a valid version

    Example:
        >>> parse_version("3.1")
        (3, 1)
    """
    if isinstance(value, str):
        try:
            parts = tuple(int(p) for p in value.strip().split("."))
        except ValueError:
            raise ValueError(f"Invalid version: {value!r}")
    else:
        parts = tuple(int(p) for p in value)

    if not 2 <= len(parts) <= 4 or any(p < 0 for p in parts):
        raise ValueError(f"Invalid version: {value!r}")
    return parts


def format_version(version: Version) -> str:
    """Format a version tuple as a dotted string."""
    return ".".join(str(p) for p in version)


@dataclass(frozen=True)
class ModuleDescriptor:
    """Identity of a binary module as declared in its metadata."""

    name: str
    version: Version
    origin: Origin = Origin.LOCAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "version", parse_version(self.version))

    @property
    def major(self) -> int:
        return self.version[0]

    @property
    def minor(self) -> int:
        return self.version[1]

    @property
    def version_string(self) -> str:
        return format_version(self.version)


@dataclass(frozen=True)
class DeclaredReference:
    """A dependency as declared in a module's metadata, before classification."""

    name: str
    version: Version

    def __post_init__(self) -> None:
        object.__setattr__(self, "version", parse_version(self.version))

    @property
    def version_string(self) -> str:
        return format_version(self.version)


@dataclass(frozen=True)
class DescribedModule:
    """A module's own descriptor plus its declared references in metadata order."""

    path: Path
    descriptor: ModuleDescriptor
    references: tuple[DeclaredReference, ...] = ()
