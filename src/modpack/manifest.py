"""
Package manifest synthesis.

Turns a described module and its classified references into the
metadata of a distributable package. Pure transformations, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from modpack.classifier import Reference, ReferenceKind, broken_names
from modpack.config import Settings
from modpack.core import BrokenReferenceError, ModuleDescriptor
from modpack.naming import package_id_for


@dataclass(frozen=True)
class PackageDependency:
    """Dependency on a sibling package."""

    id: str
    version: str


@dataclass(frozen=True)
class FilePlacement:
    """Where a source file lands inside the package."""

    source: Path
    target: str


@dataclass(frozen=True)
class PackageMetadata:
    """
    Metadata of one package.

    Empty dependency or framework collections are stored as None so that
    writers omit them instead of emitting empty elements.
    """

    id: str
    version: str
    authors: str
    description: str
    target_framework: str
    dependencies: tuple[PackageDependency, ...] | None = None
    framework_requirements: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary, omitting absent collections."""
        data: dict[str, Any] = {
            "id": self.id,
            "version": self.version,
            "authors": self.authors,
            "description": self.description,
            "target_framework": self.target_framework,
        }
        if self.dependencies:
            data["dependencies"] = [
                {"id": d.id, "version": d.version} for d in self.dependencies
            ]
        if self.framework_requirements:
            data["framework_requirements"] = list(self.framework_requirements)
        return data


def synthesize_manifest(
    module: ModuleDescriptor,
    references: Sequence[Reference],
    settings: Settings,
    description: str | None = None,
) -> PackageMetadata:
    """
    Build package metadata for a module.

    Args:
        module: The module's own descriptor
        references: Classified references, free of broken entries
        settings: Supplies authors, description template and target framework
        description: Explicit description overriding the template

    Returns:
        The package metadata

    Raises:
        BrokenReferenceError: If a broken reference slipped through
    """
    broken = broken_names(references)
    if broken:
        raise BrokenReferenceError(module.name, broken)

    dependencies = tuple(
        PackageDependency(
            id=package_id_for(r.descriptor),
            version=r.descriptor.version_string,
        )
        for r in references
        if r.kind is ReferenceKind.LOCAL
    )
    framework_requirements = tuple(
        r.name for r in references if r.kind is ReferenceKind.FRAMEWORK
    )

    return PackageMetadata(
        id=package_id_for(module),
        version=module.version_string,
        authors=settings.authors,
        description=description or settings.describe(module.name),
        target_framework=settings.target_framework,
        dependencies=dependencies or None,
        framework_requirements=framework_requirements or None,
    )


def file_placements(module_path: Path, target_framework: str) -> list[FilePlacement]:
    """The module's own binary goes to lib\\<target framework>."""
    return [FilePlacement(source=Path(module_path), target=f"lib\\{target_framework}")]


def manifest_file_name(metadata: PackageMetadata) -> str:
    return f"{metadata.id}.{metadata.version}.nuspec"


def package_file_name(metadata: PackageMetadata) -> str:
    return f"{metadata.id}.{metadata.version}.nupkg"


def normalized_version(version: str) -> str:
    """
    Version as NuGet spells it in archive names.

    >>> normalized_version("3.1")
    '3.1.0'
    >>> normalized_version("3.1.0.0")
    '3.1.0'
    >>> normalized_version("3.1.0.5")
    '3.1.0.5'
    """
    parts = [int(p) for p in version.split(".")]
    parts += [0] * (3 - len(parts))
    if len(parts) > 3 and parts[3] == 0:
        parts = parts[:3]
    return ".".join(str(p) for p in parts)


def package_file_names(metadata: PackageMetadata) -> list[str]:
    """Archive names NuGet may produce for metadata, declared form first."""
    names = [package_file_name(metadata)]
    normalized = f"{metadata.id}.{normalized_version(metadata.version)}.nupkg"
    if normalized not in names:
        names.append(normalized)
    return names
