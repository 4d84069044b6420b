"""
Metadata loading for compiled .NET modules.

Reads identity and declared references straight from the ECMA-335
metadata tables using dnfile. Nothing in the module is executed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, Sequence

import dnfile
import pefile
import structlog

from modpack.core import (
    DeclaredReference,
    DescribedModule,
    LoadError,
    ModuleDescriptor,
    Origin,
)

logger = structlog.get_logger(__name__)

_LOCAL_SUFFIXES = (".dll", ".exe")


class MetadataLoader(Protocol):
    """Describes modules and resolves their references without running them."""

    def describe(self, path: Path) -> DescribedModule:
        """Describe the module at path. Raises LoadError."""
        ...

    def resolve(self, reference: DeclaredReference) -> ModuleDescriptor:
        """Locate and describe a referenced module. Raises LoadError."""
        ...


def _text(value: Any) -> str:
    # Newer dnfile releases wrap heap strings in an object exposing .value
    value = getattr(value, "value", value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _row_version(row: Any) -> tuple[int, int, int, int]:
    return (
        int(row.MajorVersion),
        int(row.MinorVersion),
        int(row.BuildNumber),
        int(row.RevisionNumber),
    )


def read_assembly_metadata(
    path: Path,
) -> tuple[str, tuple[int, ...], list[DeclaredReference]]:
    """
    Read a module's name, version and referenced assemblies.

    Args:
        path: Path to a .NET PE file

    Returns:
        (name, version, references) with references in metadata order

    Raises:
        LoadError: If the file is unreadable or not a .NET assembly
    """
    try:
        pe = dnfile.dnPE(str(path))
    except (OSError, pefile.PEFormatError) as e:
        raise LoadError(path, str(e))

    try:
        net = getattr(pe, "net", None)
        tables = getattr(net, "mdtables", None) if net else None
        assembly_table = getattr(tables, "Assembly", None) if tables else None
        if not assembly_table or not assembly_table.rows:
            raise LoadError(path, "not a .NET assembly (no Assembly metadata)")

        row = assembly_table.rows[0]
        name = _text(row.Name)
        version = _row_version(row)

        references: list[DeclaredReference] = []
        ref_table = getattr(tables, "AssemblyRef", None)
        for ref in (ref_table.rows if ref_table else []):
            references.append(
                DeclaredReference(name=_text(ref.Name), version=_row_version(ref))
            )
        return name, version, references
    finally:
        pe.close()


class AssemblyMetadataLoader:
    """
    dnfile-backed metadata loader.

    References resolve against the platform directories first, mirroring
    the global assembly cache taking precedence, then against the local
    search directories. A reference found in neither cannot be loaded.
    """

    def __init__(
        self,
        search_dirs: Sequence[Path] = (),
        platform_dirs: Sequence[Path] = (),
    ) -> None:
        self.search_dirs = [Path(d) for d in search_dirs]
        self.platform_dirs = [Path(d) for d in platform_dirs]
        # Per-run memo of filesystem lookups, including failed ones
        self._cache: dict[str, ModuleDescriptor | LoadError] = {}

    def describe(self, path: Path) -> DescribedModule:
        path = Path(path)
        if not path.is_file():
            raise LoadError(path, "file not found")

        name, version, references = read_assembly_metadata(path)
        logger.debug(
            "Described module",
            path=str(path),
            name=name,
            references=len(references),
        )
        return DescribedModule(
            path=path,
            descriptor=ModuleDescriptor(name=name, version=version, origin=Origin.LOCAL),
            references=tuple(references),
        )

    def resolve(self, reference: DeclaredReference) -> ModuleDescriptor:
        cached = self._cache.get(reference.name)
        if isinstance(cached, LoadError):
            raise cached
        if cached is not None:
            return cached

        location = self._find_platform(reference.name)
        origin = Origin.PLATFORM
        if location is None:
            location = self._find_local(reference.name)
            origin = Origin.LOCAL

        try:
            if location is None:
                raise LoadError(reference.name, "reference could not be located")
            name, version, _ = read_assembly_metadata(location)
        except LoadError as e:
            self._cache[reference.name] = e
            raise

        descriptor = ModuleDescriptor(name=name, version=version, origin=origin)
        self._cache[reference.name] = descriptor
        logger.debug(
            "Resolved reference",
            reference=reference.name,
            origin=origin.value,
            location=str(location),
        )
        return descriptor

    def _find_platform(self, name: str) -> Path | None:
        file_name = f"{name}.dll"
        for directory in self.platform_dirs:
            if not directory.is_dir():
                continue
            for candidate in sorted(directory.rglob(file_name)):
                if candidate.is_file():
                    return candidate
        return None

    def _find_local(self, name: str) -> Path | None:
        for directory in self.search_dirs:
            for suffix in _LOCAL_SUFFIXES:
                candidate = directory / f"{name}{suffix}"
                if candidate.is_file():
                    return candidate
        return None
