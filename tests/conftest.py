"""
Shared fixtures for the modpack test suite.

Provides:
- An in-memory metadata loader standing in for real assemblies
- A sample module family (Widgets) with local and platform references
- Settings tuned for the sample family
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pytest

from modpack.config import Settings
from modpack.core import (
    DeclaredReference,
    DescribedModule,
    LoadError,
    ModuleDescriptor,
    Origin,
)
from modpack.writer import NuspecWriter


# ==============================================================================
# Fake Loader
# ==============================================================================

class FakeLoader:
    """MetadataLoader backed by dictionaries instead of binaries."""

    def __init__(self) -> None:
        self.modules: dict[str, DescribedModule] = {}
        self.resolvable: dict[str, ModuleDescriptor] = {}
        self.resolve_calls: list[str] = []

    def add_module(
        self,
        path: Path,
        name: str,
        version: tuple[int, ...],
        references: Iterable[tuple[str, tuple[int, ...]]] = (),
    ) -> Path:
        path = Path(path)
        self.modules[path.name] = DescribedModule(
            path=path,
            descriptor=ModuleDescriptor(name=name, version=version),
            references=tuple(
                DeclaredReference(name=n, version=v) for n, v in references
            ),
        )
        return path

    def add_local(self, name: str, version: tuple[int, ...]) -> None:
        self.resolvable[name] = ModuleDescriptor(name, version, Origin.LOCAL)

    def add_platform(self, name: str, version: tuple[int, ...] = (4, 0, 0, 0)) -> None:
        self.resolvable[name] = ModuleDescriptor(name, version, Origin.PLATFORM)

    def describe(self, path: Path) -> DescribedModule:
        try:
            return self.modules[Path(path).name]
        except KeyError:
            raise LoadError(path, "not a module")

    def resolve(self, reference: DeclaredReference) -> ModuleDescriptor:
        self.resolve_calls.append(reference.name)
        try:
            return self.resolvable[reference.name]
        except KeyError:
            raise LoadError(reference.name, "reference could not be located")


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def settings() -> Settings:
    """Settings for the Widgets family."""
    return Settings(
        family_prefix="Widgets",
        authors="Widget Works",
        description_template="This package contains the widgets assembly {name}.",
        platform_dirs=[],
    )


@pytest.fixture
def loader() -> FakeLoader:
    """Empty fake loader."""
    return FakeLoader()


@pytest.fixture
def widgets_family(tmp_path: Path, loader: FakeLoader) -> Path:
    """
    A directory with a small Widgets family.

    Widgets.v3.1 depends on Widgets.Core.v3.1, PresentationCore and
    System.Drawing. Widgets.Core.v3.1 only depends on mscorlib.
    """
    directory = tmp_path / "bin"
    directory.mkdir()

    for name in ("Widgets.v3.1.dll", "Widgets.Core.v3.1.dll"):
        (directory / name).write_bytes(b"MZ")

    loader.add_module(
        directory / "Widgets.v3.1.dll",
        "Widgets.v3.1",
        (3, 1),
        [
            ("Widgets.Core.v3.1", (3, 1)),
            ("PresentationCore", (4, 0, 0, 0)),
            ("System.Drawing", (4, 0, 0, 0)),
        ],
    )
    loader.add_module(
        directory / "Widgets.Core.v3.1.dll",
        "Widgets.Core.v3.1",
        (3, 1),
        [("mscorlib", (4, 0, 0, 0))],
    )
    loader.add_local("Widgets.Core.v3.1", (3, 1))
    loader.add_platform("PresentationCore")
    loader.add_platform("System.Drawing")
    loader.add_platform("mscorlib")
    return directory


@pytest.fixture
def writer(tmp_path: Path) -> NuspecWriter:
    """Nuspec writer targeting a temporary output directory."""
    return NuspecWriter(tmp_path / "out")
