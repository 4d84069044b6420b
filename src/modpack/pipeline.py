"""
Packaging pipeline.

Drives every discovered module through

    discovered -> described -> classifying -> ready | aborted

and collects one ModuleResult per module. A failing module never stops
the run; its result carries the cause instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

import structlog

from modpack.classifier import Reference, ReferenceClassifier, broken_names
from modpack.config import Settings
from modpack.core import (
    BrokenReferenceError,
    LoadError,
    ModpackError,
    ModuleDescriptor,
)
from modpack.loader import MetadataLoader
from modpack.manifest import PackageMetadata, file_placements, synthesize_manifest
from modpack.naming import package_id_for
from modpack.writer import NuGetPacker, NuspecWriter

logger = structlog.get_logger(__name__)

DescriptionProvider = Callable[[ModuleDescriptor], str]


class ModuleState(str, Enum):
    """Processing state of a single module."""

    DISCOVERED = "discovered"
    DESCRIBED = "described"
    CLASSIFYING = "classifying"
    READY = "ready"
    ABORTED = "aborted"


_TRANSITIONS: dict[ModuleState, frozenset[ModuleState]] = {
    ModuleState.DISCOVERED: frozenset({ModuleState.DESCRIBED, ModuleState.ABORTED}),
    ModuleState.DESCRIBED: frozenset({ModuleState.CLASSIFYING, ModuleState.ABORTED}),
    ModuleState.CLASSIFYING: frozenset({ModuleState.READY, ModuleState.ABORTED}),
    ModuleState.READY: frozenset(),
    ModuleState.ABORTED: frozenset(),
}


@dataclass
class ModuleResult:
    """Outcome of processing one module."""

    path: Path
    state: ModuleState = ModuleState.DISCOVERED
    package_id: str | None = None
    metadata: PackageMetadata | None = None
    references: list[Reference] = field(default_factory=list)
    manifest_path: Path | None = None
    package_path: Path | None = None
    error: str | None = None
    broken_references: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is ModuleState.READY

    def advance(self, state: ModuleState) -> None:
        """Move forward in the state machine."""
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Invalid transition {self.state.value} -> {state.value}")
        self.state = state

    def abort(self, error: ModpackError | Exception) -> None:
        self.error = str(error)
        if isinstance(error, BrokenReferenceError):
            self.broken_references = list(error.references)
        self.metadata = None
        self.advance(ModuleState.ABORTED)


@dataclass
class RunSummary:
    """Aggregated results of a packaging run."""

    results: list[ModuleResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ModuleResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> list[ModuleResult]:
        return [r for r in self.results if not r.ok]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def ok(self) -> bool:
        return not self.failed


def discover_modules(directory: Path, pattern: str) -> list[Path]:
    """Modules in directory (top level only) matching pattern, sorted by name."""
    return sorted(p for p in Path(directory).glob(pattern) if p.is_file())


class Packager:
    """
    Packages modules one at a time.

    The loader, classifier rules and writers are injected so a run can be
    exercised without real binaries or a NuGet installation.
    """

    def __init__(
        self,
        settings: Settings,
        loader: MetadataLoader,
        writer: NuspecWriter,
        packer: NuGetPacker | None = None,
        description_provider: DescriptionProvider | None = None,
    ) -> None:
        self.settings = settings
        self.loader = loader
        self.writer = writer
        self.packer = packer
        self.description_provider = description_provider
        self.classifier = ReferenceClassifier(loader, settings.rules)

    def process_module(self, path: Path) -> ModuleResult:
        """Process a single module; ModpackError never escapes."""
        result = ModuleResult(path=Path(path))

        try:
            described = self.loader.describe(result.path)
        except LoadError as e:
            logger.warning("Module could not be described", path=str(path), reason=e.reason)
            result.abort(e)
            return result

        descriptor = described.descriptor
        result.package_id = package_id_for(descriptor)
        result.advance(ModuleState.DESCRIBED)

        try:
            result.advance(ModuleState.CLASSIFYING)
            result.references = self.classifier.classify(described.references)

            broken = broken_names(result.references)
            if broken:
                raise BrokenReferenceError(descriptor.name, broken)

            description = None
            if self.description_provider is not None:
                description = self.description_provider(descriptor)

            metadata = synthesize_manifest(
                descriptor, result.references, self.settings, description=description
            )
            placements = file_placements(result.path, self.settings.target_framework)
            result.manifest_path = self.writer.write(metadata, placements)
            if self.packer is not None:
                result.package_path = self.packer.pack(result.manifest_path, metadata)
        except BrokenReferenceError as e:
            logger.warning(
                "Module has broken references",
                package_id=result.package_id,
                references=e.references,
            )
            result.abort(e)
            return result
        except ModpackError as e:
            logger.error("Module packaging failed", package_id=result.package_id, error=str(e))
            result.abort(e)
            return result

        result.metadata = metadata
        result.advance(ModuleState.READY)
        logger.info(
            "Module packaged",
            package_id=metadata.id,
            version=metadata.version,
            dependencies=len(metadata.dependencies or ()),
            framework_requirements=len(metadata.framework_requirements or ()),
        )
        return result

    def run(
        self,
        paths: Iterable[Path],
        on_result: Callable[[ModuleResult], None] | None = None,
    ) -> RunSummary:
        """Process every module in order, isolating failures per module."""
        summary = RunSummary()
        for path in paths:
            try:
                result = self.process_module(path)
            except Exception as e:
                logger.error(
                    "Unexpected error while packaging module",
                    path=str(path),
                    error=str(e),
                    exc_info=True,
                )
                result = ModuleResult(path=Path(path))
                result.abort(e)

            summary.results.append(result)
            if on_result is not None:
                on_result(result)

        logger.info(
            "Packaging run complete",
            total=summary.total,
            succeeded=len(summary.succeeded),
            failed=len(summary.failed),
        )
        return summary
