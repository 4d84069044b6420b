"""
Reference classification.

Every declared reference of a module ends up as one of:
- a local dependency: a sibling module of the packaged family,
- a framework dependency: an allow-listed platform component,
- a broken reference: nothing could be loaded for it,
or is dropped because packaging does not need to express it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

import structlog

from modpack.config import ClassificationRules
from modpack.core import (
    DeclaredReference,
    LoadError,
    ModuleDescriptor,
    Origin,
)
from modpack.loader import MetadataLoader
from modpack.naming import package_id_for

logger = structlog.get_logger(__name__)


class ReferenceKind(str, Enum):
    """Classification outcome of a kept reference."""

    LOCAL = "local"
    FRAMEWORK = "framework"
    BROKEN = "broken"


@dataclass(frozen=True)
class Reference:
    """A classified reference. Broken references only retain the requested name."""

    kind: ReferenceKind
    name: str
    descriptor: ModuleDescriptor | None = None

    def __post_init__(self) -> None:
        if (self.descriptor is None) != (self.kind is ReferenceKind.BROKEN):
            raise ValueError(
                f"{self.kind.value} reference {self.name!r} "
                "must carry a descriptor unless broken"
            )

    @property
    def package_id(self) -> str | None:
        if self.descriptor is None:
            return None
        return package_id_for(self.descriptor)


def classify_resolution(
    requested: DeclaredReference,
    resolved: ModuleDescriptor | None,
    rules: ClassificationRules,
) -> Reference | None:
    """
    Decide what a single reference becomes.

    Args:
        requested: The reference as declared by the module
        resolved: The loaded descriptor, or None when loading failed
        rules: Family prefix and framework allow-list

    Returns:
        The classified reference, or None when it is dropped
    """
    if resolved is None:
        return Reference(kind=ReferenceKind.BROKEN, name=requested.name)

    if resolved.origin is Origin.LOCAL:
        if rules.in_family(requested.name):
            return Reference(
                kind=ReferenceKind.LOCAL, name=requested.name, descriptor=resolved
            )
        return None

    if rules.is_useful_framework(requested.name):
        return Reference(
            kind=ReferenceKind.FRAMEWORK, name=requested.name, descriptor=resolved
        )
    return None


def broken_names(references: Iterable[Reference]) -> list[str]:
    """Raw names of every broken reference, in order."""
    return [r.name for r in references if r.kind is ReferenceKind.BROKEN]


class ReferenceClassifier:
    """Resolves declared references through a metadata loader and classifies them."""

    def __init__(self, loader: MetadataLoader, rules: ClassificationRules) -> None:
        self.loader = loader
        self.rules = rules

    def try_resolve(self, reference: DeclaredReference) -> ModuleDescriptor | None:
        """Resolve a reference, returning None when it cannot be loaded."""
        try:
            return self.loader.resolve(reference)
        except LoadError as e:
            logger.debug("Reference unresolved", reference=reference.name, reason=e.reason)
            return None

    def classify(self, references: Sequence[DeclaredReference]) -> list[Reference]:
        """Classify references in declaration order, dropping irrelevant ones."""
        classified: list[Reference] = []
        dropped = 0
        for requested in references:
            result = classify_resolution(requested, self.try_resolve(requested), self.rules)
            if result is None:
                dropped += 1
                continue
            classified.append(result)

        logger.debug(
            "Classified references",
            declared=len(references),
            kept=len(classified),
            dropped=dropped,
        )
        return classified
