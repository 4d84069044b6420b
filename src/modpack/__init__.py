"""
modpack - Module Packager

Turns a directory of compiled modules from one product family into a
consistent, versioned set of package manifests.
"""

__version__ = "0.1.0"
__author__ = "modpack Contributors"

from modpack.core import (
    BrokenReferenceError,
    ConfigurationError,
    DeclaredReference,
    DescribedModule,
    LoadError,
    ModpackError,
    ModuleDescriptor,
    Origin,
    WriteError,
)
from modpack.config import ClassificationRules, Settings, load_settings
from modpack.naming import normalize_package_id
from modpack.classifier import Reference, ReferenceClassifier, ReferenceKind
from modpack.manifest import PackageMetadata, synthesize_manifest
from modpack.pipeline import ModuleResult, ModuleState, Packager, RunSummary

__all__ = [
    "__version__",
    "__author__",
    "ModpackError",
    "ConfigurationError",
    "LoadError",
    "BrokenReferenceError",
    "WriteError",
    "Origin",
    "ModuleDescriptor",
    "DeclaredReference",
    "DescribedModule",
    "ClassificationRules",
    "Settings",
    "load_settings",
    "normalize_package_id",
    "Reference",
    "ReferenceKind",
    "ReferenceClassifier",
    "PackageMetadata",
    "synthesize_manifest",
    "ModuleResult",
    "ModuleState",
    "Packager",
    "RunSummary",
]
