"""
Unit tests for reference classification.

Tests cover:
- The per-reference decision table
- Family prefix matching (case-insensitive)
- Framework allow-list filtering
- Ordering and broken reference reporting
"""

from __future__ import annotations

import pytest

from modpack.classifier import (
    Reference,
    ReferenceClassifier,
    ReferenceKind,
    broken_names,
    classify_resolution,
)
from modpack.config import ClassificationRules
from modpack.core import DeclaredReference, ModuleDescriptor, Origin


@pytest.fixture
def rules() -> ClassificationRules:
    return ClassificationRules(
        family_prefix="Widgets",
        framework_allow_list=frozenset({"PresentationCore", "WindowsBase"}),
    )


def _ref(name: str, version=(3, 1)) -> DeclaredReference:
    return DeclaredReference(name=name, version=version)


class TestClassifyResolution:
    """Tests for the pure decision table."""

    def test_unresolved_is_broken(self, rules):
        result = classify_resolution(_ref("Unrelated.v1.0"), None, rules)
        assert result.kind is ReferenceKind.BROKEN
        assert result.name == "Unrelated.v1.0"
        assert result.descriptor is None
        assert result.package_id is None

    def test_local_in_family(self, rules):
        resolved = ModuleDescriptor("Widgets.Core.v3.1", (3, 1), Origin.LOCAL)
        result = classify_resolution(_ref("Widgets.Core.v3.1"), resolved, rules)
        assert result.kind is ReferenceKind.LOCAL
        assert result.descriptor == resolved
        assert result.package_id == "Widgets.Core"

    def test_local_prefix_is_case_insensitive(self, rules):
        resolved = ModuleDescriptor("WIDGETS.Extra", (3, 1), Origin.LOCAL)
        result = classify_resolution(_ref("WIDGETS.Extra"), resolved, rules)
        assert result.kind is ReferenceKind.LOCAL

    def test_local_outside_family_is_dropped(self, rules):
        resolved = ModuleDescriptor("Newtonsoft.Json", (6, 0), Origin.LOCAL)
        assert classify_resolution(_ref("Newtonsoft.Json"), resolved, rules) is None

    def test_allow_listed_platform_is_framework(self, rules):
        resolved = ModuleDescriptor("PresentationCore", (4, 0, 0, 0), Origin.PLATFORM)
        result = classify_resolution(_ref("PresentationCore"), resolved, rules)
        assert result.kind is ReferenceKind.FRAMEWORK
        assert result.name == "PresentationCore"

    def test_other_platform_is_dropped(self, rules):
        resolved = ModuleDescriptor("System.Drawing", (4, 0, 0, 0), Origin.PLATFORM)
        assert classify_resolution(_ref("System.Drawing"), resolved, rules) is None

    def test_platform_in_family_still_needs_allow_list(self, rules):
        """Family prefix does not apply to platform-provided components."""
        resolved = ModuleDescriptor("Widgets.Gac", (3, 1), Origin.PLATFORM)
        assert classify_resolution(_ref("Widgets.Gac"), resolved, rules) is None

    def test_allow_list_is_exact(self, rules):
        resolved = ModuleDescriptor("presentationcore", (4, 0), Origin.PLATFORM)
        assert classify_resolution(_ref("presentationcore"), resolved, rules) is None


class TestReference:
    """Tests for Reference invariants."""

    def test_broken_must_not_carry_descriptor(self):
        with pytest.raises(ValueError):
            Reference(
                kind=ReferenceKind.BROKEN,
                name="X",
                descriptor=ModuleDescriptor("X", (1, 0)),
            )

    def test_kept_reference_requires_descriptor(self):
        with pytest.raises(ValueError):
            Reference(kind=ReferenceKind.LOCAL, name="Widgets.Core")


class TestReferenceClassifier:
    """Tests for ReferenceClassifier with a fake loader."""

    def test_classifies_in_declaration_order(self, rules, loader):
        loader.add_platform("PresentationCore")
        loader.add_local("Widgets.Core.v3.1", (3, 1))
        loader.add_platform("WindowsBase")
        references = [
            _ref("PresentationCore", (4, 0)),
            _ref("Widgets.Core.v3.1"),
            _ref("WindowsBase", (4, 0)),
        ]

        result = ReferenceClassifier(loader, rules).classify(references)

        assert [r.name for r in result] == [
            "PresentationCore",
            "Widgets.Core.v3.1",
            "WindowsBase",
        ]
        assert [r.kind for r in result] == [
            ReferenceKind.FRAMEWORK,
            ReferenceKind.LOCAL,
            ReferenceKind.FRAMEWORK,
        ]

    def test_drops_irrelevant_references(self, rules, loader):
        loader.add_platform("mscorlib")
        loader.add_local("Helpers", (1, 0))

        result = ReferenceClassifier(loader, rules).classify(
            [_ref("mscorlib", (4, 0)), _ref("Helpers", (1, 0))]
        )
        assert result == []

    def test_load_failure_becomes_broken_and_continues(self, rules, loader):
        loader.add_local("Widgets.Core.v3.1", (3, 1))

        result = ReferenceClassifier(loader, rules).classify(
            [_ref("Missing.A"), _ref("Widgets.Core.v3.1"), _ref("Missing.B")]
        )

        assert loader.resolve_calls == ["Missing.A", "Widgets.Core.v3.1", "Missing.B"]
        assert broken_names(result) == ["Missing.A", "Missing.B"]
        assert result[1].kind is ReferenceKind.LOCAL

    def test_duplicates_are_not_collapsed(self, rules, loader):
        loader.add_platform("WindowsBase")

        result = ReferenceClassifier(loader, rules).classify(
            [_ref("WindowsBase", (4, 0)), _ref("WindowsBase", (4, 0))]
        )
        assert len(result) == 2

    def test_try_resolve_returns_none_on_failure(self, rules, loader):
        classifier = ReferenceClassifier(loader, rules)
        assert classifier.try_resolve(_ref("Nowhere")) is None
