"""
Package identity normalization.

Build tooling embeds a ".v<major>.<minor>" marker in a module's declared
name. Package ids drop that marker so dependencies between sibling
packages stay stable across servicing releases of the same major.minor.
"""

from __future__ import annotations

from modpack.core import ModuleDescriptor, Version


def version_tag(version: Version) -> str:
    """
    Build the version marker for a version.

    Example:
        >>> version_tag((14, 2, 20142, 1000))
        '.v14.2'
    """
    return f".v{version[0]}.{version[1]}"


def normalize_package_id(raw_name: str, version: Version) -> str:
    """
    Derive a canonical package id from a raw module name.

    The marker is removed only when the name ends with the exact tag for
    the module's own major/minor version; any other name is returned
    unchanged.

    Args:
        raw_name: Name as declared in the module's metadata
        version: The module's own version

    Returns:
        The package id

    Example:
        >>> normalize_package_id("Widgets.v3.1", (3, 1))
        'Widgets'
        >>> normalize_package_id("Widgets.v3.1", (4, 0))
        'Widgets.v3.1'
    """
    tag = version_tag(version)
    if raw_name.endswith(tag):
        return raw_name[: -len(tag)]
    return raw_name


def package_id_for(descriptor: ModuleDescriptor) -> str:
    """Package id of a described module."""
    return normalize_package_id(descriptor.name, descriptor.version)
