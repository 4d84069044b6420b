"""
Package writers.

NuspecWriter persists package metadata as a nuspec manifest document.
NuGetPacker hands a written manifest to the NuGet executable to build
the package archive.
"""

from __future__ import annotations

import shutil
import subprocess
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Sequence

import structlog

from modpack.core import WriteError
from modpack.manifest import (
    FilePlacement,
    PackageMetadata,
    manifest_file_name,
    package_file_names,
)

logger = structlog.get_logger(__name__)

NUSPEC_NAMESPACE = "http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd"


def _tag(name: str) -> str:
    return f"{{{NUSPEC_NAMESPACE}}}{name}"


def build_nuspec(
    metadata: PackageMetadata,
    placements: Sequence[FilePlacement],
) -> ET.Element:
    """Build the nuspec element tree for a package."""
    package = ET.Element(_tag("package"))
    meta = ET.SubElement(package, _tag("metadata"))

    for field in ("id", "version", "authors", "description"):
        ET.SubElement(meta, _tag(field)).text = getattr(metadata, field)

    if metadata.framework_requirements:
        frameworks = ET.SubElement(meta, _tag("frameworkAssemblies"))
        for name in metadata.framework_requirements:
            ET.SubElement(
                frameworks,
                _tag("frameworkAssembly"),
                assemblyName=name,
                targetFramework=metadata.target_framework,
            )

    if metadata.dependencies:
        dependencies = ET.SubElement(meta, _tag("dependencies"))
        group = ET.SubElement(
            dependencies, _tag("group"), targetFramework=metadata.target_framework
        )
        for dep in metadata.dependencies:
            ET.SubElement(group, _tag("dependency"), id=dep.id, version=dep.version)

    files = ET.SubElement(package, _tag("files"))
    for placement in placements:
        ET.SubElement(
            files,
            _tag("file"),
            src=str(placement.source),
            target=placement.target,
        )

    return package


class NuspecWriter:
    """Writes <id>.<version>.nuspec documents into an output directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    def write(
        self,
        metadata: PackageMetadata,
        placements: Sequence[FilePlacement],
    ) -> Path:
        """
        Persist a manifest.

        Returns:
            Path of the written nuspec

        Raises:
            WriteError: If the document cannot be written
        """
        path = self.output_dir / manifest_file_name(metadata)
        tree = ET.ElementTree(build_nuspec(metadata, placements))
        ET.register_namespace("", NUSPEC_NAMESPACE)

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            ET.indent(tree)
            tree.write(path, encoding="utf-8", xml_declaration=True)
        except OSError as e:
            raise WriteError(path, str(e))

        logger.debug("Manifest written", path=str(path))
        return path


class NuGetPacker:
    """Invokes the NuGet executable to turn a nuspec into a package archive."""

    def __init__(self, executable: str = "NuGet.exe", timeout: int = 300) -> None:
        self.executable = executable
        self.timeout = timeout

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def pack(self, nuspec_path: Path, metadata: PackageMetadata) -> Path:
        """
        Pack a nuspec into a .nupkg next to it.

        Raises:
            WriteError: If the executable is missing, fails or times out
        """
        output_dir = Path(nuspec_path).parent
        cmd = [
            self.executable,
            "pack",
            str(nuspec_path),
            "-OutputDirectory",
            str(output_dir),
            "-NonInteractive",
        ]
        logger.debug("Running packer", command=" ".join(cmd))

        try:
            subprocess.run(
                cmd,
                cwd=str(output_dir),
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise WriteError(nuspec_path, f"executable not found: {self.executable}")
        except subprocess.TimeoutExpired:
            raise WriteError(nuspec_path, f"packing timed out after {self.timeout}s")
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip() or "<no output>"
            raise WriteError(nuspec_path, f"exit code {e.returncode}: {stderr}")

        # NuGet normalizes versions in the archive name (3.1 -> 3.1.0, 3.1.0.0 -> 3.1.0)
        candidates = [output_dir / name for name in package_file_names(metadata)]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise WriteError(candidates[0], "packer reported success but produced no archive")
