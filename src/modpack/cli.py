"""
modpack CLI - Module Packager Command Line Interface

Scans a directory of compiled modules, classifies their references and
writes one package manifest per module.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import structlog
from rich import box
from rich.console import Console
from rich.table import Table

from modpack import __version__
from modpack.classifier import ReferenceClassifier, ReferenceKind, classify_resolution
from modpack.config import Settings, load_settings
from modpack.core import ConfigurationError, LoadError, ModuleDescriptor
from modpack.loader import AssemblyMetadataLoader
from modpack.naming import package_id_for
from modpack.pipeline import ModuleResult, Packager, RunSummary, discover_modules
from modpack.writer import NuGetPacker, NuspecWriter

# Rich console for pretty output
console = Console()
error_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]✓[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]![/bold yellow] {message}")


def configure_logging(settings: Settings, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


def _load_settings_or_exit(config: Optional[Path], directory: Path) -> Settings:
    try:
        return load_settings(config_path=config, directory=directory)
    except ConfigurationError as e:
        print_error(str(e))
        sys.exit(1)


def _prompt_description(descriptor: ModuleDescriptor) -> str:
    try:
        return click.prompt(f"{package_id_for(descriptor)} description")
    except click.Abort:
        # Interrupting the prompt cancels the whole run
        raise KeyboardInterrupt


def _report(result: ModuleResult) -> None:
    label = result.package_id or result.path.name
    if result.ok:
        print_success(f"{label}... DONE")
    elif result.broken_references:
        print_error(
            f"{label}... FAILED: One or more of the module's references could not "
            f"be loaded: {', '.join(result.broken_references)}"
        )
    else:
        print_error(f"{label}... FAILED: {result.error}")


def _print_summary(summary: RunSummary) -> None:
    console.print()
    if summary.succeeded:
        table = Table(
            title="Packaged Modules",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Package", style="cyan")
        table.add_column("Version", style="green")
        table.add_column("Dependencies", justify="right")
        table.add_column("Frameworks", justify="right")
        table.add_column("Manifest", style="dim")
        for result in summary.succeeded:
            metadata = result.metadata
            table.add_row(
                metadata.id,
                metadata.version,
                str(len(metadata.dependencies or ())),
                str(len(metadata.framework_requirements or ())),
                (result.package_path or result.manifest_path).name,
            )
        console.print(table)

    if summary.failed:
        table = Table(
            title="Failed Modules",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold red",
        )
        table.add_column("Module", style="yellow")
        table.add_column("Broken References", style="red")
        table.add_column("Error", style="dim")
        for result in summary.failed:
            table.add_row(
                result.path.name,
                ", ".join(result.broken_references) or "-",
                result.error or "-",
            )
        console.print(table)

    console.print(
        f"\n{len(summary.succeeded)} of {summary.total} module(s) packaged successfully."
    )


@click.group()
@click.version_option(version=__version__, prog_name="modpack")
def main() -> None:
    """
    modpack - Module Packager

    Synthesizes versioned package manifests for a family of compiled
    modules from their declared references.
    """
    pass


@main.command()
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for manifests (defaults to DIRECTORY)",
)
@click.option("--pattern", help="Glob pattern selecting modules to package")
@click.option(
    "--nuget/--no-nuget",
    default=False,
    help="Build package archives with the NuGet executable",
)
@click.option(
    "--prompt-description",
    is_flag=True,
    help="Ask for a description for every module",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def pack(
    directory: Path,
    config: Optional[Path],
    output: Optional[Path],
    pattern: Optional[str],
    nuget: bool,
    prompt_description: bool,
    verbose: bool,
) -> None:
    """Package every matching module in DIRECTORY."""
    directory = directory.resolve()
    settings = _load_settings_or_exit(config, directory)
    configure_logging(settings, verbose)

    packer = None
    if nuget:
        packer = NuGetPacker(settings.nuget_executable, timeout=settings.pack_timeout_seconds)
        if not packer.available():
            print_error(f"Cannot find {settings.nuget_executable}, won't continue")
            sys.exit(1)

    search_pattern = pattern or settings.search_pattern
    modules = discover_modules(directory, search_pattern)
    if not modules:
        print_warning(f"No modules matching '{search_pattern}' in {directory}")
        return

    console.print(f"\n[bold]Packaging {len(modules)} module(s) from[/bold] {directory}\n")

    packager = Packager(
        settings=settings,
        loader=AssemblyMetadataLoader(
            search_dirs=[directory], platform_dirs=settings.platform_dirs
        ),
        writer=NuspecWriter(output or directory),
        packer=packer,
        description_provider=_prompt_description if prompt_description else None,
    )
    summary = packager.run(modules, on_result=_report)
    _print_summary(summary)

    if not summary.ok:
        sys.exit(1)


@main.command()
@click.argument(
    "module",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def inspect(module: Path, config: Optional[Path], verbose: bool) -> None:
    """Show how MODULE's references would be classified."""
    module = module.resolve()
    settings = _load_settings_or_exit(config, module.parent)
    configure_logging(settings, verbose)

    loader = AssemblyMetadataLoader(
        search_dirs=[module.parent], platform_dirs=settings.platform_dirs
    )
    try:
        described = loader.describe(module)
    except LoadError as e:
        print_error(str(e))
        sys.exit(1)

    descriptor = described.descriptor
    console.print(f"\n[bold]Module:[/bold] {descriptor.name} {descriptor.version_string}")
    console.print(f"[bold]Package id:[/bold] [cyan]{package_id_for(descriptor)}[/cyan]\n")

    table = Table(
        title="References",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Reference", style="white")
    table.add_column("Requested", style="dim")
    table.add_column("Classification")
    table.add_column("Package / Component", style="cyan")

    classifier = ReferenceClassifier(loader, settings.rules)
    broken = []
    for requested in described.references:
        reference = classify_resolution(
            requested, classifier.try_resolve(requested), settings.rules
        )
        if reference is None:
            kind, target = "[dim]dropped[/dim]", "-"
        elif reference.kind is ReferenceKind.BROKEN:
            kind, target = "[bold red]broken[/bold red]", "-"
            broken.append(reference.name)
        elif reference.kind is ReferenceKind.LOCAL:
            kind = "[green]local[/green]"
            target = f"{reference.package_id} {reference.descriptor.version_string}"
        else:
            kind, target = "[blue]framework[/blue]", reference.name
        table.add_row(requested.name, requested.version_string, kind, target)

    console.print(table)

    if broken:
        print_error(
            "One or more of the module's references could not be loaded: "
            + ", ".join(broken)
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
