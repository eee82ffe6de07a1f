"""
sasakit Command Line Interface.

Calculates solvent accessible surface areas for one or more structure
files. A file that fails to parse or calculate is reported and skipped;
the exit status is 1 if any file failed.

Usage:
    sasakit calc protein.pdb other.cif.gz
    sasakit calc --algorithm shrake-rupley --probe-radius 1.2 protein.pdb
    sasakit tree protein.pdb --format json -o protein.json
    sasakit select protein.pdb -s "backbone, name ca+n+c+o" -s "gly, resn gly"
"""

from __future__ import annotations

import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .. import __version__
from ..calculation import DEFAULT_N_THREADS, Algorithm, CalcParameters, compute, compute_tree
from ..core.classifier import Classifier
from ..core.errors import SasaError
from ..core.models import NodeType
from ..core.native import Verbosity, set_verbosity
from ..core.structure import Structure, StructureOptions
from ..results.export import FORMATS, export_tree
from ..results.selection import evaluate_many
from ..results.tree import join_trees

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else (logging.ERROR if quiet else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=verbose)],
        force=True,
    )
    set_verbosity(Verbosity.SILENT if quiet else Verbosity.NORMAL)


def calculation_options(func):
    """Options shared by every command that runs a calculation."""
    options = [
        click.option(
            "--algorithm", "-a",
            type=click.Choice([a.value for a in Algorithm]),
            default=Algorithm.LEE_RICHARDS.value,
            show_default=True,
            help="SASA algorithm",
        ),
        click.option(
            "--probe-radius", "-p",
            type=float,
            default=1.4,
            show_default=True,
            help="Probe radius in Å",
        ),
        click.option(
            "--resolution", "-r",
            type=int,
            default=None,
            help="Slices per atom (Lee & Richards) or points per atom (Shrake & Rupley)",
        ),
        click.option(
            "--threads", "-t",
            type=int,
            default=DEFAULT_N_THREADS,
            show_default=True,
            help="Number of calculation threads",
        ),
        click.option(
            "--classifier", "-c",
            type=click.Path(),
            default=None,
            help="Classifier configuration file (default: ProtOr)",
        ),
        click.option("--hetatm", is_flag=True, help="Include HETATM records"),
        click.option("--hydrogen", is_flag=True, help="Include hydrogen atoms"),
        click.option("--skip-unknown", is_flag=True, help="Skip atoms the classifier does not know"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _parameters(algorithm: str, probe_radius: float, resolution: Optional[int], threads: int) -> CalcParameters:
    algorithm = Algorithm(algorithm)
    kwargs = {}
    if resolution is not None:
        key = "n_slices" if algorithm is Algorithm.LEE_RICHARDS else "n_points"
        kwargs[key] = resolution
    return CalcParameters(algorithm=algorithm, probe_radius=probe_radius, n_threads=threads, **kwargs)


def _load_classifier(stack: ExitStack, path: Optional[str]) -> Classifier:
    try:
        classifier = Classifier.load(path) if path else Classifier.default()
    except SasaError as e:
        error_console.print(f"[red]✗ Error loading classifier:[/red] {e}")
        sys.exit(1)
    return stack.enter_context(classifier)


@click.group()
@click.version_option(version=__version__, prog_name="sasakit")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Silence warnings, including those of the native library")
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool):
    """
    sasakit: solvent accessible surface area of molecular structures.

    Run 'sasakit COMMAND --help' for command-specific help.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose, quiet)


@cli.command("calc")
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@calculation_options
@click.pass_context
def calc(
    ctx,
    paths: tuple,
    algorithm: str,
    probe_radius: float,
    resolution: Optional[int],
    threads: int,
    classifier: Optional[str],
    hetatm: bool,
    hydrogen: bool,
    skip_unknown: bool,
):
    """
    Calculate total, apolar and polar SASA of structure files.

    \b
    Examples:
        sasakit calc 1ubq.pdb
        sasakit calc *.pdb --algorithm shrake-rupley
    """
    parameters = _parameters(algorithm, probe_radius, resolution, threads)
    options = StructureOptions(
        include_hetatm=hetatm, include_hydrogens=hydrogen, skip_unknown=skip_unknown
    )

    table = Table(title=f"SASA ({parameters.describe()})")
    table.add_column("Structure", style="cyan")
    table.add_column("Atoms", justify="right")
    table.add_column("Total (Å²)", justify="right", style="bold")
    table.add_column("Apolar (Å²)", justify="right")
    table.add_column("Polar (Å²)", justify="right")

    failed = []
    with ExitStack() as stack:
        loaded_classifier = _load_classifier(stack, classifier)
        for path in paths:
            try:
                with Structure.from_file(path, loaded_classifier, options) as structure:
                    with compute(structure, parameters) as result:
                        area = result.total_area()
                        table.add_row(
                            structure.name,
                            str(result.n_atoms),
                            f"{area.total:.2f}",
                            f"{area.apolar:.2f}",
                            f"{area.polar:.2f}",
                        )
            except SasaError as e:
                failed.append(path)
                error_console.print(f"[red]✗[/red] {path}: {e}")

    if table.row_count:
        console.print(table)
    if failed:
        error_console.print(f"[red]{len(failed)} of {len(paths)} file(s) failed[/red]")
        sys.exit(1)


@cli.command("tree")
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.option(
    "--format", "-f", "fmt",
    type=click.Choice(list(FORMATS)),
    default="text",
    show_default=True,
    help="Output format",
)
@click.option(
    "--depth", "-d",
    type=click.Choice(["structure", "chain", "residue", "atom"]),
    default="atom",
    show_default=True,
    help="Deepest level of the tree",
)
@click.option("--output", "-o", type=click.Path(), default=None, help="Write to file instead of stdout")
@calculation_options
@click.pass_context
def tree(
    ctx,
    paths: tuple,
    fmt: str,
    depth: str,
    output: Optional[str],
    algorithm: str,
    probe_radius: float,
    resolution: Optional[int],
    threads: int,
    classifier: Optional[str],
    hetatm: bool,
    hydrogen: bool,
    skip_unknown: bool,
):
    """
    Print the structure/chain/residue/atom SASA breakdown.

    Several files are joined into one tree with one result per file.

    \b
    Examples:
        sasakit tree 1ubq.pdb --depth residue
        sasakit tree a.pdb b.pdb --format xml -o ab.xml
    """
    parameters = _parameters(algorithm, probe_radius, resolution, threads)
    options = StructureOptions(
        include_hetatm=hetatm, include_hydrogens=hydrogen, skip_unknown=skip_unknown
    )

    joined = None
    failed = []
    with ExitStack() as stack:
        loaded_classifier = _load_classifier(stack, classifier)
        for path in paths:
            try:
                with Structure.from_file(path, loaded_classifier, options) as structure:
                    file_tree = compute_tree(structure, parameters, name=str(path), depth=NodeType(depth))
            except SasaError as e:
                failed.append(path)
                error_console.print(f"[red]✗[/red] {path}: {e}")
                continue
            joined = file_tree if joined is None else join_trees(joined, file_tree)

    if joined is not None:
        try:
            with joined:
                data = export_tree(joined, fmt, output)
        except SasaError as e:
            error_console.print(f"[red]✗ Export failed:[/red] {e}")
            sys.exit(1)
        if output:
            console.print(f"[green]✓[/green] Tree written to {output}")
        else:
            click.echo(data.decode("utf-8"), nl=False)

    if failed:
        sys.exit(1)


@cli.command("select")
@click.argument("path", type=click.Path())
@click.option(
    "--selection", "-s", "commands",
    multiple=True,
    required=True,
    help='Selection command, e.g. "backbone, name ca+n+c+o" (repeatable)',
)
@calculation_options
@click.pass_context
def select(
    ctx,
    path: str,
    commands: tuple,
    algorithm: str,
    probe_radius: float,
    resolution: Optional[int],
    threads: int,
    classifier: Optional[str],
    hetatm: bool,
    hydrogen: bool,
    skip_unknown: bool,
):
    """
    Calculate the SASA of named atom selections.

    \b
    Examples:
        sasakit select 1ubq.pdb -s "backbone, name ca+n+c+o"
        sasakit select 1ubq.pdb -s "charged, resn arg+lys+asp+glu" -s "A, chain A"
    """
    parameters = _parameters(algorithm, probe_radius, resolution, threads)
    options = StructureOptions(
        include_hetatm=hetatm, include_hydrogens=hydrogen, skip_unknown=skip_unknown
    )

    with ExitStack() as stack:
        loaded_classifier = _load_classifier(stack, classifier)
        try:
            structure = stack.enter_context(Structure.from_file(path, loaded_classifier, options))
            result = stack.enter_context(compute(structure, parameters))
            selections = evaluate_many(commands, structure, result, allow_empty=True)
            total = result.total
        except SasaError as e:
            error_console.print(f"[red]✗[/red] {path}: {e}")
            sys.exit(1)

    table = Table(title=f"Selections in {Path(path).name}")
    table.add_column("Name", style="cyan")
    table.add_column("Atoms", justify="right")
    table.add_column("Area (Å²)", justify="right", style="bold")
    table.add_column("Fraction", justify="right")
    for selection in selections:
        fraction = selection.area / total if total > 0 else 0.0
        table.add_row(selection.name, str(selection.n_atoms), f"{selection.area:.2f}", f"{fraction:.1%}")
    console.print(table)

    missing = len(commands) - len(selections)
    if missing:
        console.print(f"[yellow]Warning:[/yellow] {missing} selection(s) matched no atoms")


def main():
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
