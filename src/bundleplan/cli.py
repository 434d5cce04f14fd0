"""CLI for bundleplan build descriptors."""

import json
import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .descriptor import BuildDescriptor, assemble_build_descriptor
from .engine import JsonExportEngine
from .errors import BundlePlanError
from .logging_config import setup_logging
from .rules import select_rule

console = Console()

MODE = click.Choice(["development", "production"], case_sensitive=False)

project_option = click.option(
    "--project",
    "-p",
    default=".",
    type=click.Path(exists=True, file_okay=False),
    help="Application project root",
)


def _assemble(mode: str, project: str, profile: bool = False) -> BuildDescriptor:
    argv = ["--profile"] if profile else []
    return assemble_build_descriptor(mode, project, argv=argv)


@click.group()
@click.version_option(version=__version__, prog_name="bundleplan")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
def cli(verbose: int):
    """bundleplan – build descriptor assembler for bundled web applications."""
    setup_logging({0: None, 1: "INFO"}.get(verbose, "DEBUG"))


@cli.command()
@click.argument("mode", type=MODE)
@project_option
@click.option("--format", "fmt", type=click.Choice(["yaml", "json"]), default="yaml", help="Output format")
@click.option("--profile", is_flag=True, help="Enable profiling (production only)")
def show(mode: str, project: str, fmt: str, profile: bool):
    """Print the assembled build descriptor."""
    try:
        data = _assemble(mode, project, profile).to_dict()
        if fmt == "json":
            click.echo(json.dumps(data, indent=2))
        else:
            click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))
    except BundlePlanError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("mode", type=MODE)
@project_option
def rules(mode: str, project: str):
    """Show the transformation rules in match order."""
    try:
        descriptor = _assemble(mode, project)
    except BundlePlanError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Module rules ({descriptor.mode.value})")
    table.add_column("#", justify="right")
    table.add_column("Rule", style="cyan")
    table.add_column("Test")
    table.add_column("Steps", style="green")
    for i, rule in enumerate(descriptor.module_rules, 1):
        test = ", ".join(p.pattern for p in rule.test.patterns) if rule.test else "(fallback)"
        steps = " → ".join(s.processor.value for s in rule.steps)
        table.add_row(str(i), rule.name, escape(test), steps)
    console.print(table)


@cli.command()
@click.argument("mode", type=MODE)
@project_option
@click.option("--profile", is_flag=True, help="Enable profiling (production only)")
def plugins(mode: str, project: str, profile: bool):
    """Show the enabled plugins in priority order."""
    try:
        descriptor = _assemble(mode, project, profile)
    except BundlePlanError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"Plugins ({descriptor.mode.value})")
    table.add_column("#", justify="right")
    table.add_column("Plugin", style="cyan")
    for i, plugin in enumerate(descriptor.plugins, 1):
        table.add_row(str(i), plugin.id.value)
    console.print(table)


@cli.command()
@click.argument("mode", type=MODE)
@click.argument("files", nargs=-1, required=True)
@project_option
def match(mode: str, files: tuple, project: str):
    """Show which rule owns each FILE."""
    try:
        descriptor = _assemble(mode, project)
    except BundlePlanError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    root = Path(project).resolve()
    for name in files:
        rule = select_rule(descriptor.module_rules, name, root=root)
        owner = rule.name if rule else "(engine default)"
        console.print(f"{escape(name)}: [cyan]{owner}[/cyan]")


@cli.command()
@click.argument("mode", type=MODE)
@click.argument("output", type=click.Path(dir_okay=False))
@project_option
def export(mode: str, output: str, project: str):
    """Write the descriptor as JSON to OUTPUT."""
    try:
        descriptor = _assemble(mode, project)
    except BundlePlanError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    result = JsonExportEngine(output).run(descriptor)
    if not result.success:
        console.print(f"[red]{result.message}[/red]")
        sys.exit(1)
    console.print(f"[green]✓ {result.message}:[/green] {result.output_path}")


def main(argv=None):
    """Console-script entry point."""
    cli(argv)


if __name__ == "__main__":
    main()
