"""
Stratus command line interface.

    stratus provision --config stratus.toml --noop --output template.json
    stratus version
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from stratus._version import __version__

app = typer.Typer(
    help="Provision serverless services with CloudFormation",
    no_args_is_help=True,
)

console = Console()


def _configure_logging(verbose: bool) -> logging.Logger:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    return logging.getLogger("stratus")


@app.command(name="provision")
def provision_command(
    config_path: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Service configuration file",
            dir_okay=False,
        ),
    ] = Path("stratus.toml"),
    noop: Annotated[
        bool,
        typer.Option(
            "--noop",
            "-n",
            help="Synthesize the template without uploading or touching the stack",
        ),
    ] = False,
    bucket: Annotated[
        str | None,
        typer.Option(
            "--bucket",
            "-b",
            help="S3 bucket for artifacts (overrides [service].bucket)",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write the synthesized CloudFormation template to this file",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """
    Build, upload and provision the service described by stratus.toml.

    Example:
        stratus provision --noop -o template.json
    """
    from stratus.config import load_service_config
    from stratus.provision import ProvisionError, provision

    log = _configure_logging(verbose)

    try:
        config = load_service_config(config_path)
        descriptors = config.to_descriptors(config_path.resolve().parent)
    except ProvisionError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e

    s3_bucket = bucket or config.service.bucket
    if not s3_bucket:
        console.print("[red]No S3 bucket configured:[/red] use --bucket or \\[service].bucket")
        raise typer.Exit(1)

    console.print(f"\n[bold]Stratus[/bold] - Provisioning [cyan]{config.service.name}[/cyan]\n")
    if noop:
        console.print("[yellow]NOOP - No uploads or stack changes will be made[/yellow]\n")

    options = {
        "noop": noop,
        "service_name": config.service.name,
        "service_description": config.service.description,
        "lambda_functions": descriptors.functions,
        "s3_bucket": s3_bucket,
        "api": descriptors.api,
        "site": descriptors.site,
        "logger": log,
        "build": config.build,
    }
    try:
        if output is not None:
            with open(output, "w", encoding="utf-8") as writer:
                result = provision(template_writer=writer, **options)
        else:
            result = provision(**options)
    except ProvisionError as e:
        console.print(f"\n[red]Provisioning failed:[/red] {e}")
        raise typer.Exit(1) from e

    steps_table = Table(title="Workflow")
    steps_table.add_column("Step", style="cyan")
    steps_table.add_column("Status", style="green")
    steps_table.add_column("Duration", justify="right")
    for step in result.steps:
        steps_table.add_row(step.state.value, step.status.value, f"{step.duration_ms} ms")
    console.print(steps_table)

    summary = f"Elapsed: {result.elapsed_seconds:.2f}s"
    if result.stack is not None:
        summary += f"\nStack: [cyan]{result.stack.stack_id}[/cyan] ({result.stack.status})"
        for key, value in result.stack.output_map().items():
            summary += f"\n{key}: {value}"
    if output is not None:
        summary += f"\nTemplate: [cyan]{output}[/cyan]"
    console.print(
        Panel(f"[green]Provisioned {config.service.name}[/green]\n\n{summary}", title="Success")
    )


@app.command(name="version")
def version_command() -> None:
    """Show the Stratus version."""
    console.print(f"stratus {__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
