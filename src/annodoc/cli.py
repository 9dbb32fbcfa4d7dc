from __future__ import annotations

import io
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from annodoc.config import Config, load_config
from annodoc.docparse.errors import ConfigError, OutputError, ScanError, SourceError
from annodoc.docparse.program import Program
from annodoc.orchestrator.pipeline import find_comments, run

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Print debug logging to stderr"),
) -> None:
    """Generate OpenAPI documentation from comments in Python source."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _config(paths: Optional[List[str]], config: Optional[str]) -> Config:
    try:
        cfg = load_config(config)
    except ConfigError as err:
        err_console.print(str(err), markup=False)
        raise typer.Exit(1)

    if paths:
        for p in paths:
            if not Path(p).expanduser().exists():
                raise typer.BadParameter(f"Path does not exist: {p}")
        cfg = cfg.model_copy(update={"paths": [str(Path(p).expanduser()) for p in paths]})
    return cfg


def _fail(err: Exception) -> None:
    err_console.print(str(err), markup=False)
    raise typer.Exit(1)


def _scan(cfg: Config) -> Program:
    program = Program.from_config(cfg)
    try:
        find_comments(program)
    except (ScanError, SourceError) as err:
        _fail(err)
    return program


@app.command()
def generate(
    paths: Optional[List[str]] = typer.Argument(None, help="Files or directories to scan (default: config paths)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file (default: ./annodoc.yaml)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="openapi2-yaml, openapi3-json, ls, ls-ref, ..."),
    write: Optional[str] = typer.Option(None, "--write", "-w", help="Write to this file instead of stdout"),
) -> None:
    cfg = _config(paths, config)

    # Nothing is written unless the whole scan succeeds.
    buf = io.StringIO()
    try:
        run(cfg, buf, output=output)
    except (ConfigError, ScanError, SourceError, OutputError) as err:
        _fail(err)

    if write:
        Path(write).write_text(buf.getvalue(), encoding="utf-8")
        err_console.print(f"[bold green]annodoc[/bold green] wrote {write}")
    else:
        sys.stdout.write(buf.getvalue())


@app.command()
def endpoints(
    paths: Optional[List[str]] = typer.Argument(None, help="Files or directories to scan"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file"),
) -> None:
    """List the documented endpoints."""
    program = _scan(_config(paths, config))

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("TAGS")
    table.add_column("SUMMARY")
    table.add_column("RESPONSES", no_wrap=True)
    table.add_column("FILE:LINE", no_wrap=True)

    for e in program.endpoints:
        table.add_row(
            e.method,
            program.config.prefix + e.path,
            " ".join(e.tags),
            e.tagline,
            " ".join(str(c) for c in sorted(e.responses)),
            f"{e.file}:{e.line}",
        )

    console.print(f"[bold]Endpoints:[/bold] {len(program.endpoints)}")
    console.print(table)


@app.command()
def refs(
    paths: Optional[List[str]] = typer.Argument(None, help="Files or directories to scan"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file"),
) -> None:
    """List the types the endpoints refer to."""
    program = _scan(_config(paths, config))

    table = Table(show_header=True, header_style="bold")
    table.add_column("LOOKUP")
    table.add_column("CONTEXT", no_wrap=True)
    table.add_column("PROPERTIES", no_wrap=True)
    table.add_column("FILE")

    for key in sorted(program.references):
        ref = program.references[key]
        props = len(ref.schema.properties or {}) if ref.schema is not None else 0
        table.add_row(key, ref.context or "-", str(props), ref.file)

    console.print(f"[bold]References:[/bold] {len(program.references)}")
    console.print(table)


if __name__ == "__main__":
    app()
