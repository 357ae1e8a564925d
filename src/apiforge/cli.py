from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from apiforge.aat.types import PathParameter
from apiforge.errors import AATError, SpecLoadError
from apiforge.generate.typescript import GeneratorOptions, field_type_to_ts
from apiforge.orchestrator.pipeline import load_spec, run_pipeline


app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load(target: str, app_dir: Optional[str]):
    search_path = Path(app_dir).expanduser().resolve() if app_dir else Path.cwd()
    try:
        return load_spec(target, search_path=search_path)
    except SpecLoadError as e:
        raise typer.BadParameter(str(e))


def _fail(e: AATError) -> None:
    err_console.print(f"[bold red]error[/bold red] ({type(e).__name__}): {escape(str(e))}")
    for note in getattr(e, "__notes__", []):
        err_console.print(f"  {escape(note)}")
    raise typer.Exit(code=1)


@app.command()
def check(
    target: str = typer.Argument(..., help="Spec location as module:attr"),
    app_dir: Optional[str] = typer.Option(None, help="Directory to import the module from (default: cwd)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Build and validate the AAT, then print a summary."""
    _setup_logging(verbose)
    spec = _load(target, app_dir)

    try:
        result = run_pipeline(spec, validate_aat=True)
    except AATError as e:
        _fail(e)
        return

    aat = result.aat
    console.print(f"[bold green]apiforge[/bold green] check: {escape(spec.name)}")
    console.print(f"Types: {len(aat.types)}  Services: {len(aat.services)}  Root headers: {len(aat.headers)}")
    console.print("")

    table = Table(show_header=True, header_style="bold")
    table.add_column("SERVICE", no_wrap=True)
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("ENDPOINT")
    table.add_column("RESPONSE")

    for service in aat.services:
        for endpoint in service.endpoints:
            path = "/" + "/".join(
                f"{{{s.name}}}" if isinstance(s, PathParameter) else s.value for s in endpoint.path
            )
            table.add_row(
                service.name,
                endpoint.method.value,
                escape(path),
                endpoint.name,
                escape(field_type_to_ts(endpoint.response)),
            )
    console.print(table)

    types_table = Table(show_header=True, header_style="bold")
    types_table.add_column("TYPE", no_wrap=True)
    types_table.add_column("KIND", no_wrap=True)
    for t in aat.types:
        types_table.add_row(t.name, t.kind)
    console.print(types_table)


@app.command()
def aat(
    target: str = typer.Argument(..., help="Spec location as module:attr"),
    app_dir: Optional[str] = typer.Option(None, help="Directory to import the module from (default: cwd)"),
    no_validate: bool = typer.Option(False, "--no-validate", help="Skip closure checks"),
    out: Optional[str] = typer.Option(None, help="Output path (default: print to stdout)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Print the Abstract API Tree as JSON."""
    _setup_logging(verbose)
    spec = _load(target, app_dir)

    try:
        result = run_pipeline(spec, validate_aat=not no_validate)
    except AATError as e:
        _fail(e)
        return

    text = result.aat.model_dump_json(indent=2)
    _emit(text, out, "AAT")


@app.command()
def generate(
    target: str = typer.Argument(..., help="Spec location as module:attr"),
    app_dir: Optional[str] = typer.Option(None, help="Directory to import the module from (default: cwd)"),
    out: Optional[str] = typer.Option(None, help="Output path (default: print to stdout)"),
    indent: int = typer.Option(2, min=1, max=8, help="Spaces per indentation level"),
    runtime: bool = typer.Option(True, "--runtime/--no-runtime", help="Emit the WebSocketStream helper"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Generate a TypeScript client."""
    _setup_logging(verbose)
    spec = _load(target, app_dir)
    options = GeneratorOptions(indent=" " * indent, emit_runtime=runtime)

    try:
        result = run_pipeline(spec, validate_aat=True, generate=True, options=options)
    except AATError as e:
        _fail(e)
        return

    _emit(result.source or "", out, "TypeScript client")


def _emit(text: str, out: Optional[str], what: str) -> None:
    if out:
        out_path = Path(out).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        err_console.print(f"[bold green]Wrote[/bold green] {what} to: {out_path}")
    else:
        # plain stdout: rich markup would mangle brackets in generated code
        typer.echo(text, nl=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
