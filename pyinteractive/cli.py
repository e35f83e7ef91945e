"""pyinteractive CLI - persistent Python evaluation over MCP.

Commands:
    pyinteractive serve [ENTRY]   Run the MCP server on stdio
    pyinteractive deps ENTRY      Show the modules resolved from an entry module
    pyinteractive refs [ENTRY]    Show the references the server would configure
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from pyinteractive.config import InteractiveConfig, load_config
from pyinteractive.evaluator import PythonEvaluator
from pyinteractive.exceptions import ConfigurationError
from pyinteractive.options import create_options
from pyinteractive.resolver import DependencyResolver, ImplicitModules
from pyinteractive.search_paths import build_search_paths
from pyinteractive.session import EvaluationSession

logger = logging.getLogger("pyinteractive")

app = typer.Typer(
    name="pyinteractive",
    help="Persistent Python evaluation over MCP",
    no_args_is_help=True,
)

EntryArg = Annotated[
    Optional[Path],
    typer.Argument(help="Entry module whose imports become the reference set"),
]
SearchPathOpt = Annotated[
    Optional[list[Path]],
    typer.Option("--search-path", "-s", help="Extra directory to probe for modules (repeatable)"),
]
ConfigOpt = Annotated[
    Path,
    typer.Option("--config", "-c", help="pyproject.toml holding a [tool.pyinteractive] table"),
]
LogLevelOpt = Annotated[
    Optional[str],
    typer.Option("--log-level", "-l", help="Logging level (DEBUG, INFO, WARNING, ...)"),
]


def configure_logging(level: str) -> None:
    # stdout belongs to the MCP transport
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _settings(
    config_path: Path,
    entry: Path | None,
    search_paths: list[Path] | None,
    log_level: str | None,
) -> InteractiveConfig:
    """Configuration file values with command-line overrides applied."""
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise typer.BadParameter(str(e))
    update: dict = {}
    if entry is not None:
        update["entry"] = entry
    if search_paths:
        update["search_paths"] = [*search_paths, *config.search_paths]
    if log_level is not None:
        update["log_level"] = log_level.upper()
    return config.model_copy(update=update)


def _implicit(config: InteractiveConfig) -> ImplicitModules:
    return ImplicitModules().extended(config.implicit_modules)


@app.command("serve")
def serve_command(
    entry: EntryArg = None,
    search_path: SearchPathOpt = None,
    config: ConfigOpt = Path("pyproject.toml"),
    log_level: LogLevelOpt = None,
):
    """Run the MCP server on stdio.

    Examples:
        pyinteractive serve
        pyinteractive serve app/main.py -s vendor/
    """
    from pyinteractive.server import serve

    settings = _settings(config, entry, search_path, log_level)
    configure_logging(settings.log_level)
    if settings.entry is not None and not settings.entry.is_file():
        raise typer.BadParameter(f"Entry module not found: {settings.entry}")

    options = create_options(
        settings.entry,
        settings.search_paths,
        imports=settings.imports,
        include_runtime_dir=settings.include_runtime_dir,
        implicit=_implicit(settings),
    )
    logger.info(f"Configured {len(options.references)} reference(s)")
    session = EvaluationSession(
        PythonEvaluator(options), record_failed=settings.record_failed_history
    )
    try:
        asyncio.run(serve(session))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


@app.command("deps")
def deps_command(
    entry: Annotated[Path, typer.Argument(help="Entry module to resolve")],
    search_path: SearchPathOpt = None,
    config: ConfigOpt = Path("pyproject.toml"),
    no_runtime: Annotated[
        bool,
        typer.Option("--no-runtime", help="Do not probe the standard library directory"),
    ] = False,
):
    """Show the modules resolved transitively from ENTRY.

    Examples:
        pyinteractive deps app/main.py
        pyinteractive deps app/main.py --no-runtime -s vendor/
    """
    settings = _settings(config, entry, search_path, None)
    if not entry.is_file():
        raise typer.BadParameter(f"Entry module not found: {entry}")

    dirs = build_search_paths(
        entry,
        settings.search_paths,
        include_runtime_dir=settings.include_runtime_dir and not no_runtime,
    )
    result = DependencyResolver(dirs, _implicit(settings)).resolve(entry)

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("PATH", overflow="fold")
    for i, path in enumerate(result.paths, start=1):
        table.add_row(str(i), str(path))
    console = Console()
    console.print(table)

    if result.errors:
        console.print(f"{len(result.errors)} warning(s):")
        for err in result.errors:
            console.print(f"  {err}", markup=False)


@app.command("refs")
def refs_command(
    entry: EntryArg = None,
    search_path: SearchPathOpt = None,
    config: ConfigOpt = Path("pyproject.toml"),
):
    """Show the references `serve` would configure.

    Without ENTRY the baseline references of the running interpreter are shown.
    """
    settings = _settings(config, entry, search_path, None)
    options = create_options(
        settings.entry,
        settings.search_paths,
        imports=settings.imports,
        include_runtime_dir=settings.include_runtime_dir,
        implicit=_implicit(settings),
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("MODULE")
    table.add_column("PATH", overflow="fold")
    for ref in options.references:
        table.add_row(ref.name, str(ref.path))
    Console().print(table)


def main():
    app()


if __name__ == "__main__":
    main()
