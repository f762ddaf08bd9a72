"""declarest CLI - Main Entry Point.

Commands:
    routes - List the routes a server exposes
    serve  - Run a server with uvicorn
"""

import importlib
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__, __cli_name__
from declarest.config import configure_logging
from declarest.server import RestServer


def load_server(target: str) -> RestServer:
    """
    Import ``module:attribute`` and return the RestServer it names.

    The attribute may also be a zero-argument callable returning a server.

    Raises:
        click.BadParameter: If the target cannot be imported or is not a server
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"Expected MODULE:ATTRIBUTE, got {target!r}")

    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(f"Cannot import module {module_name!r}: {exc}") from exc

    try:
        obj = getattr(module, attr)
    except AttributeError as exc:
        raise click.BadParameter(f"Module {module_name!r} has no attribute {attr!r}") from exc

    if not isinstance(obj, RestServer) and callable(obj):
        obj = obj()
    if not isinstance(obj, RestServer):
        raise click.BadParameter(f"{target!r} is not a RestServer")
    return obj


@click.group()
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose: bool):
    """Declarative REST services on ASGI."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    if verbose:
        configure_logging("debug")


# ============================================================================
# Commands
# ============================================================================

@cli.command('routes')
@click.argument('target')
def routes(target: str):
    """
    List verb, path and handler of every route.

    Examples:
      declarest routes app.main:server
    """
    server = load_server(target)
    entries = sorted(server.routes(), key=lambda e: (e.path, e.verb.value))

    if not entries:
        click.echo(click.style("No routes registered", fg="yellow"))
        return

    width = max(len(e.verb.value) for e in entries)
    for entry in entries:
        verb = click.style(entry.verb.value.ljust(width), fg="green", bold=True)
        click.echo(f"{verb}  {entry.path}  {click.style(entry.handler_name, dim=True)}")


@cli.command('serve')
@click.argument('target')
@click.option('--host', type=str, default=None, help='Host to bind to')
@click.option('--port', type=int, default=None, help='Port to bind to')
@click.option('--log-level', type=click.Choice(['critical', 'error', 'warning', 'info', 'debug']),
              default=None, help='Logging level')
def serve(target: str, host: Optional[str], port: Optional[int], log_level: Optional[str]):
    """
    Run a server with uvicorn.

    Examples:
      declarest serve app.main:server
      declarest serve app.main:server --host 0.0.0.0 --port 8080
    """
    server = load_server(target)
    server.run(host=host, port=port, log_level=log_level)


def main():
    """Entry point for `declarest` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
