"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -mcovenant` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``covenant.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``covenant.__main__`` in ``sys.modules``.
"""

import logging

import typer
from rich import print
from rich.table import Table
from typing_extensions import Annotated

from covenant.exceptions import ConfigurationError, NoModuleException
from covenant.utils.discovery import derive_rpc_module

logger = logging.getLogger(__name__)

# Create the Typer app
#   `no_args_is_help=True` will show the help message when no arguments are passed
app = typer.Typer(no_args_is_help=True)


def version_callback(value: bool):
    if value:
        from covenant import __version__

        typer.echo(f"Covenant {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool, typer.Option(help="Show version information", callback=version_callback)
    ] = False,
):
    """
    Covenant CLI
    """


@app.command()
def routes(
    module: Annotated[
        str, typer.Argument(help="RPC module to inspect, as `package.module[:name]`")
    ],
):
    """List the routes an RPC module binds"""
    try:
        rpc = derive_rpc_module(module)
        bindings = rpc.bindings
    except (NoModuleException, ConfigurationError) as exc:
        msg = f"Error loading RPC module: {exc.args[0]}"
        print(msg)  # Required for tests to capture output
        logger.error(msg)

        raise typer.Abort()

    table = Table(title=str(rpc))
    table.add_column("Operation")
    table.add_column("Method")
    table.add_column("Path")
    table.add_column("Output")
    table.add_column("Status", justify="right")
    table.add_column("Controller")

    for name, binding in sorted(bindings.items()):
        table.add_row(
            name,
            binding.method,
            binding.path,
            binding.output_structure,
            str(binding.operation.success_status),
            binding.controller.__name__ if binding.controller else "",
        )

    print(table)
