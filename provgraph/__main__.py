import dotenv
import typer

from provgraph.__version__ import __version__
from provgraph.commands import artifacts
from provgraph.commands import db
from provgraph.commands import ingest
from provgraph.core.logging import setup_logging

dotenv.load_dotenv()

app = typer.Typer(
    help='provgraph: query the software supply-chain provenance graph.',
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)

app.command(name='artifacts')(artifacts.main)
app.command(name='ingest')(ingest.main)
app.add_typer(db.app, name='db')


def _version_callback(value: bool):
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    debug: bool = typer.Option(False, '--debug', help='Enable debug logging'),
    version: bool = typer.Option(
        False, '--version', callback=_version_callback, is_eager=True,
        help='Show version and exit',
    ),
):
    """
    provgraph CLI - artifacts, packages and their provenance.
    """
    level = 'DEBUG' if debug else 'INFO'
    setup_logging(level=level)


if __name__ == '__main__':
    app()
