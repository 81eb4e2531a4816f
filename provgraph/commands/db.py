import structlog
import typer
from rich.table import Table

from provgraph.backends.clickhouse import ClickHouseBackend
from provgraph.backends.registry import BackendKind
from provgraph.core.clickhouse import check_clickhouse_connection
from provgraph.core.container import Container
from provgraph.core.container import get_container
from provgraph.core.decorators import handle_errors
from provgraph.core.logging import console
from provgraph.core.logging import err_console

logger = structlog.get_logger('db_command')
app = typer.Typer(help='ClickHouse backend operations')


def _clickhouse_backend(container: Container, writable: bool = False) -> ClickHouseBackend:
    backend = container.get_backend(BackendKind.CLICKHOUSE, writable=writable)
    if not isinstance(backend, ClickHouseBackend):
        raise ValueError(f"Expected a ClickHouse backend, got '{backend.name}'")
    return backend


@app.command()
@handle_errors
def init():
    """Create the graph tables (idempotent)."""
    container = get_container()
    check_clickhouse_connection(
        container.config.get_db_config('admin'), console=err_console, require_tables=False,
    )

    _clickhouse_backend(container, writable=True).ensure_schema()
    logger.info('Schema ready', database=container.config.get_db_config('admin').database)


@app.command()
@handle_errors
def status():
    """Show row counts per graph table."""
    container = get_container()
    check_clickhouse_connection(container.config.get_db_config('guest'), console=err_console)

    stats = _clickhouse_backend(container).get_stats()

    table = Table(title='Graph Tables')
    table.add_column('Table', style='cyan')
    table.add_column('Rows', style='magenta', justify='right')
    for name, count in stats.items():
        table.add_row(name, f"{count:,}")
    console.print(table)
