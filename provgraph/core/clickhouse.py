"""ClickHouse connection diagnostics for the `db` commands."""
import socket

import clickhouse_connect
import typer
from rich.console import Console

from provgraph.core.config import DatabaseConfig
from provgraph.core.schema import ALL_DDL

DOCKER_HINT = (
    '[green]Solution:[/] [cyan]docker run -d --name clickhouse -p 8123:8123 '
    'clickhouse/clickhouse-server:25.12-alpine[/]'
)


def check_clickhouse_connection(
    config: DatabaseConfig,
    console: Console | None = None,
    require_tables: bool = True,
) -> bool:
    """
    Check ClickHouse connection with multi-step validation.

    Steps:
        1. Network - is the server reachable?
        2. Authentication - are credentials valid?
        3. Tables - do the graph tables exist?
    """
    console = console or Console(stderr=True)

    if not _check_network(config.host, config.port, console):
        raise typer.Exit(2)

    if not _check_auth(config, console):
        raise typer.Exit(2)

    if require_tables and not _check_tables(config, console):
        raise typer.Exit(1)

    return True


def _check_network(host: str, port: int, console: Console) -> bool:
    try:
        with socket.create_connection((host, port), timeout=5):
            return True
    except TimeoutError:
        console.print(
            f'[bold red]Error:[/] Connection to [cyan]{host}:{port}[/] timed out.\n\n{DOCKER_HINT}',
        )
    except OSError as e:
        console.print(
            f'[bold red]Error:[/] Cannot reach [cyan]{host}:{port}[/]\n'
            f'[dim]{e}[/dim]\n\n{DOCKER_HINT}',
        )
    return False


def _check_auth(config: DatabaseConfig, console: Console) -> bool:
    try:
        client = clickhouse_connect.get_client(
            host=config.host, port=config.port, username=config.user,
            password=config.password, database='default',
        )
        client.query('SELECT 1')
        return True
    except Exception as e:
        err = str(e).lower()
        if any(x in err for x in ['authentication', 'password', 'denied', 'incorrect']):
            console.print(
                f'[bold red]Error:[/] Authentication failed for [cyan]{config.user}[/]\n\n'
                '[green]Solution:[/] Set CLICKHOUSE_ADMIN_USER / CLICKHOUSE_GUEST_USER '
                'and their passwords.',
            )
        else:
            console.print(f'[bold red]Error:[/] Auth failed: [dim]{e}[/dim]')
        return False


def _check_tables(config: DatabaseConfig, console: Console) -> bool:
    try:
        client = clickhouse_connect.get_client(**config.get_connection_params())
        existing = {row[0] for row in client.query('SHOW TABLES').result_rows}
    except Exception as e:
        console.print(f'[bold red]Error:[/] Cannot check tables: [dim]{e}[/dim]')
        return False

    if missing := set(ALL_DDL) - existing:
        console.print(
            f'[bold red]Error:[/] Missing tables: [cyan]{", ".join(sorted(missing))}[/]\n\n'
            '[green]Solution:[/] [cyan]provgraph db init[/]',
        )
        return False
    return True
