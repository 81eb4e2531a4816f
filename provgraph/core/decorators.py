import functools
from collections.abc import Callable
from typing import Any

import structlog
import typer

from provgraph.core.errors import BackendUnavailable
from provgraph.core.errors import GraphError
from provgraph.core.logging import err_console
logger = structlog.get_logger()

UNAVAILABLE_EXIT_CODE = 2
FAILURE_EXIT_CODE = 1


def exit_code_for(code: str) -> int:
    """Exit code for a GraphError `code`, as carried in query-level error responses."""
    if code == BackendUnavailable.code:
        return UNAVAILABLE_EXIT_CODE
    return FAILURE_EXIT_CODE


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to handle exceptions in CLI commands nicely."""
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except BackendUnavailable as e:
            err_console.print(f"[bold red]Backend Unavailable:[/] {e}")
            logger.debug('Backend unavailable', exc_info=True)
            raise typer.Exit(UNAVAILABLE_EXIT_CODE)
        except GraphError as e:
            err_console.print(f"[bold red]{e.code}:[/] {e}")
            logger.debug('Graph error', exc_info=True)
            raise typer.Exit(FAILURE_EXIT_CODE)
        except ValueError as e:
            err_console.print(f"[bold red]Validation Error:[/] {e}")
            logger.debug('Validation error', exc_info=True)
            raise typer.Exit(FAILURE_EXIT_CODE)
        except KeyboardInterrupt:
            err_console.print('\n[yellow]Operation cancelled by user.[/]')
            raise typer.Exit(130)
        except Exception as e:
            err_console.print(f"[bold red]Unexpected Error:[/] {e}")
            logger.exception('Unexpected error')
            raise typer.Exit(FAILURE_EXIT_CODE)
    return wrapper
