from pathlib import Path

import typer
from rich.progress import BarColumn
from rich.progress import MofNCompleteColumn
from rich.progress import Progress
from rich.progress import SpinnerColumn
from rich.progress import TaskProgressColumn
from rich.progress import TextColumn
from rich.progress import TimeElapsedColumn

from provgraph.backends.registry import BackendKind
from provgraph.core.container import get_container
from provgraph.core.decorators import handle_errors
from provgraph.core.logging import err_console


@handle_errors
def main(
    input_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help='JSONL file of __typename-tagged entity records',
    ),
    backend: BackendKind | None = typer.Option(
        None, help='Storage backend (defaults to PROVGRAPH_BACKEND)',
    ),
    skip_invalid: bool = typer.Option(
        False, '--skip-invalid', help='Report invalid records instead of aborting',
    ),
):
    """
    Upsert ingested entity records into a writable backend.
    """
    container = get_container()
    service = container.get_ingest_service(backend)

    with open(input_file, encoding='utf-8') as f:
        total = sum(1 for line in f if line.strip())

    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        BarColumn(),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TextColumn('•'),
        TimeElapsedColumn(),
        console=err_console,
    ) as progress:
        task = progress.add_task(f"Ingesting {input_file.name}...", total=total)
        stats = service.ingest_file(
            input_file,
            strict=not skip_invalid,
            progress_callback=lambda: progress.advance(task),
        )

    for lineno, error in stats.errors:
        err_console.print(f"[red]line {lineno}:[/red] {error}")

    if stats.failed:
        raise typer.Exit(1)


if __name__ == '__main__':
    typer.run(main)
