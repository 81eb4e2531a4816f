import json

import typer
from rich.table import Table

from provgraph.backends.registry import BackendKind
from provgraph.core.container import get_container
from provgraph.core.context import QueryContext
from provgraph.core.decorators import exit_code_for
from provgraph.core.decorators import handle_errors
from provgraph.core.logging import console
from provgraph.core.logging import err_console
from provgraph.models.artifact import resolve_artifact_or_package


@handle_errors
def main(
    backend: BackendKind | None = typer.Option(
        None, help='Storage backend (defaults to PROVGRAPH_BACKEND)',
    ),
    timeout: float | None = typer.Option(None, help='Query timeout in seconds'),
    as_json: bool = typer.Option(
        False, '--json', help='Print the GraphQL-style response as JSON',
    ),
):
    """
    List every artifact with its builders and dependencies.
    """
    container = get_container()
    service = container.get_query_service(backend, timeout=timeout)
    ctx = QueryContext(timeout=service.default_timeout)

    if as_json:
        response = service.execute_artifacts(ctx)
        typer.echo(json.dumps(response, indent=2))
        if errors := response.get('errors'):
            raise typer.Exit(exit_code_for(errors[0]['extensions']['code']))
        return

    artifacts = service.artifacts(ctx)
    if not artifacts:
        err_console.print('[yellow]No artifacts found.[/yellow]')
        return

    table = Table(title=f"Artifacts ({len(artifacts)})")
    table.add_column('Digest', style='cyan')
    table.add_column('Name', style='green')
    table.add_column('Tags', style='magenta')
    table.add_column('Built By', style='yellow')
    table.add_column('Depends On', style='blue')

    for artifact in artifacts:
        dependencies = []
        for dependency in artifact.depends_on:
            tag, node = resolve_artifact_or_package(dependency)
            key = node.digest if tag == 'Artifact' else node.purl
            dependencies.append(f"{tag}:{key}")
        table.add_row(
            artifact.digest,
            artifact.name or '',
            ', '.join(artifact.tags),
            ', '.join(f"{b.type}/{b.id}" for b in artifact.built_by),
            '\n'.join(dependencies),
        )

    console.print(table)


if __name__ == '__main__':
    typer.run(main)
