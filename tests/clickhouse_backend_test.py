from unittest.mock import MagicMock
from unittest.mock import patch

import pytest
from clickhouse_connect.driver.exceptions import OperationalError

from provgraph.backends.clickhouse import ClickHouseBackend
from provgraph.backends.clickhouse import ClickHouseBackendArgs
from provgraph.core.config import DatabaseConfig
from provgraph.core.context import QueryContext
from provgraph.core.errors import BackendUnavailable
from provgraph.core.errors import QueryCancelled
from provgraph.core.errors import QueryFailed
from provgraph.models.artifact import Artifact
from provgraph.models.artifact import Builder
from provgraph.models.artifact import Package
from provgraph.models.artifact import resolve_artifact_or_package
from provgraph.models.attestation import Vulnerability

ROWS = {
    'FROM artifacts': [
        ('sha256:a', 'liba', ['release'], None, 'collector-1'),
        ('sha256:b', None, [], None, None),
    ],
    'FROM packages': [
        ('pkg:pypi/requests@2.31.0', 'requests', '2.31.0', ['sha256:whl'], [], [], 'sbom.json', None),
    ],
    'FROM builders': [('github-actions', 'run-1', None, None)],
    'FROM artifact_builders': [('sha256:a', 'github-actions', 'run-1')],
    'FROM dependencies': [
        ('Artifact', 'sha256:a', 'Package', 'pkg:pypi/requests@2.31.0'),
        ('Artifact', 'sha256:a', 'Artifact', 'sha256:b'),
    ],
    'FROM package_contents': [('pkg:pypi/requests@2.31.0', 'sha256:b')],
}


def fake_query(query, settings=None):
    result = MagicMock()
    result.result_rows = next(
        (rows for marker, rows in ROWS.items() if marker + ' ' in query), [],
    )
    return result


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.query.side_effect = fake_query
    with patch('provgraph.core.repository.clickhouse_connect.get_client', return_value=client):
        yield client


@pytest.fixture
def backend():
    return ClickHouseBackend(ClickHouseBackendArgs(query_config=DatabaseConfig(host='ch.local')))


def test_list_artifacts_assembles_graph(mock_client, backend):
    result = {a.digest: a for a in backend.list_artifacts(QueryContext())}

    assert set(result) == {'sha256:a', 'sha256:b'}
    artifact = result['sha256:a']
    assert artifact.name == 'liba'
    assert artifact.collector_info == 'collector-1'
    assert [(b.type, b.id) for b in artifact.built_by] == [('github-actions', 'run-1')]

    resolved = [resolve_artifact_or_package(d) for d in artifact.depends_on]
    assert [r.tag for r in resolved] == ['Package', 'Artifact']
    package = resolved[0].value
    assert package.source_info == 'sbom.json'
    assert [a.digest for a in package.contains] == ['sha256:b']


def test_connection_failure_is_unavailable(backend):
    with patch(
        'provgraph.core.repository.clickhouse_connect.get_client',
        side_effect=OperationalError('Connection refused'),
    ):
        with pytest.raises(BackendUnavailable) as exc_info:
            backend.list_artifacts(QueryContext())
    assert isinstance(exc_info.value.__cause__, OperationalError)


def test_other_failures_become_query_failed(mock_client, backend):
    mock_client.query.side_effect = RuntimeError('Code: 60. Unknown table')
    with pytest.raises(QueryFailed) as exc_info:
        backend.list_artifacts(QueryContext())
    assert not isinstance(exc_info.value, BackendUnavailable)


def test_deadline_is_forwarded(mock_client, backend):
    backend.list_artifacts(QueryContext(timeout=30))
    settings = mock_client.query.call_args.kwargs['settings']
    assert 1 <= settings['max_execution_time'] <= 30


def test_cancelled_before_querying(mock_client, backend):
    ctx = QueryContext()
    ctx.cancel()
    with pytest.raises(QueryCancelled):
        backend.list_artifacts(ctx)
    mock_client.query.assert_not_called()


def test_upsert_writes_node_and_edge_tables(mock_client, backend):
    count = backend.upsert([
        Artifact(
            digest='sha256:a',
            built_by=[Builder(type='github-actions', id='run-1')],
            depends_on=[Package(purl='pkg:pypi/requests@2.31.0')],
        ),
        Vulnerability(id='CVE-2023-32681'),
    ])

    assert count == 2
    inserted = {c.args[0]: c for c in mock_client.insert.call_args_list}
    # the builder and the package are only referenced, so they get edge rows only
    assert set(inserted) == {'artifacts', 'artifact_builders', 'dependencies', 'documents'}
    assert inserted['artifacts'].args[1] == [['sha256:a', None, [], None, None]]
    assert inserted['artifact_builders'].args[1] == [['sha256:a', 'github-actions', 'run-1']]
    assert inserted['dependencies'].args[1] == [
        ['Artifact', 'sha256:a', 'Package', 'pkg:pypi/requests@2.31.0'],
    ]
    typename, identity, body = inserted['documents'].args[1][0]
    assert typename == 'Vulnerability'
    assert identity == '["Vulnerability","CVE-2023-32681"]'
    assert '"id":"CVE-2023-32681"' in body


def test_reference_in_a_later_upsert_keeps_attributes(mock_client, backend):
    backend.upsert([Artifact(digest='sha256:a', name='liba', tags=['release'])])
    backend.upsert([Artifact(digest='sha256:b', depends_on=[Artifact(digest='sha256:a')])])

    artifact_rows = [
        row
        for c in mock_client.insert.call_args_list if c.args[0] == 'artifacts'
        for row in c.args[1]
    ]
    assert artifact_rows == [
        ['sha256:a', 'liba', ['release'], None, None],
        ['sha256:b', None, [], None, None],
    ]


def test_referenced_node_with_attributes_gets_a_row(mock_client, backend):
    backend.upsert([
        Artifact(
            digest='sha256:b',
            depends_on=[Package(purl='pkg:pypi/requests@2.31.0', version='2.31.0')],
        ),
    ])

    inserted = {c.args[0]: c.args[1] for c in mock_client.insert.call_args_list}
    [package_row] = inserted['packages']
    assert package_row[:3] == ['pkg:pypi/requests@2.31.0', None, '2.31.0']


def test_node_reads_merge_versions(mock_client, backend):
    backend.list_artifacts(QueryContext())

    queries = {
        c.args[0].split(' FROM ')[1].split()[0]: c.args[0]
        for c in mock_client.query.call_args_list
    }
    for table in ('artifacts', 'packages', 'builders'):
        assert 'FINAL' not in queries[table]
        assert 'GROUP BY' in queries[table]
    assert 'argMaxIf(name, updated_at, name IS NOT NULL)' in queries['artifacts']
    assert 'groupArray((updated_at, tags))' in queries['artifacts']


def test_edge_only_artifacts_are_listed(mock_client, backend):
    rows = {
        **ROWS,
        'FROM artifacts': [('sha256:a', 'liba', ['release'], None, None)],
        'FROM package_contents': [('pkg:pypi/requests@2.31.0', 'sha256:c')],
    }
    mock_client.query.side_effect = lambda query, settings=None: MagicMock(
        result_rows=next((r for marker, r in rows.items() if marker + ' ' in query), []),
    )

    result = backend.list_artifacts(QueryContext())

    assert [a.digest for a in result] == ['sha256:a', 'sha256:b', 'sha256:c']
    assert result[0].name == 'liba'
    assert result[1].name is None


def test_ensure_schema_creates_tables(mock_client, backend):
    backend.ensure_schema()
    statements = [c.args[0] for c in mock_client.command.call_args_list]
    assert statements[0].startswith('CREATE DATABASE IF NOT EXISTS')
    assert sum('CREATE TABLE IF NOT EXISTS' in s for s in statements) == 7
