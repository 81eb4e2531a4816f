import json
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest
from structlog.testing import capture_logs
from typer.testing import CliRunner

from provgraph.__main__ import app
from provgraph.backends.memory import MemoryBackend
from provgraph.core.config import reset_config
from provgraph.core.container import Container
from provgraph.services.ingest_service import IngestService

runner = CliRunner()


@pytest.fixture
def graph_env(tmp_path, monkeypatch):
    path = tmp_path / 'graph.jsonl'
    monkeypatch.setenv('PROVGRAPH_BACKEND', 'jsonl')
    monkeypatch.setenv('PROVGRAPH_JSONL_PATH', str(path))
    reset_config()
    Container.reset()
    yield path
    Container.reset()
    reset_config()


def test_ingest_then_list_json(graph_env, tmp_path):
    records = tmp_path / 'records.jsonl'
    records.write_text('\n'.join([
        json.dumps({
            '__typename': 'Artifact',
            'digest': 'sha256:abc',
            'name': 'libfoo',
            'dependsOn': [{'__typename': 'Package', 'purl': 'pkg:pypi/requests@2.31.0'}],
        }),
        json.dumps({'__typename': 'Builder', 'type': 'github-actions', 'id': 'run-1'}),
    ]) + '\n')

    result = runner.invoke(app, ['ingest', str(records)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ['artifacts', '--json'])
    assert result.exit_code == 0, result.output
    response = json.loads(result.stdout)
    [artifact] = response['data']['artifacts']
    assert artifact['name'] == 'libfoo'
    assert artifact['dependsOn'][0]['__typename'] == 'Package'


def test_artifacts_table(graph_env):
    graph_env.write_text(json.dumps({'__typename': 'Artifact', 'digest': 'sha256:abc'}) + '\n')

    result = runner.invoke(app, ['artifacts'])

    assert result.exit_code == 0, result.output
    assert 'sha256:abc' in result.output


def test_unavailable_backend_exits_2_in_json_mode(graph_env):
    result = runner.invoke(app, ['artifacts', '--json'])

    assert result.exit_code == 2
    assert '"code": "BACKEND_UNAVAILABLE"' in result.output


def test_unavailable_backend_exits_2_in_table_mode(graph_env):
    result = runner.invoke(app, ['artifacts'])

    assert result.exit_code == 2
    assert 'Backend Unavailable' in result.output


def test_invalid_record_aborts_ingest(graph_env, tmp_path):
    records = tmp_path / 'records.jsonl'
    records.write_text(json.dumps({'__typename': 'Artifact', 'digest': 'oops'}) + '\n')

    result = runner.invoke(app, ['ingest', str(records)])

    assert result.exit_code == 1


def test_logs_stay_capturable_after_a_cli_run(graph_env, tmp_path):
    records = tmp_path / 'records.jsonl'
    records.write_text('not json at all\n')
    runner.invoke(app, ['ingest', str(records), '--skip-invalid'])

    with capture_logs() as captured:
        IngestService(MemoryBackend()).ingest_file(records, strict=False)

    assert [e['line'] for e in captured if e['event'] == 'Invalid record'] == [1]


@pytest.fixture
def mock_clickhouse():
    client = MagicMock()
    client.query.return_value.result_rows = [(3,)]
    with patch('provgraph.core.repository.clickhouse_connect.get_client', return_value=client):
        with patch('provgraph.commands.db.check_clickhouse_connection', return_value=True):
            yield client


def test_db_init_creates_schema(graph_env, mock_clickhouse):
    result = runner.invoke(app, ['db', 'init'])

    assert result.exit_code == 0, result.output
    statements = [c.args[0] for c in mock_clickhouse.command.call_args_list]
    assert statements[0].startswith('CREATE DATABASE IF NOT EXISTS')
    assert sum('CREATE TABLE IF NOT EXISTS' in s for s in statements) == 7


def test_db_status_counts_tables(graph_env, mock_clickhouse):
    result = runner.invoke(app, ['db', 'status'])

    assert result.exit_code == 0, result.output
    assert 'artifacts' in result.output
    assert 'package_contents' in result.output
    queries = [c.args[0] for c in mock_clickhouse.query.call_args_list]
    assert 'SELECT count() FROM (SELECT DISTINCT digest FROM artifacts)' in queries


def test_db_status_unreachable_server_exits_2(graph_env):
    with patch('provgraph.core.clickhouse.socket.create_connection', side_effect=OSError('refused')):
        result = runner.invoke(app, ['db', 'status'])

    assert result.exit_code == 2
    assert 'Cannot reach' in result.output
