import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from provgraph.backends.jsonl import JsonlBackend
from provgraph.backends.jsonl import JsonlBackendArgs
from provgraph.core.context import QueryContext
from provgraph.core.errors import BackendUnavailable
from provgraph.core.errors import InvalidIdentity
from provgraph.core.errors import QueryFailed
from provgraph.core.errors import UnknownVariant
from provgraph.models.artifact import Artifact
from provgraph.models.artifact import Builder
from provgraph.models.artifact import Package
from provgraph.models.metadata import Metadata
from provgraph.models.metadata import ScorecardPayload


@pytest.fixture
def graph_file(tmp_path):
    return tmp_path / 'data' / 'graph.jsonl'


@pytest.fixture
def backend(graph_file):
    return JsonlBackend(JsonlBackendArgs(path=graph_file, create=True))


def test_created_file_is_empty_graph(backend, graph_file):
    assert graph_file.exists()
    assert backend.list_artifacts(QueryContext()) == []


def test_upsert_then_list(backend, graph_file):
    count = backend.upsert([
        Artifact(
            digest='sha256:a',
            name='liba',
            built_by=[Builder(type='slsa', id='https://github.com/slsa-framework/slsa-github-generator')],
            depends_on=[Package(purl='pkg:pypi/requests@2.31.0')],
        ),
        Metadata(
            type='scorecard',
            id='github.com/psf/requests',
            attached_to=[Package(purl='pkg:pypi/requests@2.31.0', name='requests')],
            payload=ScorecardPayload(
                repo='github.com/psf/requests', commit='abc', scorecard_version='v4',
                scorecard_commit='def', aggregate_score=6.0,
            ),
        ),
    ])
    assert count == 2

    lines = graph_file.read_text().splitlines()
    assert [json.loads(line)['__typename'] for line in lines] == ['Artifact', 'Metadata']

    [artifact] = backend.list_artifacts(QueryContext())
    assert artifact.built_by[0].type == 'slsa'
    # the metadata record contributed the package name
    assert artifact.depends_on[0].name == 'requests'


def test_records_merge_across_lines(graph_file, backend):
    graph_file.write_text(
        '\n'.join([
            json.dumps({'__typename': 'Artifact', 'digest': 'sha256:a', 'tags': ['one']}),
            '',
            json.dumps({'__typename': 'Artifact', 'digest': 'sha256:a', 'name': 'liba', 'tags': ['two']}),
        ]) + '\n',
    )
    [artifact] = backend.list_artifacts(QueryContext())
    assert artifact.name == 'liba'
    assert artifact.tags == ['one', 'two']


def test_missing_file_is_unavailable(tmp_path):
    backend = JsonlBackend(JsonlBackendArgs(path=tmp_path / 'missing.jsonl'))
    with pytest.raises(BackendUnavailable):
        backend.list_artifacts(QueryContext())


def test_invalid_identity_is_surfaced(graph_file, backend):
    graph_file.write_text(json.dumps({'__typename': 'Artifact', 'digest': 'sha256'}) + '\n')
    with pytest.raises(InvalidIdentity):
        backend.list_artifacts(QueryContext())


def test_unknown_typename_is_surfaced(graph_file, backend):
    graph_file.write_text(json.dumps({'__typename': 'Repository', 'id': 1}) + '\n')
    with pytest.raises(UnknownVariant):
        backend.list_artifacts(QueryContext())


def test_corrupt_line_fails_the_query(graph_file, backend):
    graph_file.write_text('{not json\n')
    with pytest.raises(QueryFailed) as exc_info:
        backend.list_artifacts(QueryContext())
    assert 'graph.jsonl:1' in str(exc_info.value)


def test_readers_never_observe_a_partial_upsert(backend):
    batch_size = 25
    stop = threading.Event()

    def writer():
        for batch in range(20):
            backend.upsert([
                Artifact(digest=f"sha256:{batch:02d}{i:02d}", name=f"lib{i}", tags=['x' * 64])
                for i in range(batch_size)
            ])
        stop.set()

    def reader():
        counts = []
        while not stop.is_set():
            counts.append(len(backend.list_artifacts(QueryContext())))
        return counts

    with ThreadPoolExecutor(max_workers=4) as executor:
        readers = [executor.submit(reader) for _ in range(3)]
        executor.submit(writer).result()
        for future in readers:
            assert all(count % batch_size == 0 for count in future.result())

    assert len(backend.list_artifacts(QueryContext())) == 20 * batch_size
