from provgraph.backends.base import Backend
from provgraph.backends.memory import MemoryBackend
from provgraph.backends.memory import MemoryBackendArgs
from provgraph.core.context import QueryContext
from provgraph.core.errors import BackendUnavailable
from provgraph.models.artifact import Artifact
from provgraph.models.artifact import Package
from provgraph.services.query_service import QueryService


class UnreachableBackend(Backend):
    name = 'unreachable'

    def list_artifacts(self, ctx):
        raise BackendUnavailable(self.name, 'connection refused')


class BrokenBackend(Backend):
    name = 'broken'

    def list_artifacts(self, ctx):
        raise KeyError('digest')


class RecordingBackend(Backend):
    name = 'recording'

    def __init__(self):
        self.contexts = []

    def list_artifacts(self, ctx):
        self.contexts.append(ctx)
        return []


def test_execute_artifacts_response_shape():
    backend = MemoryBackend(MemoryBackendArgs(entities=[
        Artifact(digest='sha256:a', depends_on=[Package(purl='pkg:cargo/serde@1.0.0')]),
    ]))

    response = QueryService(backend).execute_artifacts()

    assert 'errors' not in response
    [artifact] = response['data']['artifacts']
    assert artifact['__typename'] == 'Artifact'
    assert artifact['digest'] == 'sha256:a'
    assert artifact['dependsOn'] == [{
        '__typename': 'Package',
        'purl': 'pkg:cargo/serde@1.0.0',
        'name': None,
        'version': None,
        'digest': [],
        'cpe': [],
        'tags': [],
        'sourceInfo': None,
        'collectorInfo': None,
        'contains': [],
        'dependsOn': [],
    }]


def test_unavailable_backend_is_an_error_not_an_empty_list():
    response = QueryService(UnreachableBackend()).execute_artifacts()

    assert response['data'] is None
    assert response['errors'][0]['extensions']['code'] == 'BACKEND_UNAVAILABLE'


def test_unwrapped_backend_errors_become_query_failed():
    response = QueryService(BrokenBackend()).execute_artifacts()

    assert response['data'] is None
    assert response['errors'][0]['extensions']['code'] == 'QUERY_FAILED'


def test_cancelled_query_reports_cancellation():
    ctx = QueryContext()
    ctx.cancel()

    response = QueryService(MemoryBackend()).execute_artifacts(ctx)

    assert response['errors'][0]['extensions']['code'] == 'QUERY_CANCELLED'


def test_default_timeout_is_applied():
    backend = RecordingBackend()

    QueryService(backend, default_timeout=5).artifacts()
    explicit = QueryContext(timeout=1)
    QueryService(backend, default_timeout=5).artifacts(explicit)

    assert backend.contexts[0].timeout == 5
    assert backend.contexts[1] is explicit
