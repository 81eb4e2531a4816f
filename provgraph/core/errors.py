"""Error taxonomy shared by the graph model, the backends and the query layer."""


class GraphError(Exception):
    """Base class for every failure surfaced by provgraph."""
    code = 'GRAPH_ERROR'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'message': self.message, 'extensions': {'code': self.code}}


class InvalidIdentity(GraphError):
    """Malformed or missing identity attribute on entity construction."""
    code = 'INVALID_IDENTITY'

    def __init__(self, entity: str, field: str, value: object, reason: str):
        super().__init__(
            f"{entity}.{field}={value!r} is not a valid identity: {reason}",
        )
        self.entity = entity
        self.field = field
        self.value = value
        self.reason = reason


class UnknownVariant(GraphError):
    """A union-typed value matched none of the declared variants."""
    code = 'UNKNOWN_VARIANT'

    def __init__(self, union: str, detail: str):
        super().__init__(f"Cannot resolve {union}: {detail}")
        self.union = union
        self.detail = detail


class BackendUnavailable(GraphError):
    """The backend cannot reach its storage."""
    code = 'BACKEND_UNAVAILABLE'

    def __init__(self, backend: str, detail: str = ''):
        message = f"Backend '{backend}' is unavailable"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.backend = backend


class QueryFailed(GraphError):
    """Catch-all for backend-specific failures."""
    code = 'QUERY_FAILED'


class QueryCancelled(QueryFailed):
    """The caller cancelled the query or its deadline expired."""
    code = 'QUERY_CANCELLED'
