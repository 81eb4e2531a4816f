import time

import pytest

from provgraph.core.context import background
from provgraph.core.context import QueryContext
from provgraph.core.errors import QueryCancelled
from provgraph.core.errors import QueryFailed


class TestQueryContext:

    def test_background_never_expires(self):
        ctx = background()
        assert ctx.deadline is None
        assert ctx.remaining() is None
        ctx.check()

    def test_cancel(self):
        ctx = QueryContext()
        ctx.cancel()
        assert ctx.cancelled
        with pytest.raises(QueryCancelled, match='cancelled'):
            ctx.check()

    def test_deadline(self):
        ctx = QueryContext(timeout=0.01)
        time.sleep(0.02)
        assert ctx.expired
        assert ctx.remaining() == 0.0
        with pytest.raises(QueryCancelled, match='timeout'):
            ctx.check()

    def test_cancellation_is_a_query_failure(self):
        assert issubclass(QueryCancelled, QueryFailed)
        assert QueryCancelled('x').to_dict()['extensions']['code'] == 'QUERY_CANCELLED'
