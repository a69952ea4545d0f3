"""
Tests for cursor pagination.
"""

import pytest

from meterboard.connect.base import Page
from meterboard.connect.pagination import iter_pages, paginate
from meterboard.errors import UpstreamError


class FakeEndpoint:
    """Serves pre-built pages keyed by cursor and records every call."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def __call__(self, cursor):
        self.calls.append(cursor)
        return self.pages[cursor]


class TestPaginate:
    """Tests for paginate."""

    def test_concatenates_pages_in_order(self):
        endpoint = FakeEndpoint({
            None: Page(data=[1, 2], next_page="c1"),
            "c1": Page(data=[3, 4], next_page="c2"),
            "c2": Page(data=[5], next_page=None),
        })

        assert paginate(endpoint) == [1, 2, 3, 4, 5]
        assert endpoint.calls == [None, "c1", "c2"]

    def test_single_page(self):
        endpoint = FakeEndpoint({None: Page(data=["a"])})

        assert paginate(endpoint) == ["a"]
        assert len(endpoint.calls) == 1

    def test_empty_cursor_stops(self):
        endpoint = FakeEndpoint({None: Page(data=[1], next_page="")})

        assert paginate(endpoint) == [1]
        assert endpoint.calls == [None]

    def test_empty_first_page(self):
        assert paginate(FakeEndpoint({None: Page(data=[])})) == []

    def test_error_propagates(self):
        def failing(cursor):
            if cursor == "c1":
                raise UpstreamError("500: boom")
            return Page(data=[1], next_page="c1")

        with pytest.raises(UpstreamError, match="boom"):
            paginate(failing)


class TestIterPages:
    """Tests for iter_pages."""

    def test_lazy(self):
        endpoint = FakeEndpoint({
            None: Page(data=[1], next_page="c1"),
            "c1": Page(data=[2]),
        })

        pages = iter_pages(endpoint)
        first = next(pages)

        assert first.data == [1]
        assert endpoint.calls == [None]
        assert [p.data for p in pages] == [[2]]
