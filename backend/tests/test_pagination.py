"""Tests for the page selector and in-memory pagination."""

import pytest

from app.utils.pagination import ELLIPSIS, page_numbers, paginate, total_pages


class TestPageNumbers:
    def test_all_pages_when_few(self):
        assert page_numbers(2, 4) == [1, 2, 3, 4]
        assert page_numbers(1, 1) == [1]

    @pytest.mark.parametrize("current", [1, 2, 3])
    def test_near_start(self, current):
        assert page_numbers(current, 10) == [1, 2, 3, 4, ELLIPSIS, 10]

    @pytest.mark.parametrize("current", [8, 9, 10])
    def test_near_end(self, current):
        assert page_numbers(current, 10) == [1, ELLIPSIS, 7, 8, 9, 10]

    def test_middle(self):
        assert page_numbers(5, 10) == [1, ELLIPSIS, 4, 5, 6, ELLIPSIS, 10]


class TestPaginate:
    def test_middle_page_indices(self):
        page = paginate(list(range(35)), 2, 10)

        assert page["items"] == list(range(10, 20))
        assert page["start_index"] == 11
        assert page["end_index"] == 20
        assert page["total_pages"] == 4

    def test_last_page_is_partial(self):
        page = paginate(list(range(35)), 4, 10)
        assert page["items"] == list(range(30, 35))
        assert page["end_index"] == 35

    def test_page_is_clamped(self):
        assert paginate(list(range(12)), 99, 5)["page"] == 3
        assert paginate(list(range(12)), 0, 5)["page"] == 1

    def test_empty(self):
        page = paginate([], 1, 10)
        assert page["items"] == []
        assert page["total_pages"] == 1
        assert (page["start_index"], page["end_index"]) == (0, 0)

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            total_pages(10, 0)
