"""
Tests for within-batch duplicate resolution.
"""
import pytest

from membersync.core.constants import DuplicateHandling
from membersync.validation.duplicate_detector import get_row_key, handle_duplicates

ROWS = [
    {"email": "a@x.co", "n": 1},
    {"email": "b@x.co", "n": 2},
    {"email": "a@x.co", "n": 3},
    {"email": "c@x.co", "n": 4},
    {"email": "b@x.co", "n": 5},
]


def _ns(rows):
    return [r["n"] for r in rows]


class TestHandleDuplicates:

    @pytest.mark.parametrize("handling, expected", [
        (DuplicateHandling.KEEP_ALL, [1, 2, 3, 4, 5]),
        (DuplicateHandling.KEEP_FIRST, [1, 2, 4]),
        (DuplicateHandling.KEEP_LAST, [3, 4, 5]),
        (DuplicateHandling.SKIP_ALL, [4]),
    ])
    def test_modes(self, handling, expected):
        assert _ns(handle_duplicates(ROWS, ["email"], handling)) == expected

    def test_no_key_columns_is_noop(self):
        assert _ns(handle_duplicates(ROWS, [], DuplicateHandling.SKIP_ALL)) == [1, 2, 3, 4, 5]

    def test_string_handling_is_accepted(self):
        assert _ns(handle_duplicates(ROWS, ["email"], "keep_first")) == [1, 2, 4]

    def test_composite_keys(self):
        rows = [
            {"first": "Ann", "last": "Lee", "n": 1},
            {"first": "Ann", "last": "Kim", "n": 2},
            {"first": "Ann", "last": "Lee", "n": 3},
        ]
        assert _ns(handle_duplicates(rows, ["first", "last"], DuplicateHandling.KEEP_FIRST)) == [1, 2]

    def test_missing_values_share_a_key(self):
        rows = [{"email": None, "n": 1}, {"n": 2}]
        assert _ns(handle_duplicates(rows, ["email"], DuplicateHandling.KEEP_FIRST)) == [1]


class TestRowKey:

    def test_pipe_joined_with_blanks_for_missing(self):
        assert get_row_key({"a": 1, "b": None}, ["a", "b", "c"]) == "1||"

    def test_non_string_values(self):
        assert get_row_key({"a": True, "b": 2.5}, ["a", "b"]) == "true|2.5"


BATCHES = [
    [],
    [{"email": "a"}],
    [{"email": "a"}, {"email": "b"}, {"email": "c"}],
    [{"email": "a"}, {"email": "a"}, {"email": "a"}],
    [{"email": "a"}, {"email": "b"}, {"email": "a"}, {"email": None}, {"email": "c"}, {}],
    [{"email": k} for k in "abcabcaxyz"],
]


class TestCardinality:

    @pytest.mark.parametrize("rows", BATCHES)
    @pytest.mark.parametrize("handling", [DuplicateHandling.KEEP_FIRST, DuplicateHandling.KEEP_LAST])
    def test_keep_modes_keep_one_row_per_key(self, rows, handling):
        kept = handle_duplicates(rows, ["email"], handling)
        keys = [get_row_key(r, ["email"]) for r in kept]
        assert len(kept) == len(set(keys)) == len({get_row_key(r, ["email"]) for r in rows})

    @pytest.mark.parametrize("rows", BATCHES)
    def test_skip_all_never_keeps_more_than_keep_first(self, rows):
        skip_all = handle_duplicates(rows, ["email"], DuplicateHandling.SKIP_ALL)
        keep_first = handle_duplicates(rows, ["email"], DuplicateHandling.KEEP_FIRST)
        keys = [get_row_key(r, ["email"]) for r in rows]
        has_repeats = len(set(keys)) < len(keys)

        assert len(skip_all) <= len(keep_first)
        assert (len(skip_all) == len(keep_first)) is not has_repeats
