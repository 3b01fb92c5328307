# tests/core/table/test_index.py
"""Tests for TableIndex membership operations."""

import pytest

from ledgertable.core.table.index import append_ids, remove_ids, replace_id, validate_index


class TestAppendIds:
    def test_appends_in_order(self) -> None:
        index = ["a"]

        assert append_ids(index, ["b", "c"]) is True
        assert index == ["a", "b", "c"]

    def test_nothing_to_append(self) -> None:
        index = ["a"]

        assert append_ids(index, []) is False
        assert index == ["a"]


class TestReplaceId:
    def test_replaces_at_same_position(self) -> None:
        index = ["a", "b", "c"]

        replace_id(index, "b", "b2")

        assert index == ["a", "b2", "c"]

    def test_replaces_first_occurrence_only(self) -> None:
        index = ["a", "b", "b"]

        replace_id(index, "b", "x")

        assert index == ["a", "x", "b"]

    def test_appends_when_missing(self) -> None:
        index = ["a", "b", "c"]

        assert replace_id(index, "z", "d") is True
        assert index == ["a", "b", "c", "d"]


class TestRemoveIds:
    def test_removes_present_ids(self) -> None:
        index = ["a", "b", "c"]

        assert remove_ids(index, ["c", "a"]) == ["c", "a"]
        assert index == ["b"]

    def test_missing_ids_ignored(self) -> None:
        index = ["a", "b"]

        assert remove_ids(index, ["x"]) == []
        assert index == ["a", "b"]

    def test_duplicate_request_removes_duplicates(self) -> None:
        index = ["a", "a", "b"]

        assert remove_ids(index, ["a", "a", "a"]) == ["a", "a"]
        assert index == ["b"]


class TestValidateIndex:
    def test_accepts_list_of_strings(self) -> None:
        assert validate_index(["a", "b"]) == ["a", "b"]

    def test_returns_copy(self) -> None:
        data = ["a"]
        assert validate_index(data) is not data

    @pytest.mark.parametrize("data", [None, "abc", {"a": 1}, ["a", 1], [None]])
    def test_rejects_other_shapes(self, data) -> None:
        with pytest.raises(ValueError):
            validate_index(data)
