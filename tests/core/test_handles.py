"""Tests for driver row handles."""

from __future__ import annotations

from unittest.mock import MagicMock

from structlog.testing import capture_logs

from relset.core.handles import ArrayHandle, ScrollableCursorHandle, column_names
from relset.core.protocols import RowHandle


def dbapi_cursor(rows, columns=("ID", "NAME")):
    cursor = MagicMock()
    cursor.description = [(name, None, None, None, None, None, None) for name in columns]
    cursor.fetchall.return_value = list(rows)
    cursor.fetchone.side_effect = list(rows) + [None]
    cursor.rowcount = len(rows)
    return cursor


class TestColumnNames:
    def test_no_description(self):
        assert column_names(None) == []

    def test_lowercase(self):
        description = [("ID",), ("Title",)]
        assert column_names(description) == ["ID", "Title"]
        assert column_names(description, lowercase=True) == ["id", "title"]


class TestArrayHandle:
    def test_satisfies_protocol(self):
        assert isinstance(ArrayHandle([]), RowHandle)

    def test_from_dbapi(self):
        handle = ArrayHandle.from_dbapi(dbapi_cursor([(1, "Ann"), (2, "bob")]), lowercase=True)
        assert len(handle) == 2
        assert handle.fetch(1) == {"id": 2, "name": "bob"}

    def test_keeps_driver_case_by_default(self):
        handle = ArrayHandle.from_dbapi(dbapi_cursor([(1, "Ann")]))
        assert handle.fetch(0) == {"ID": 1, "NAME": "Ann"}

    def test_rows_are_copied(self):
        source = [{"id": 1}]
        handle = ArrayHandle(source)
        source[0]["id"] = 5
        assert handle.fetch(0) == {"id": 1}

    def test_seek_always_succeeds(self):
        assert ArrayHandle([{"id": 1}]).seek(0) is True

    def test_close_drops_rows(self):
        handle = ArrayHandle([{"id": 1}])
        handle.close()
        assert len(handle) == 0


class TestScrollableCursorHandle:
    def test_sequential_reads_do_not_scroll(self):
        cursor = dbapi_cursor([(1, "Ann"), (2, "bob")])
        handle = ScrollableCursorHandle(cursor, lowercase=True)
        assert len(handle) == 2
        assert handle.fetch(0) == {"id": 1, "name": "Ann"}
        assert handle.fetch(1) == {"id": 2, "name": "bob"}
        cursor.scroll.assert_not_called()

    def test_random_access_scrolls(self):
        cursor = dbapi_cursor([(3, "Cy")])
        handle = ScrollableCursorHandle(cursor, lowercase=True)
        assert handle.fetch(2) == {"id": 3, "name": "Cy"}
        cursor.scroll.assert_called_once_with(2, mode="absolute")

    def test_failed_scroll_is_reported(self):
        cursor = dbapi_cursor([])
        cursor.scroll.side_effect = IndexError("scroll destination out of bounds")
        handle = ScrollableCursorHandle(cursor)
        with capture_logs() as logs:
            assert handle.seek(5) is False
        assert logs[0]["event"] == "cursor_scroll_failed"
        assert logs[0]["position"] == 5

    def test_unknown_rowcount(self):
        cursor = dbapi_cursor([])
        cursor.rowcount = -1
        assert len(ScrollableCursorHandle(cursor)) == 0

    def test_close(self):
        cursor = dbapi_cursor([])
        ScrollableCursorHandle(cursor).close()
        cursor.close.assert_called_once_with()
