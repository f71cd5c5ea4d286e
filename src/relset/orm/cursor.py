"""
ResultCursor: one cursor protocol over every supported driver.

Manifesto:
    Drivers disagree about almost everything: some buffer rows, some keep
    a live server cursor; some report a row count for SELECT, some do not;
    some rename or truncate columns.  ``ResultCursor`` owns the pointer and
    row-count bookkeeping and delegates only "give me row *n*" and
    "reposition to *n*" to a :class:`~relset.core.protocols.RowHandle`.

    - **Out-of-range is a bug:** ``OutOfRangeError`` (a ``ProgrammerError``)
    - **No rows is a condition:** ``NoResultsError`` (an ``ExpectedError``)
    - **Driver quirks are injected:** per-driver row transforms, no sniffing

Architecture:
    ::

        Database.query(sql)
            │
            ▼
        ResultCursor ──► RowHandle (ArrayHandle | ScrollableCursorHandle)
            │  pointer ∈ [0, returned_rows)
            │  fetch_row(): handle.fetch(pointer) → strip bookkeeping → transform
            ▼
        RecordCollection

Examples:
    >>> cursor = ResultCursor.from_rows([{"id": 1}, {"id": 2}])
    >>> cursor.fetch_row()
    {'id': 1}
    >>> cursor.key()
    1
    >>> [row["id"] for row in cursor]
    [1, 2]

Tags:
    cursor, result-set, driver-agnostic, iterator, relset
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any

from relset.core.dialect import LIMIT_OFFSET_ROW_NUM
from relset.core.errors import (
    NoResultsError,
    OutOfRangeError,
    RelsetError,
    SeekError,
)
from relset.core.handles import ArrayHandle
from relset.core.logging import get_logger
from relset.core.protocols import RowHandle

logger = get_logger(__name__)

RowTransform = Callable[[dict[str, Any]], dict[str, Any]]


class ResultCursor:
    """
    Positioned access to the rows of one executed query.

    The cursor is populated by :class:`~relset.orm.database.Database` right
    after execution through the ``set_*`` methods and is request-scoped.
    """

    def __init__(self, driver: str = "array", row_transform: RowTransform | None = None):
        self.driver = driver
        self.row_transform = row_transform
        self.result: RowHandle | None = None
        self.sql: str = ""
        self.untranslated_sql: str | None = None
        self.params: tuple[Any, ...] = ()
        self.returned_rows = 0
        self.affected_rows = 0
        self.pointer = 0
        self.auto_incremented_value: Any = None

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]], sql: str = "") -> ResultCursor:
        """Array-backed cursor over in-memory rows."""
        handle = ArrayHandle(rows)
        cursor = cls()
        cursor.set_result(handle)
        cursor.set_sql(sql)
        cursor.set_returned_rows(len(handle))
        return cursor

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def set_result(self, result: RowHandle) -> None:
        self.result = result

    def set_sql(self, sql: str) -> None:
        self.sql = sql

    def set_untranslated_sql(self, sql: str | None) -> None:
        """Record the SQL as written before limit/offset translation."""
        self.untranslated_sql = sql

    def set_params(self, params: Sequence[Any]) -> None:
        self.params = tuple(params)

    def set_returned_rows(self, returned_rows: int) -> None:
        """Set the returned-row count; a nonzero count clears ``affected_rows``."""
        self.returned_rows = int(returned_rows)
        if self.returned_rows:
            self.affected_rows = 0

    def set_affected_rows(self, affected_rows: int) -> None:
        self.affected_rows = int(affected_rows)

    def set_auto_incremented_value(self, value: Any) -> None:
        self.auto_incremented_value = value if value else None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def fetch_row(self) -> dict[str, Any]:
        """
        Return the row at the pointer and advance.

        Raises:
            NoResultsError: The query returned no rows.
            OutOfRangeError: The pointer is past the last row.
        """
        if not self.returned_rows:
            raise NoResultsError("The query specified did not return any rows").with_context(sql=self.sql)

        if not self.valid():
            raise OutOfRangeError("There are no remaining rows", position=self.pointer).with_context(
                sql=self.sql
            )

        row = dict(self.result.fetch(self.pointer))

        if self.untranslated_sql is not None:
            row.pop(LIMIT_OFFSET_ROW_NUM, None)

        if self.row_transform is not None:
            row = self.row_transform(row)

        self.pointer += 1
        return row

    def fetch_all_rows(self) -> list[dict[str, Any]]:
        """Every row, from the first; an empty result gives an empty list."""
        return list(self)

    def fetch_scalar(self) -> Any:
        """The first column of the row at the pointer."""
        row = self.fetch_row()
        return next(iter(row.values()), None)

    def seek(self, row: int) -> None:
        """
        Move the pointer to ``row`` (zero-based).

        Raises:
            NoResultsError: The query returned no rows.
            OutOfRangeError: ``row`` is outside ``[0, returned_rows)``.
            SeekError: The driver handle could not reposition.
        """
        if not self.returned_rows:
            raise NoResultsError("The query specified did not return any rows").with_context(sql=self.sql)

        if row < 0 or row >= self.returned_rows:
            raise OutOfRangeError(
                f"The row requested, {row}, is outside the valid range of 0 to {self.returned_rows - 1}",
                position=row,
            )

        if not self.result.seek(row):
            raise SeekError(f"There was an error seeking to row {row}").with_context(sql=self.sql)

        self.pointer = row

    def are_remaining_rows(self) -> bool:
        return self.pointer < self.returned_rows

    def valid(self) -> bool:
        return self.pointer < self.returned_rows

    def toss_if_no_results(self) -> None:
        """Raise ``NoResultsError`` when nothing was returned or affected."""
        if not self.returned_rows and not self.affected_rows:
            raise NoResultsError("No rows were returned or affected by the query").with_context(sql=self.sql)

    # ------------------------------------------------------------------
    # Iterator protocol
    # ------------------------------------------------------------------

    def rewind(self) -> None:
        try:
            self.seek(0)
        except NoResultsError:
            pass

    def current(self) -> dict[str, Any]:
        """The row at the pointer; the pointer does not move."""
        row = self.fetch_row()
        self.seek(self.pointer - 1)
        return row

    def key(self) -> int:
        return self.pointer

    def next(self) -> dict[str, Any] | None:
        """Advance one row and return it, or ``None`` past the end.

        The pointer always ends one past where it started.
        """
        try:
            self.seek(self.pointer + 1)
            row = self.fetch_row()
            self.seek(self.pointer - 1)
            return row
        except RelsetError:
            self.pointer += 1
            return None

    def __iter__(self) -> Iterator[dict[str, Any]]:
        self.rewind()
        while self.valid():
            yield self.current()
            self.next()

    def __len__(self) -> int:
        return self.returned_rows

    def __repr__(self) -> str:
        return f"ResultCursor(driver={self.driver!r}, returned_rows={self.returned_rows}, pointer={self.pointer})"


# =============================================================================
# ROW TRANSFORMS
# =============================================================================

_ROW_TRANSFORMS: dict[str, RowTransform] = {}
_TRANSFORMS_LOCK = threading.Lock()


def register_row_transform(driver: str, transform: RowTransform) -> None:
    """Apply ``transform`` to every row read from ``driver``."""
    with _TRANSFORMS_LOCK:
        _ROW_TRANSFORMS[driver] = transform


def get_row_transform(driver: str) -> RowTransform | None:
    return _ROW_TRANSFORMS.get(driver)


def dblib_row_fixup(row: dict[str, Any]) -> dict[str, Any]:
    """
    Work around the dblib MSSQL driver.

    dblib returns ``' '`` for empty strings and silently truncates column
    names at 30 characters and values at 255.  Spaces are turned back into
    empty strings; possible truncations are logged.
    """
    fixed = {}
    for column, value in row.items():
        if value == " ":
            value = ""
            logger.info("dblib_space_converted", column=column)
        if len(column) == 30:
            logger.info("dblib_column_name_may_be_truncated", column=column)
        if isinstance(value, str) and len(value) == 256:
            logger.info("dblib_value_may_be_truncated", column=column)
        fixed[column] = value
    return fixed


register_row_transform("dblib", dblib_row_fixup)


__all__ = [
    "ResultCursor",
    "RowTransform",
    "register_row_transform",
    "get_row_transform",
    "dblib_row_fixup",
]
