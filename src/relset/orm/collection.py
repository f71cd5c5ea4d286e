"""
RecordCollection: lazily materialized records over a ResultCursor.

Manifesto:
    A query result becomes records only when something looks at them.  Each
    position of the cursor is turned into a record at most once and cached,
    so repeated reads return the very same objects and never re-run
    queries.  Related rows for the whole collection can be fetched with one
    extra query (``preload``) instead of one query per record.

Architecture:
    ::

        ResultCursor ──► RecordCollection ──► Record (cached per position)
                              │
                              ├── apply(Sort(...))      natural, case-insensitive, stable
                              └── apply(Preload(...))   one query, sliced per parent
                                        │
                                        └─► Record.inject_related(table, route, sub-collection)

    Factories build the cursor: ``build`` (conditions, ordering, limit and
    offset), ``from_primary_keys`` (including composite keys, limit and
    offset), ``from_sql``, ``from_records`` and ``empty``.  ``filter``,
    ``slice`` and ``merge`` return new collections over the same record
    objects; ``map``, ``reduce`` and ``call`` return plain values.

Examples:
    >>> posts = RecordCollection.build("Post", where={"status=": "live"}, limit=10, context=ctx)
    >>> posts.apply(Preload("tags")).apply(Sort("title", "desc"))
    >>> [post.get("title") for post in posts]
    ['Zebras', 'Apples']

Tags:
    collection, records, lazy-loading, sorting, preload, composite-keys, relset
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from functools import cmp_to_key, singledispatch
from typing import TYPE_CHECKING, Any, Union

from relset.core.errors import EmptyCollectionError, ProgrammerError
from relset.core.logging import get_logger
from relset.orm.cursor import ResultCursor
from relset.orm.inflection import humanize, pluralize
from relset.orm.record import Record, record_class_for_table, resolve_record_class
from relset.orm.schema import RelationshipDescriptor
from relset.orm.sql import from_clause, order_by_clause, parse_select, primary_key_condition, where_clause

if TYPE_CHECKING:
    from relset.orm.context import ORMContext

logger = get_logger(__name__)

_DIGITS = re.compile(r"(\d+)")


# =============================================================================
# OPERATIONS
# =============================================================================


@dataclass(frozen=True)
class Sort:
    """Sort by a record accessor (method, property or column name)."""

    accessor: str
    direction: str = "asc"


@dataclass(frozen=True)
class Preload:
    """Fetch the related records of every record with one query."""

    related_table: str
    route: str | None = None


Operation = Union[Sort, Preload]


@singledispatch
def apply(operation: Any, collection: RecordCollection) -> RecordCollection:
    """Run a tagged operation against ``collection`` and return the collection."""
    raise ProgrammerError(f"The operation specified, {operation!r}, is not a collection operation")


@apply.register(Sort)
def _apply_sort(operation: Sort, collection: RecordCollection) -> RecordCollection:
    return collection.sort(operation.accessor, operation.direction)


@apply.register(Preload)
def _apply_preload(operation: Preload, collection: RecordCollection) -> RecordCollection:
    return collection.preload(operation.related_table, operation.route)


def natural_key(value: Any) -> list[tuple[int, int, str]]:
    """Case-insensitive natural ordering key: ``"item 9"`` sorts before ``"Item 10"``."""
    text = "" if value is None else str(value)
    key = []
    for index, chunk in enumerate(_DIGITS.split(text)):
        if not chunk:
            continue
        key.append((0, int(chunk), "") if index % 2 else (1, 0, chunk.lower()))
    return key


def _is_class_accessor(record_class: type[Record], accessor: str) -> bool:
    """Public attributes a record class adds to :class:`Record`, such as ``headline``."""
    return not accessor.startswith("_") and hasattr(record_class, accessor) and not hasattr(Record, accessor)


# =============================================================================
# COLLECTION
# =============================================================================


class RecordCollection:
    """
    Records of one class, backed by a :class:`ResultCursor`.

    ``record_class`` is a :class:`Record` subclass or its registered name.
    Limited collections (see :meth:`build`) carry a count query so the
    number of matching rows without the limit is available.
    """

    def __init__(
        self,
        record_class: type[Record] | str,
        cursor: ResultCursor | None = None,
        *,
        context: ORMContext,
        non_limited_count_sql: str | None = None,
        non_limited_count_params: Sequence[Any] = (),
    ):
        self._record_class = resolve_record_class(record_class)
        self._context = context
        self._cursor = cursor if cursor is not None else ResultCursor.from_rows([])
        self._records: dict[int, Record] = {}
        self._primary_keys: dict[int, Any] = {}
        self._preloaded: dict[tuple[str, str], tuple[RelationshipDescriptor, dict[Any, list[dict]], str]] = {}
        self._non_limited_count_sql = non_limited_count_sql
        self._non_limited_count_params = tuple(non_limited_count_params)
        self._non_limited_count: int | None = None
        self._associate = False

    # =========================================================================
    # FACTORIES
    # =========================================================================

    @classmethod
    def build(
        cls,
        record_class: type[Record] | str,
        where: Mapping[str, Any] | None = None,
        order_bys: Mapping[str, str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        *,
        context: ORMContext,
    ) -> RecordCollection:
        """
        Select records matching ``where``.

        Conditions on related tables (``{"users.name=": "ann"}``) join those
        tables in; a to-many join makes the select DISTINCT.
        """
        record_cls = resolve_record_class(record_class)
        table = record_cls.table
        schema = context.schema
        dialect = context.database.dialect

        where_sql, params = where_clause(table, where, dialect) if where else ("", [])
        order_sql = order_by_clause(table, order_bys, schema, dialect) if order_bys else ""
        from_sql, to_many = from_clause(table, schema, where_sql, order_sql)
        where_part = f" WHERE {where_sql}" if where_sql else ""

        sql = f"SELECT {'DISTINCT ' if to_many else ''}{table}.* FROM {from_sql}{where_part}"
        if order_sql:
            sql += f" ORDER BY {order_sql}"

        count_sql = None
        if limit is not None:
            key_columns = ", ".join(f"{table}.{column}" for column in schema.get_keys(table, "primary"))
            count_sql = f"SELECT count(*) FROM (SELECT DISTINCT {key_columns or f'{table}.*'} FROM {from_sql}{where_part}) sq"

        cursor = context.database.translated_query(sql, params, limit=limit, offset=offset)
        return cls(
            record_cls,
            cursor,
            context=context,
            non_limited_count_sql=count_sql,
            non_limited_count_params=params,
        )

    @classmethod
    def from_primary_keys(
        cls,
        record_class: type[Record] | str,
        keys: Iterable[Any],
        order_bys: Mapping[str, str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        *,
        context: ORMContext,
    ) -> RecordCollection:
        """
        Records for ``keys``, in the order given unless ``order_bys`` is set.

        Composite keys are tuples in primary-key column order or mappings
        keyed by column.  Repeated keys give one record.  As with
        :meth:`build`, ``offset`` only applies together with ``limit``, and
        :meth:`get_non_limited_count` reports every record found.
        """
        record_cls = resolve_record_class(record_class)
        table = record_cls.table
        schema = context.schema
        database = context.database
        columns = schema.get_keys(table, "primary")

        normalized: list[Any] = []
        for key in keys:
            if isinstance(key, Mapping):
                key = key[columns[0]] if len(columns) == 1 else tuple(key[column] for column in columns)
            elif len(columns) > 1:
                key = tuple(key)
            if key not in normalized:
                normalized.append(key)

        condition, params = primary_key_condition(table, columns, normalized, database.dialect)
        sql = f"SELECT {table}.* FROM {table} WHERE {condition}"
        if order_bys:
            count_sql = f"SELECT count(*) FROM {table} WHERE {condition}" if limit is not None else None
            sql += f" ORDER BY {order_by_clause(table, order_bys, schema, database.dialect)}"
            return cls(
                record_cls,
                database.translated_query(sql, params, limit=limit, offset=offset),
                context=context,
                non_limited_count_sql=count_sql,
                non_limited_count_params=params,
            )

        rows = database.query(sql, params).fetch_all_rows()

        def row_key(row: Mapping[str, Any]) -> Any:
            return row.get(columns[0]) if len(columns) == 1 else tuple(row.get(column) for column in columns)

        by_key = {row_key(row): row for row in rows}
        ordered = [by_key.pop(key) for key in normalized if key in by_key]
        ordered.extend(by_key.values())

        found = len(ordered)
        if limit is not None:
            start = offset or 0
            ordered = ordered[start : start + limit]
            condition, params = primary_key_condition(
                table, columns, [row_key(row) for row in ordered], database.dialect
            )
            sql = f"SELECT {table}.* FROM {table} WHERE {condition}"

        cursor = ResultCursor.from_rows(ordered, sql=sql)
        cursor.set_params(params)
        collection = cls(record_cls, cursor, context=context)
        if limit is not None:
            collection._non_limited_count = found
        return collection

    @classmethod
    def from_sql(
        cls,
        record_class: type[Record] | str,
        sql: str,
        params: Sequence[Any] = (),
        *,
        context: ORMContext,
    ) -> RecordCollection:
        """Records for hand-written SQL selecting ``table.*`` rows."""
        return cls(record_class, context.database.query(sql, params), context=context)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Record],
        *,
        context: ORMContext,
        record_class: type[Record] | str | None = None,
    ) -> RecordCollection:
        """A collection over existing records, which must all be of one class."""
        records = list(records)
        if record_class is None:
            if not records:
                raise ProgrammerError("The record class must be specified when building from an empty list of records")
            record_class = type(records[0])
        record_cls = resolve_record_class(record_class)
        for record in records:
            if type(record) is not record_cls:
                raise ProgrammerError(
                    f"The record {record!r} is not a {record_cls.__name__}. "
                    "All records in a collection must be of the same class."
                )

        collection = cls(record_cls, ResultCursor.from_rows([record.values for record in records]), context=context)
        collection._records = dict(enumerate(records))
        return collection

    @classmethod
    def empty(cls, record_class: type[Record] | str, *, context: ORMContext) -> RecordCollection:
        return cls(record_class, ResultCursor.from_rows([]), context=context)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def record_class(self) -> type[Record]:
        return self._record_class

    @property
    def cursor(self) -> ResultCursor:
        return self._cursor

    def get_size_of(self) -> int:
        return self._cursor.returned_rows

    def __len__(self) -> int:
        return self.get_size_of()

    def get_non_limited_count(self) -> int:
        """Rows matching the conditions ignoring the limit; the query runs once."""
        if self._non_limited_count is None:
            if self._non_limited_count_sql is None:
                return self.get_size_of()
            cursor = self._context.database.query(self._non_limited_count_sql, self._non_limited_count_params)
            self._non_limited_count = int(cursor.fetch_scalar())
        return self._non_limited_count

    def toss_if_empty(self) -> RecordCollection:
        if not self.get_size_of():
            name = humanize(pluralize(self._record_class.__name__))
            raise EmptyCollectionError(f"No {name} could be found").with_context(
                table=self._record_class.table, record_class=self._record_class.__name__
            )
        return self

    def flag_for_association(self) -> None:
        """Mark the collection as the new set of related records for its parent."""
        self._associate = True

    def is_flagged_for_association(self) -> bool:
        return self._associate

    # =========================================================================
    # MATERIALIZATION
    # =========================================================================

    def _record_at(self, position: int) -> Record:
        record = self._records.get(position)
        if record is None:
            self._cursor.seek(position)
            record = self._record_class(self._cursor, context=self._context)
            self._inject_preloaded(record)
            self._records[position] = record
        return record

    def _restore_pointer(self, pointer: int) -> None:
        if pointer < self._cursor.returned_rows:
            self._cursor.seek(pointer)
        else:
            self._cursor.pointer = pointer

    def get_records(self) -> list[Record]:
        """Every record in order; the cursor position is left unchanged."""
        pointer = self._cursor.pointer
        records = [self._record_at(position) for position in range(self.get_size_of())]
        self._restore_pointer(pointer)
        return records

    def get_primary_keys(self) -> list[Any]:
        """Each record's primary key: a scalar, or a tuple for composite keys."""
        pointer = self._cursor.pointer
        for position in range(self.get_size_of()):
            if position not in self._primary_keys:
                self._primary_keys[position] = self._record_at(position).primary_key
        self._restore_pointer(pointer)
        return [self._primary_keys[position] for position in range(self.get_size_of())]

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def apply(self, operation: Operation) -> RecordCollection:
        return apply(operation, self)

    def _derive(self, records: Sequence[Record]) -> RecordCollection:
        return type(self).from_records(records, context=self._context, record_class=self._record_class)

    def _unknown_accessor(self, accessor: str) -> ProgrammerError:
        name = self._record_class.__name__
        return ProgrammerError(f"The accessor specified, {accessor}, is not a method or column of {name}").with_context(
            table=self._record_class.table, record_class=name
        )

    def _check_accessor(self, accessor: str) -> None:
        """Reject accessors that are neither added by the class nor known columns."""
        record_cls = self._record_class
        if _is_class_accessor(record_cls, accessor):
            return
        table = record_cls.table
        schema = self._context.schema
        if accessor in schema.get_keys(table, "primary"):
            return
        if accessor in [key["column"] for key in schema.get_keys(table, "foreign")]:
            return
        if schema.get_instance().get_column_type(table, accessor) is not None:
            return
        # Undeclared columns are looked up in each record's values.
        if not self.get_size_of():
            raise self._unknown_accessor(accessor)

    def _accessor_value(self, record: Record, accessor: str) -> Any:
        if _is_class_accessor(type(record), accessor):
            value = getattr(record, accessor)
            return value() if callable(value) else value
        values = record.values
        if accessor in values:
            return values[accessor]
        raise self._unknown_accessor(accessor)

    def _reorder(self, records: list[Record], order: Sequence[int]) -> None:
        self._records = {new: records[old] for new, old in enumerate(order)}
        self._primary_keys = {
            new: self._primary_keys[old] for new, old in enumerate(order) if old in self._primary_keys
        }

    def sort(self, accessor: str, direction: str = "asc") -> RecordCollection:
        """
        Stable, case-insensitive natural sort by ``accessor``.

        With ``legacy_desc_sort`` on the context, ``desc`` keeps ascending
        order.
        """
        if direction not in ("asc", "desc"):
            raise ProgrammerError(f"The sort direction specified, {direction}, is invalid. Must be one of: asc, desc")
        self._check_accessor(accessor)

        records = self.get_records()
        keys = [natural_key(self._accessor_value(record, accessor)) for record in records]
        reverse = direction == "desc" and not self._context.legacy_desc_sort
        self._reorder(records, sorted(range(len(records)), key=lambda position: keys[position], reverse=reverse))
        return self

    def sort_by_callback(self, callback: Callable[[Record, Record], int]) -> RecordCollection:
        """Stable sort with a comparison function returning <0, 0 or >0."""
        records = self.get_records()
        order = sorted(
            range(len(records)), key=cmp_to_key(lambda left, right: callback(records[left], records[right]))
        )
        self._reorder(records, order)
        return self

    def filter(self, predicate: Callable[[Record], Any] | str) -> RecordCollection:
        """
        A new collection of the records ``predicate`` accepts.

        ``predicate`` is a callable taking a record, or an accessor name as
        for :meth:`sort` whose value is tested for truth.  The new
        collection holds the same record objects.
        """
        if isinstance(predicate, str):
            accessor = predicate
            self._check_accessor(accessor)

            def accepts(record: Record) -> Any:
                return self._accessor_value(record, accessor)

        else:
            accepts = predicate
        return self._derive([record for record in self.get_records() if accepts(record)])

    def slice(self, offset: int, length: int | None = None) -> RecordCollection:
        """
        A new collection of up to ``length`` records starting at ``offset``.

        A negative ``offset`` counts back from the end.  A negative
        ``length`` stops that many records before the end, and ``None``
        runs to the end.  Only the selected records are materialized.
        """
        size = self.get_size_of()
        start = offset if offset >= 0 else max(size + offset, 0)
        if length is None:
            stop = size
        else:
            stop = min(start + length if length >= 0 else size + length, size)

        pointer = self._cursor.pointer
        records = [self._record_at(position) for position in range(start, stop)]
        self._restore_pointer(pointer)
        return self._derive(records)

    def merge(self, other: RecordCollection | Record | Iterable[Record]) -> RecordCollection:
        """
        A new collection of these records followed by those of ``other``.

        Duplicates are kept.  Merging nothing returns this collection.

        Raises:
            ProgrammerError: A record is not of this collection's class.
        """
        if isinstance(other, RecordCollection):
            extra = other.get_records()
        elif isinstance(other, Record):
            extra = [other]
        else:
            extra = list(other)
        if not extra:
            return self
        return self._derive([*self.get_records(), *extra])

    def map(self, callback: Callable[[Record], Any]) -> list[Any]:
        return [callback(record) for record in self.get_records()]

    def reduce(self, callback: Callable[[Any, Record], Any], initial: Any = None) -> Any:
        """Fold the records left to right, starting from ``initial``."""
        result = initial
        for record in self.get_records():
            result = callback(result, record)
        return result

    def call(self, method: str, *args: Any, **kwargs: Any) -> list[Any]:
        """Call ``method`` on every record, e.g. ``posts.call("get", "title")``."""
        if method.startswith("_") or not callable(getattr(self._record_class, method, None)):
            raise ProgrammerError(
                f"The method specified, {method}, is not a method of {self._record_class.__name__}"
            ).with_context(table=self._record_class.table, record_class=self._record_class.__name__)
        return [getattr(record, method)(*args, **kwargs) for record in self.get_records()]

    def preload(self, related_table: str, route: str | None = None) -> RecordCollection:
        """
        Load the ``related_table`` records of every record with one query.

        Limited collections narrow the query to the primary keys they hold.
        Collections built from records have no query of their own, so the
        related rows are selected by primary key alone.

        Raises:
            ProgrammerError: The collection's query has a GROUP BY clause.
            AmbiguousRouteError: Several routes exist and ``route`` was not given.
        """
        table = self._record_class.table
        sql = self._cursor.untranslated_sql or self._cursor.sql
        params = self._cursor.params
        if sql:
            limited = bool(parse_select(sql)["LIMIT"]) or self._cursor.untranslated_sql is not None
        else:
            sql, params, limited = f"SELECT {table}.* FROM {table}", (), True
        related = self._context.related
        rel = related.resolve_preload(table, sql, related_table, route)

        groups: dict[Any, list[dict]] = {}
        preload_sql = ""
        if self.get_size_of():
            keys = self.get_primary_keys() if limited else None
            groups, preload_sql = related.preload_rows(table, rel, sql, params, keys)

        self._preloaded[(related_table, rel.route)] = (rel, groups, preload_sql)
        for record in self._records.values():
            self._inject_preloaded(record)
        return self

    def _inject_preloaded(self, record: Record) -> None:
        values = record.values
        for (related_table, route), (rel, groups, sql) in self._preloaded.items():
            rows = groups.get(values.get(rel.column), [])
            collection = RecordCollection(
                record_class_for_table(related_table),
                ResultCursor.from_rows(rows, sql=sql),
                context=self._context,
            )
            record.inject_related(related_table, route, collection)

    # =========================================================================
    # ITERATION
    # =========================================================================

    def rewind(self) -> None:
        self._cursor.rewind()

    def valid(self) -> bool:
        return self._cursor.valid()

    def key(self) -> int:
        return self._cursor.key()

    def current(self) -> Record:
        """The record at the cursor position."""
        return self._record_at(self._cursor.pointer)

    def next(self) -> None:
        self._cursor.pointer += 1

    def __iter__(self) -> Iterator[Record]:
        self.rewind()
        while self.valid():
            yield self.current()
            self.next()

    def __repr__(self) -> str:
        return f"RecordCollection({self._record_class.__name__}, size={self.get_size_of()})"


__all__ = [
    "RecordCollection",
    "Sort",
    "Preload",
    "Operation",
    "apply",
    "natural_key",
]
