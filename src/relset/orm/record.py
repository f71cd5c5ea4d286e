"""Record base class and record-class resolution.

A ``Record`` is one row of one table, identified by its primary key.
Subclasses register themselves by class name so collections can be built
from either the class or its name::

    class Post(Record):
        pass                       # table "posts"

    class Person(Record):
        table = "people_archive"   # explicit table

Records are constructed from a positioned :class:`ResultCursor` (the
collection path), from a primary key (scalar, tuple or column mapping,
loaded with one query), or from nothing (a new, unsaved record).
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from relset.core.errors import NotFoundError, ProgrammerError, RecordClassError
from relset.orm.cursor import ResultCursor
from relset.orm.inflection import classize, humanize, tablize
from relset.orm.sql import where_clause

if TYPE_CHECKING:
    from relset.orm.collection import RecordCollection
    from relset.orm.context import ORMContext

_RECORD_CLASSES: dict[str, type[Record]] = {}
_REGISTRY_LOCK = threading.Lock()


class Record:
    """One row of ``table``."""

    table: ClassVar[str] = ""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if not cls.__dict__.get("table"):
            cls.table = tablize(cls.__name__)
        with _REGISTRY_LOCK:
            _RECORD_CLASSES[cls.__name__] = cls

    def __init__(self, source: Any = None, *, context: ORMContext):
        self._context = context
        self._values: dict[str, Any] = {}
        self._related: dict[tuple[str, str], RecordCollection] = {}
        self._staged: dict[str, str | None] = {}
        self._staged_values: dict[str, list[Any]] = {}
        self._exists = False

        if isinstance(source, ResultCursor):
            self._values = source.current()
            self._exists = True
        elif source is not None:
            self._load(source)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, key: Any) -> None:
        if isinstance(key, Mapping):
            conditions = {f"{column}=": value for column, value in key.items()}
        else:
            columns = self.primary_key_columns()
            values = list(key) if isinstance(key, (tuple, list)) else [key]
            if len(values) != len(columns):
                raise ProgrammerError(
                    f"The primary key {key!r} does not match the primary key columns of {self.table}: "
                    f"{', '.join(columns)}"
                )
            conditions = {f"{column}=": value for column, value in zip(columns, values)}

        database = self._context.database
        condition_sql, params = where_clause(self.table, conditions, database.dialect)
        cursor = database.query(f"SELECT {self.table}.* FROM {self.table} WHERE {condition_sql}", params)
        if not cursor.returned_rows:
            raise NotFoundError(
                f"The {humanize(type(self).__name__)} requested could not be found"
            ).with_context(table=self.table, record_class=type(self).__name__, key=key)
        self._values = cursor.fetch_row()
        self._exists = True

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def primary_key_columns(self) -> list[str]:
        return list(self._context.schema.get_keys(self.table, "primary"))

    @property
    def context(self) -> ORMContext:
        return self._context

    @property
    def exists(self) -> bool:
        """Whether the record was read from the database."""
        return self._exists

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def get(self, column: str) -> Any:
        if column not in self._values:
            raise ProgrammerError(f"The column specified, {column}, does not exist in {self.table}")
        return self._values[column]

    def set(self, column: str, value: Any) -> None:
        self._values[column] = value

    @property
    def primary_key(self) -> Any:
        """Scalar for a single-column key, tuple in key-column order otherwise."""
        columns = self.primary_key_columns()
        if len(columns) == 1:
            return self._values.get(columns[0])
        return tuple(self._values.get(column) for column in columns)

    # ------------------------------------------------------------------
    # Related data
    # ------------------------------------------------------------------

    def find_related(self, plural_relation: str, route: str | None = None) -> list[Any]:
        """Primary keys of related records, e.g. ``post.find_related("tags")``."""
        return self._context.related.retrieve_values(
            self.table, self._values, plural_relation, route, self._staged_values
        )

    def assign_related(self, plural_relation: str, keys: Sequence[Any], route: str | None = None) -> None:
        """Stage many-to-many associations; :meth:`store_related` persists them."""
        self._context.related.assign_values(self.table, self._staged_values, plural_relation, keys, route)
        self._staged[plural_relation] = route

    def store_related(self) -> None:
        for plural_relation, route in self._staged.items():
            self._context.related.store_associations(
                self.table, self._values, plural_relation, route, self._staged_values
            )
        self._staged.clear()
        self._staged_values.clear()

    def count_related(self, related_table: str, route: str | None = None) -> int:
        return self._context.related.count_related(self.table, self._values, related_table, route)

    def build_object(self, related_class: type[Record] | str, route: str | None = None) -> Record | None:
        """The record this one references, e.g. ``post.build_object("User")``."""
        return self._context.related.build_object(self.table, self._values, related_class, route)

    def build_related(self, related_table: str, route: str | None = None) -> RecordCollection:
        """
        Related records as a collection.

        Preloaded collections are used as-is; otherwise the collection is
        queried once and cached on the record.
        """
        route = self._context.schema.get_route_name(self.table, related_table, route, "*-to-many")
        key = (related_table, route)
        if key not in self._related:
            self._related[key] = self._context.related.query_related(self, related_table, route)
        return self._related[key]

    def inject_related(self, related_table: str, route: str, collection: RecordCollection) -> None:
        self._related[(related_table, route)] = collection

    def associate_related(
        self, related_table: str, keys: Sequence[Any], route: str | None = None
    ) -> RecordCollection:
        """
        Make the records for ``keys`` the many-to-many related records.

        The keys are staged like :meth:`assign_related` and the returned
        collection, flagged for association, replaces the cached one.
        """
        from relset.orm.collection import RecordCollection

        rel = self._context.schema.get_route(self.table, related_table, route, "many-to-many")
        keys = [key for key in keys if key not in (None, "")]
        self.assign_related(related_table, keys, rel.route)
        collection = RecordCollection.from_primary_keys(
            record_class_for_table(related_table), keys, context=self._context
        )
        collection.flag_for_association()
        self._related[(related_table, rel.route)] = collection
        return collection

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.primary_key!r})"


def resolve_record_class(record_class: type[Record] | str) -> type[Record]:
    """
    Accept a ``Record`` subclass or a registered class name.

    Raises:
        RecordClassError: The name is not registered or the class is not a Record.
    """
    if isinstance(record_class, str):
        with _REGISTRY_LOCK:
            resolved = _RECORD_CLASSES.get(record_class)
        if resolved is None:
            raise RecordClassError(f"The class specified, {record_class}, could not be loaded")
        return resolved
    if isinstance(record_class, type) and issubclass(record_class, Record) and record_class is not Record:
        return record_class
    raise RecordClassError(
        f"The class specified, {record_class!r}, does not extend Record. "
        "All classes used with RecordCollection must extend Record."
    )


def record_class_for_table(table: str) -> type[Record]:
    """The registered class for ``table``, defining a plain one if none exists."""
    with _REGISTRY_LOCK:
        for cls in _RECORD_CLASSES.values():
            if cls.table == table:
                return cls
    return type(classize(table), (Record,), {"table": table})


__all__ = [
    "Record",
    "resolve_record_class",
    "record_class_for_table",
]
