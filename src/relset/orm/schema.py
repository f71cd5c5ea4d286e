"""
Schema metadata: relationship descriptors, introspectors and the registry.

Manifesto:
    Every relationship query starts from schema metadata: which columns form
    a table's primary key and which relationships connect two tables.  The
    metadata is computed once and read on every request, so descriptors are
    immutable and stored flat per table, addressed by route name.  A table
    related to itself simply has descriptors whose ``related_table`` equals
    ``table``; nothing is ever nested.

Architecture:
    ::

        SchemaRegistry ──► SchemaIntrospector (protocol)
              │                 ├── StaticSchema       declared in code
              │                 └── SQLAlchemySchema   sqlalchemy.inspect()
              │
              └── get_routes / get_route_name / get_route
                    route = join_table     (many-to-many)
                          = related_column (one-to-many)
                          = column         (one-to-one, many-to-one)

Examples:
    >>> schema = StaticSchema({"posts": ["id"], "users": ["id"]})
    >>> schema.add_foreign_key("posts", "author_id", "users")
    >>> registry = SchemaRegistry()
    >>> registry.attach(schema)
    >>> registry.get_route_name("users", "posts", kind="*-to-many")
    'author_id'

Tags:
    schema, relationships, introspection, sqlalchemy, routes, relset
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from relset.core.errors import AmbiguousRouteError, ProgrammerError, UnknownRouteError
from relset.core.logging import get_logger
from relset.core.protocols import SchemaIntrospector

logger = get_logger(__name__)


class RelationshipKind(str, Enum):
    """The four relationship kinds, valued by their conventional names."""

    ONE_TO_ONE = "one-to-one"
    MANY_TO_ONE = "many-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"

    @property
    def is_to_many(self) -> bool:
        return self in (RelationshipKind.ONE_TO_MANY, RelationshipKind.MANY_TO_MANY)


TO_MANY = "*-to-many"
TO_ONE = "*-to-one"


@dataclass(frozen=True)
class RelationshipDescriptor:
    """
    One relationship from ``table`` to ``related_table``.

    ``column`` is always on ``table`` and ``related_column`` always on
    ``related_table``.  Many-to-many relationships go through
    ``join_table``, where ``join_column`` references ``table.column`` and
    ``join_related_column`` references ``related_table.related_column``.
    """

    kind: RelationshipKind
    table: str
    column: str
    related_table: str
    related_column: str
    join_table: str | None = None
    join_column: str | None = None
    join_related_column: str | None = None

    @property
    def route(self) -> str:
        """Name that distinguishes this relationship from others between the same tables."""
        if self.kind is RelationshipKind.MANY_TO_MANY:
            return self.join_table
        if self.kind is RelationshipKind.ONE_TO_MANY:
            return self.related_column
        return self.column

    def to_dict(self) -> dict[str, Any]:
        data = {
            "kind": self.kind.value,
            "table": self.table,
            "column": self.column,
            "related_table": self.related_table,
            "related_column": self.related_column,
            "route": self.route,
        }
        if self.join_table is not None:
            data["join_table"] = self.join_table
            data["join_column"] = self.join_column
            data["join_related_column"] = self.join_related_column
        return data


def _empty_relationships() -> dict[str, list[RelationshipDescriptor]]:
    return {kind.value: [] for kind in RelationshipKind}


def _select_relationships(
    relationships: Mapping[str, list[RelationshipDescriptor]], kind: str | None
) -> dict[str, list[RelationshipDescriptor]] | list[RelationshipDescriptor]:
    if kind is None:
        return {k: list(v) for k, v in relationships.items()}
    if kind not in relationships:
        raise ProgrammerError(
            f"The relationship type specified, {kind}, is invalid. "
            f"Must be one of: {', '.join(k.value for k in RelationshipKind)}"
        )
    return list(relationships[kind])


# =============================================================================
# INTROSPECTORS
# =============================================================================


class StaticSchema:
    """
    Schema declared in code.

    Relationship helpers add both directions at once, so declaring
    ``posts.author_id → users.id`` also makes ``users`` one-to-many ``posts``.
    """

    def __init__(
        self,
        primary_keys: Mapping[str, Sequence[str]] | None = None,
        column_types: Mapping[str, Mapping[str, str]] | None = None,
    ):
        self._primary_keys: dict[str, list[str]] = {t: list(cols) for t, cols in (primary_keys or {}).items()}
        self._column_types = {t: dict(cols) for t, cols in (column_types or {}).items()}
        self._foreign_keys: dict[str, list[dict[str, str]]] = {}
        self._unique_keys: dict[str, list[list[str]]] = {}
        self._relationships: dict[str, dict[str, list[RelationshipDescriptor]]] = {}

    def add_table(self, table: str, primary_key: Sequence[str], column_types: Mapping[str, str] | None = None) -> None:
        self._primary_keys[table] = list(primary_key)
        if column_types:
            self._column_types[table] = dict(column_types)

    def add_unique_key(self, table: str, columns: Sequence[str]) -> None:
        self._unique_keys.setdefault(table, []).append(list(columns))

    def add_relationship(self, descriptor: RelationshipDescriptor) -> None:
        """Add a single descriptor without its inverse."""
        self._relationships.setdefault(descriptor.table, _empty_relationships())[descriptor.kind.value].append(
            descriptor
        )

    def add_foreign_key(
        self,
        table: str,
        column: str,
        related_table: str,
        related_column: str = "id",
        *,
        one_to_one: bool = False,
    ) -> None:
        """Declare ``table.column → related_table.related_column`` and its inverse."""
        self._foreign_keys.setdefault(table, []).append(
            {"column": column, "foreign_table": related_table, "foreign_column": related_column}
        )
        forward = RelationshipKind.ONE_TO_ONE if one_to_one else RelationshipKind.MANY_TO_ONE
        inverse = RelationshipKind.ONE_TO_ONE if one_to_one else RelationshipKind.ONE_TO_MANY
        self.add_relationship(RelationshipDescriptor(forward, table, column, related_table, related_column))
        self.add_relationship(RelationshipDescriptor(inverse, related_table, related_column, table, column))

    def add_many_to_many(
        self,
        table: str,
        related_table: str,
        join_table: str,
        join_column: str,
        join_related_column: str,
        *,
        column: str = "id",
        related_column: str = "id",
    ) -> None:
        """Declare a many-to-many relationship through ``join_table`` in both directions."""
        self.add_relationship(
            RelationshipDescriptor(
                RelationshipKind.MANY_TO_MANY,
                table,
                column,
                related_table,
                related_column,
                join_table,
                join_column,
                join_related_column,
            )
        )
        if related_table != table or join_column != join_related_column:
            self.add_relationship(
                RelationshipDescriptor(
                    RelationshipKind.MANY_TO_MANY,
                    related_table,
                    related_column,
                    table,
                    column,
                    join_table,
                    join_related_column,
                    join_column,
                )
            )

    def get_tables(self) -> list[str]:
        return sorted(self._primary_keys)

    def get_keys(self, table: str, kind: str = "primary") -> list[Any]:
        if table not in self._primary_keys:
            raise ProgrammerError(f"The table specified, {table}, does not exist in the schema")
        if kind == "primary":
            return list(self._primary_keys[table])
        if kind == "foreign":
            return [dict(fk) for fk in self._foreign_keys.get(table, [])]
        if kind == "unique":
            return [list(cols) for cols in self._unique_keys.get(table, [])]
        raise ProgrammerError(f"The key type specified, {kind}, is invalid. Must be one of: primary, foreign, unique")

    def get_relationships(self, table: str, kind: str | None = None) -> Any:
        return _select_relationships(self._relationships.get(table, _empty_relationships()), kind)

    def get_column_type(self, table: str, column: str) -> str | None:
        return self._column_types.get(table, {}).get(column)


class SQLAlchemySchema:
    """
    Schema read from a live database with ``sqlalchemy.inspect``.

    Single-column foreign keys become relationships:

    - a foreign-key column that is unique in its table is one-to-one
    - any other foreign-key column is many-to-one (one-to-many inversely)
    - a table whose primary key is exactly two foreign-key columns is a
      join table, giving many-to-many between the two referenced tables

    Composite foreign keys are not turned into relationships.
    """

    def __init__(self, engine: Any):
        from sqlalchemy import inspect

        self._inspector = inspect(engine)
        self._primary_keys: dict[str, list[str]] = {}
        self._relationships: dict[str, dict[str, list[RelationshipDescriptor]]] | None = None
        self._lock = threading.Lock()

    def get_tables(self) -> list[str]:
        return sorted(self._inspector.get_table_names())

    def get_keys(self, table: str, kind: str = "primary") -> list[Any]:
        if kind == "primary":
            if table not in self._primary_keys:
                if table not in self._inspector.get_table_names():
                    raise ProgrammerError(f"The table specified, {table}, does not exist in the schema")
                constraint = self._inspector.get_pk_constraint(table)
                self._primary_keys[table] = list(constraint.get("constrained_columns") or [])
            return list(self._primary_keys[table])
        if kind == "foreign":
            return [
                {
                    "column": fk["constrained_columns"][0],
                    "foreign_table": fk["referred_table"],
                    "foreign_column": fk["referred_columns"][0],
                }
                for fk in self._inspector.get_foreign_keys(table)
                if len(fk["constrained_columns"]) == 1
            ]
        if kind == "unique":
            return [list(uc["column_names"]) for uc in self._inspector.get_unique_constraints(table)]
        raise ProgrammerError(f"The key type specified, {kind}, is invalid. Must be one of: primary, foreign, unique")

    def get_relationships(self, table: str, kind: str | None = None) -> Any:
        with self._lock:
            if self._relationships is None:
                self._relationships = self._build_relationships()
        return _select_relationships(self._relationships.get(table, _empty_relationships()), kind)

    def get_column_type(self, table: str, column: str) -> str | None:
        for col in self._inspector.get_columns(table):
            if col["name"] == column:
                return str(col["type"]).lower()
        return None

    def _build_relationships(self) -> dict[str, dict[str, list[RelationshipDescriptor]]]:
        relationships: dict[str, dict[str, list[RelationshipDescriptor]]] = {}

        def add(descriptor: RelationshipDescriptor) -> None:
            relationships.setdefault(descriptor.table, _empty_relationships())[descriptor.kind.value].append(
                descriptor
            )

        for table in self.get_tables():
            foreign_keys = self.get_keys(table, "foreign")
            primary_key = self.get_keys(table, "primary")
            unique_columns = {cols[0] for cols in self.get_keys(table, "unique") if len(cols) == 1}
            if len(primary_key) == 1:
                unique_columns.add(primary_key[0])

            for fk in foreign_keys:
                column, related_table, related_column = fk["column"], fk["foreign_table"], fk["foreign_column"]
                if column in unique_columns:
                    add(RelationshipDescriptor(RelationshipKind.ONE_TO_ONE, table, column, related_table, related_column))
                    add(RelationshipDescriptor(RelationshipKind.ONE_TO_ONE, related_table, related_column, table, column))
                else:
                    add(RelationshipDescriptor(RelationshipKind.MANY_TO_ONE, table, column, related_table, related_column))
                    add(RelationshipDescriptor(RelationshipKind.ONE_TO_MANY, related_table, related_column, table, column))

            fk_columns = {fk["column"]: fk for fk in foreign_keys}
            if len(primary_key) == 2 and all(col in fk_columns for col in primary_key):
                first, second = (fk_columns[col] for col in primary_key)
                for near, far in ((first, second), (second, first)):
                    add(
                        RelationshipDescriptor(
                            RelationshipKind.MANY_TO_MANY,
                            near["foreign_table"],
                            near["foreign_column"],
                            far["foreign_table"],
                            far["foreign_column"],
                            table,
                            near["column"],
                            far["column"],
                        )
                    )

        logger.debug("schema_relationships_built", tables=len(relationships))
        return relationships


# =============================================================================
# REGISTRY
# =============================================================================


class SchemaRegistry:
    """
    Lazily-initialized handle to one :class:`SchemaIntrospector`.

    ``attach()`` installs an implementation; otherwise ``get_instance()``
    builds one from ``default_factory`` on first use and memoizes it.
    Attaching after that point is a programming error, as is attaching
    after ``freeze()``.
    """

    def __init__(self, default_factory: Callable[[], SchemaIntrospector] | None = None):
        self._default_factory = default_factory
        self._instance: SchemaIntrospector | None = None
        self._default_memoized = False
        self._frozen = False
        self._lock = threading.Lock()

    def attach(self, schema: SchemaIntrospector) -> None:
        with self._lock:
            if self._frozen:
                raise ProgrammerError("The schema registry is frozen; attach a schema during startup")
            if self._default_memoized:
                raise ProgrammerError(
                    "A schema can not be attached after the default schema has already been used"
                )
            self._instance = schema
        logger.debug("schema_attached", schema=type(schema).__name__)

    def get_instance(self) -> SchemaIntrospector:
        with self._lock:
            if self._instance is None:
                if self._default_factory is None:
                    raise ProgrammerError("No schema has been attached and no default schema is available")
                self._instance = self._default_factory()
                self._default_memoized = True
                logger.debug("schema_initialized", schema=type(self._instance).__name__)
            return self._instance

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    # ------------------------------------------------------------------
    # Shortcuts
    # ------------------------------------------------------------------

    def get_keys(self, table: str, kind: str = "primary") -> list[Any]:
        return self.get_instance().get_keys(table, kind)

    def get_relationships(self, table: str, kind: str | None = None) -> Any:
        return self.get_instance().get_relationships(table, kind)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def get_routes(
        self, table: str, related_table: str, kind: str | None = None
    ) -> dict[str, RelationshipDescriptor]:
        """
        Every relationship from ``table`` to ``related_table`` keyed by route.

        ``kind`` is ``None`` (all), ``"*-to-many"``, ``"*-to-one"`` or one
        of the four exact kind names.
        """
        kinds = _kinds_for_filter(kind)
        relationships = self.get_relationships(table)
        routes: dict[str, RelationshipDescriptor] = {}
        for kind_name in kinds:
            for descriptor in relationships[kind_name]:
                if descriptor.related_table == related_table:
                    routes[descriptor.route] = descriptor
        return routes

    def get_route_name(
        self, table: str, related_table: str, route: str | None = None, kind: str | None = None
    ) -> str:
        """
        Resolve the route between two tables.

        Raises:
            UnknownRouteError: The tables are not related, or ``route`` is not one of their routes.
            AmbiguousRouteError: More than one route exists and ``route`` was not given.
        """
        routes = self.get_routes(table, related_table, kind)

        if not routes:
            raise UnknownRouteError(
                f"The table {table} is not related to the table {related_table}"
            ).with_context(table=table, related_table=related_table)

        if route is not None:
            if route not in routes:
                raise UnknownRouteError(
                    f"The route specified, {route}, for the relationship between {table} and "
                    f"{related_table} does not exist. Must be one of: {', '.join(sorted(routes))}"
                ).with_context(table=table, related_table=related_table, route=route)
            return route

        if len(routes) > 1:
            raise AmbiguousRouteError(
                f"There is more than one route for {table} to {related_table}. "
                f"Please specify one of: {', '.join(sorted(routes))}",
                routes=sorted(routes),
            ).with_context(table=table, related_table=related_table)

        return next(iter(routes))

    def get_route(
        self, table: str, related_table: str, route: str | None = None, kind: str | None = None
    ) -> RelationshipDescriptor:
        name = self.get_route_name(table, related_table, route, kind)
        return self.get_routes(table, related_table, kind)[name]


def _kinds_for_filter(kind: str | None) -> Iterable[str]:
    if kind is None:
        return [k.value for k in RelationshipKind]
    if kind == TO_MANY:
        return [RelationshipKind.ONE_TO_MANY.value, RelationshipKind.MANY_TO_MANY.value]
    if kind == TO_ONE:
        return [RelationshipKind.ONE_TO_ONE.value, RelationshipKind.MANY_TO_ONE.value]
    if kind in {k.value for k in RelationshipKind}:
        return [kind]
    raise ProgrammerError(
        f"The relationship type specified, {kind}, is invalid. "
        f"Must be one of: {TO_MANY}, {TO_ONE}, {', '.join(k.value for k in RelationshipKind)}"
    )


__all__ = [
    "RelationshipKind",
    "RelationshipDescriptor",
    "TO_MANY",
    "TO_ONE",
    "StaticSchema",
    "SQLAlchemySchema",
    "SchemaRegistry",
]
