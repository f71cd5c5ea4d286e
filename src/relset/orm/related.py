"""
RelationshipQueryBuilder: named relationships to SQL and back.

Manifesto:
    Application code talks about relationships by name: ``post.find_related
    ("tags")``, ``post.build_object("User")``.  This module resolves those
    names against the schema's relationship descriptors, generates the SQL,
    and hands back condensed primary keys, single records or collections.
    When two tables are connected more than once, the caller must name the
    route; guessing is never attempted.

Architecture:
    ::

        plural relation ──► _plural_relationship()  one-to-many or many-to-many
        related class   ──► SchemaRegistry.get_route(kind="*-to-one")
                                   │
                                   ▼
                           RelationshipDescriptor
                                   │
                ┌──────────────────┼───────────────────┐
                ▼                  ▼                   ▼
        retrieve_values     build_object        preload_rows
        (pk list)           (one Record)        (one query for a whole collection)

    Relationship lookups only follow single-column foreign keys.  Collections
    built directly from primary keys support composite keys; see
    :meth:`RecordCollection.from_primary_keys`.

Examples:
    >>> builder = ctx.related
    >>> builder.set_order_bys("posts", "tags", {"tags.name": "asc"})
    >>> builder.retrieve_values("posts", {"id": 1}, "tags")
    [3, 1]
    >>> builder.build_object("posts", {"author_id": 7}, "User", route="author_id")
    User(7)

Tags:
    relationships, routes, sql-generation, preload, many-to-many, relset
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping, Sequence
from typing import TYPE_CHECKING, Any

from relset.core.errors import AmbiguousRouteError, ProgrammerError, UnknownRouteError
from relset.core.logging import get_logger
from relset.orm.inflection import singularize
from relset.orm.schema import TO_MANY, TO_ONE, RelationshipDescriptor, RelationshipKind
from relset.orm.sql import (
    condense_primary_keys,
    order_by_clause,
    parse_select,
    primary_key_condition,
    split_params,
)

if TYPE_CHECKING:
    from relset.orm.collection import RecordCollection
    from relset.orm.context import ORMContext
    from relset.orm.record import Record

logger = get_logger(__name__)

PRELOAD_PARENT_KEY = "relset_parent_key"
"""Column carrying each preloaded row's parent key; removed before rows reach records."""

RELATED_ALIAS = "relset_related"
JOIN_ALIAS = "relset_join"


class RelationshipQueryBuilder:
    """Relationship resolution and SQL generation for one :class:`ORMContext`."""

    def __init__(self, context: ORMContext):
        self._context = context

    @property
    def _schema(self):
        return self._context.schema

    @property
    def _database(self):
        return self._context.database

    # =========================================================================
    # ORDERING
    # =========================================================================

    def set_order_bys(
        self,
        table: str,
        plural_relation: str,
        rules: Mapping[str, str],
        route: str | None = None,
    ) -> None:
        """Order related records, e.g. ``set_order_bys("posts", "tags", {"tags.name": "asc"})``."""
        self._context.order_bys.set(table, plural_relation, rules, route)

    def get_order_bys(self, table: str, plural_relation: str, route: str | None = None) -> dict[str, str]:
        return self._context.order_bys.get(table, plural_relation, route)

    def _order_sql(self, table: str, plural_relation: str, route: str, related_table: str) -> str:
        rules = self.get_order_bys(table, plural_relation, route)
        if not rules:
            return ""
        return order_by_clause(related_table, rules, self._schema, self._database.dialect)

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def _plural_relationship(
        self,
        table: str,
        plural_relation: str,
        route: str | None = None,
        kinds: Sequence[RelationshipKind] = (RelationshipKind.ONE_TO_MANY, RelationshipKind.MANY_TO_MANY),
    ) -> RelationshipDescriptor:
        """
        The to-many relationship that ``plural_relation`` names.

        A descriptor matches when ``plural_relation`` is its related table, or
        when the singular of ``plural_relation`` is the related table's
        single primary-key column.  Without ``route``, more than one match of
        any kind is ambiguous.
        """
        singular = singularize(plural_relation)
        candidates: list[RelationshipDescriptor] = []
        for kind in kinds:
            for rel in self._schema.get_relationships(table, kind.value):
                related_pk = self._schema.get_keys(rel.related_table, "primary")
                if plural_relation == rel.related_table or related_pk == [singular]:
                    candidates.append(rel)

        if route is not None:
            for rel in candidates:
                if rel.route == route:
                    return rel
            if candidates:
                raise UnknownRouteError(
                    f"The route specified, {route}, for the relationship between {table} and "
                    f"{plural_relation} does not exist. "
                    f"Must be one of: {', '.join(sorted(rel.route for rel in candidates))}"
                ).with_context(table=table, related_table=plural_relation, route=route)
        elif len(candidates) > 1:
            routes = sorted(rel.route for rel in candidates)
            raise AmbiguousRouteError(
                f"There is more than one route for {table} to {plural_relation}. "
                f"Please specify one of: {', '.join(routes)}",
                routes=routes,
            ).with_context(table=table, related_table=plural_relation)
        elif candidates:
            return candidates[0]

        kind_names = " or ".join(kind.value for kind in kinds)
        raise ProgrammerError(
            f"The plural relation specified, {plural_relation}, does not correspond to a "
            f"{kind_names} relationship of {table}"
        ).with_context(table=table, related_table=plural_relation)

    @staticmethod
    def _related_key_sql(rel: RelationshipDescriptor, select: str, placeholder: str) -> str:
        """``SELECT <select>`` of related rows for one value of ``rel.column``."""
        related = rel.related_table
        if rel.kind is RelationshipKind.MANY_TO_MANY:
            return (
                f"SELECT {select} FROM {related}"
                f" INNER JOIN {rel.join_table} ON {rel.join_table}.{rel.join_related_column}"
                f" = {related}.{rel.related_column}"
                f" WHERE {rel.join_table}.{rel.join_column} = {placeholder}"
            )
        return f"SELECT {select} FROM {related} WHERE {related}.{rel.related_column} = {placeholder}"

    # =========================================================================
    # VALUES
    # =========================================================================

    def retrieve_values(
        self,
        table: str,
        values: Mapping[str, Any],
        plural_relation: str,
        route: str | None = None,
        staged: Mapping[str, Sequence[Any]] | None = None,
    ) -> list[Any]:
        """
        Primary keys of the records related through ``plural_relation``.

        Keys in ``staged`` (filled by :meth:`assign_values`) are returned
        as-is.  Single-column keys come back as scalars, composite keys as
        tuples.
        """
        rel = self._plural_relationship(table, plural_relation, route)

        if rel.kind is RelationshipKind.MANY_TO_MANY and staged and plural_relation in staged:
            return list(staged[plural_relation])

        value = values.get(rel.column)
        if value is None:
            return []

        related_pk = self._schema.get_keys(rel.related_table, "primary")
        select = ", ".join(f"{rel.related_table}.{column}" for column in related_pk)
        sql = self._related_key_sql(rel, select, self._database.dialect.placeholder(0))
        order_sql = self._order_sql(table, plural_relation, rel.route, rel.related_table)
        if order_sql:
            sql += f" ORDER BY {order_sql}"

        cursor = self._database.query(sql, [value])
        return condense_primary_keys(cursor.fetch_all_rows())

    def _many_to_many(self, table: str, plural_relation: str, route: str | None) -> RelationshipDescriptor:
        rel = self._plural_relationship(table, plural_relation, route)
        if rel.kind is not RelationshipKind.MANY_TO_MANY:
            raise ProgrammerError(
                f"The plural relation specified, {plural_relation}, does not correspond to a "
                f"many-to-many relationship of {table}"
            ).with_context(table=table, related_table=rel.related_table, route=rel.route)
        return rel

    def assign_values(
        self,
        table: str,
        staged: MutableMapping[str, list[Any]],
        plural_relation: str,
        new_values: Sequence[Any],
        route: str | None = None,
    ) -> None:
        """Stage the related primary keys of a many-to-many relationship in ``staged``."""
        self._many_to_many(table, plural_relation, route)
        staged[plural_relation] = list(new_values)

    def store_associations(
        self,
        table: str,
        values: Mapping[str, Any],
        plural_relation: str,
        route: str | None = None,
        staged: Mapping[str, Sequence[Any]] | None = None,
    ) -> None:
        """Replace the join-table rows for this record with the staged keys."""
        rel = self._many_to_many(table, plural_relation, route)
        if not staged or plural_relation not in staged:
            return

        own_value = values.get(rel.column)
        if own_value is None:
            raise ProgrammerError(
                f"Associations can not be stored for a {table} record without a value for {rel.column}"
            ).with_context(table=table, related_table=rel.related_table, route=rel.route)

        dialect = self._database.dialect
        delete_sql = f"DELETE FROM {rel.join_table} WHERE {rel.join_column} = {dialect.placeholder(0)}"
        insert_sql = (
            f"INSERT INTO {rel.join_table} ({rel.join_column}, {rel.join_related_column})"
            f" VALUES ({dialect.placeholders(2)})"
        )
        related_values = list(staged[plural_relation])
        with self._database.transaction() as database:
            database.query(delete_sql, [own_value])
            for related_value in related_values:
                database.query(insert_sql, [own_value, related_value])
        logger.debug(
            "associations_stored",
            table=table,
            join_table=rel.join_table,
            count=len(related_values),
        )

    def count_related(
        self,
        table: str,
        values: Mapping[str, Any],
        related_table: str,
        route: str | None = None,
    ) -> int:
        rel = self._schema.get_route(table, related_table, route, TO_MANY)
        value = values.get(rel.column)
        if value is None:
            return 0

        placeholder = self._database.dialect.placeholder(0)
        if rel.kind is RelationshipKind.MANY_TO_MANY:
            sql = f"SELECT count(*) FROM {rel.join_table} WHERE {rel.join_table}.{rel.join_column} = {placeholder}"
        else:
            sql = f"SELECT count(*) FROM {related_table} WHERE {related_table}.{rel.related_column} = {placeholder}"
        return int(self._database.query(sql, [value]).fetch_scalar())

    # =========================================================================
    # RECORDS
    # =========================================================================

    def build_object(
        self,
        table: str,
        values: Mapping[str, Any],
        related_class: type[Record] | str,
        route: str | None = None,
    ) -> Record | None:
        """
        The record that ``values`` references through a one-to-one or
        many-to-one relationship; ``None`` when the foreign key is NULL.

        Raises:
            UnknownRouteError: No such relationship exists.
            AmbiguousRouteError: Several exist and ``route`` was not given.
            NotFoundError: The referenced row does not exist.
        """
        from relset.orm.record import resolve_record_class

        cls = resolve_record_class(related_class)
        rel = self._schema.get_route(table, cls.table, route, TO_ONE)
        value = values.get(rel.column)
        if value is None:
            return None
        return cls({rel.related_column: value}, context=self._context)

    def build_collection(self, record: Record, plural_relation: str, route: str | None = None) -> RecordCollection:
        """Related records, built from the keys ``record.find_related()`` returns."""
        from relset.orm.collection import RecordCollection
        from relset.orm.record import record_class_for_table

        rel = self._plural_relationship(record.table, plural_relation, route)
        keys = record.find_related(plural_relation, rel.route)
        return RecordCollection.from_primary_keys(
            record_class_for_table(rel.related_table), keys, context=self._context
        )

    def query_related(self, record: Record, related_table: str, route: str | None = None) -> RecordCollection:
        """Related records of ``record`` with one query."""
        from relset.orm.collection import RecordCollection
        from relset.orm.record import record_class_for_table

        rel = self._schema.get_route(record.table, related_table, route, TO_MANY)
        cls = record_class_for_table(related_table)
        value = record.values.get(rel.column)
        if value is None:
            return RecordCollection.empty(cls, context=self._context)

        sql = self._related_key_sql(rel, f"{related_table}.*", self._database.dialect.placeholder(0))
        order_sql = self._order_sql(record.table, related_table, rel.route, related_table)
        if order_sql:
            sql += f" ORDER BY {order_sql}"
        return RecordCollection(cls, self._database.query(sql, [value]), context=self._context)

    # =========================================================================
    # PRELOADING
    # =========================================================================

    def resolve_preload(self, table: str, sql: str, related_table: str, route: str | None = None) -> RelationshipDescriptor:
        """
        The relationship a collection built by ``sql`` can preload.

        Raises:
            ProgrammerError: ``sql`` groups rows, is not a SELECT, or the route is ambiguous.
        """
        clauses = parse_select(sql)
        if clauses["GROUP BY"]:
            raise ProgrammerError(
                "Preloading related data is not possible for queries that contain a GROUP BY clause"
            ).with_context(table=table, related_table=related_table, sql=sql)
        if not clauses["FROM"]:
            raise ProgrammerError(
                "Preloading related data requires a collection built from a SELECT query"
            ).with_context(table=table, related_table=related_table, sql=sql)
        return self._schema.get_route(table, related_table, route, TO_MANY)

    def preload_rows(
        self,
        table: str,
        rel: RelationshipDescriptor,
        sql: str,
        params: Sequence[Any],
        primary_keys: Sequence[Any] | None = None,
    ) -> tuple[dict[Any, list[dict[str, Any]]], str]:
        """
        Fetch the related rows of every parent selected by ``sql`` at once.

        The parent query's FROM and WHERE are reused; ``primary_keys`` narrows
        the rows when the parent query was limited.  Returns the related
        rows grouped by the parent's ``rel.column`` value, and the SQL run.
        """
        database = self._database
        dialect = database.dialect
        clauses = parse_select(sql)
        numbered = dialect.placeholder(0) != dialect.placeholder(1)

        from_sql = clauses["FROM"]
        if rel.kind is RelationshipKind.MANY_TO_MANY:
            from_sql += (
                f" INNER JOIN {rel.join_table} {JOIN_ALIAS} ON {table}.{rel.column} = {JOIN_ALIAS}.{rel.join_column}"
                f" INNER JOIN {rel.related_table} {RELATED_ALIAS}"
                f" ON {JOIN_ALIAS}.{rel.join_related_column} = {RELATED_ALIAS}.{rel.related_column}"
            )
        else:
            from_sql += (
                f" INNER JOIN {rel.related_table} {RELATED_ALIAS}"
                f" ON {table}.{rel.column} = {RELATED_ALIAS}.{rel.related_column}"
            )

        conditions = [f"({clauses['WHERE']})"] if clauses["WHERE"] else []
        key_params: list[Any] = []
        if primary_keys is not None:
            key_sql, key_params = primary_key_condition(
                table,
                self._schema.get_keys(table, "primary"),
                primary_keys,
                dialect,
                start=len(params) if numbered else 0,
            )
            conditions.append(key_sql)

        order_parts = [clauses["ORDER BY"]] if clauses["ORDER BY"] else []
        related_order = self._order_sql(table, rel.related_table, rel.route, rel.related_table)
        if related_order:
            order_parts.append(re.sub(rf"\b{re.escape(rel.related_table)}\.", f"{RELATED_ALIAS}.", related_order))

        preload_sql = f"SELECT {RELATED_ALIAS}.*, {table}.{rel.column} AS {PRELOAD_PARENT_KEY} FROM {from_sql}"
        if conditions:
            preload_sql += " WHERE " + " AND ".join(conditions)
        if order_parts:
            preload_sql += " ORDER BY " + ", ".join(order_parts)

        if numbered:
            preload_params = [*params, *key_params]
        else:
            split = split_params(sql, params)
            preload_params = [*split["FROM"], *split["WHERE"], *key_params, *split["ORDER BY"]]

        logger.debug(
            "preload_issued",
            table=table,
            related_table=rel.related_table,
            route=rel.route,
            limited=primary_keys is not None,
        )
        cursor = database.query(preload_sql, preload_params)

        related_pk = self._schema.get_keys(rel.related_table, "primary")
        groups: dict[Any, list[dict[str, Any]]] = {}
        seen: set[tuple[Any, ...]] = set()
        for row in cursor:
            parent_key = row.pop(PRELOAD_PARENT_KEY)
            identity = (parent_key, *(row.get(column) for column in related_pk or row))
            if identity in seen:
                continue
            seen.add(identity)
            groups.setdefault(parent_key, []).append(row)
        return groups, preload_sql


__all__ = [
    "RelationshipQueryBuilder",
    "PRELOAD_PARENT_KEY",
]
