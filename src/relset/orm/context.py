"""
ORMContext: the explicit configuration object for one application.

Manifesto:
    Relationship ordering rules and the schema handle are read on every
    request but written only at startup.  Instead of process-wide statics,
    they live on one object that is built once and passed to every
    collection, record and builder.  ``freeze()`` turns any later write into
    a ``ProgrammerError``, so a worker process can share the context across
    threads safely.

Architecture:
    ::

        RelsetSettings ──► ORMContext.from_settings()
                                │
                                ├── database       Database (adapter + dialect)
                                ├── schema         SchemaRegistry
                                ├── order_bys      OrderByRegistry
                                ├── related        RelationshipQueryBuilder
                                └── legacy_desc_sort

Examples:
    >>> ctx = ORMContext.from_url("sqlite:///blog.db")
    >>> ctx.order_bys.set("posts", "tags", {"tags.name": "asc"})
    >>> ctx.freeze()

Tags:
    configuration, context, dependency-injection, registry, relset
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

from relset.core.errors import ProgrammerError
from relset.core.logging import get_logger
from relset.core.settings import RelsetSettings
from relset.orm.database import Database
from relset.orm.schema import SchemaRegistry, SQLAlchemySchema

logger = get_logger(__name__)


class OrderByRegistry:
    """
    Ordering rules for related records.

    Keyed by ``(table, plural_relation, route)``; a rule registered without
    a route applies to every route.
    """

    def __init__(self):
        self._rules: dict[tuple[str, str, str | None], dict[str, str]] = {}
        self._frozen = False
        self._lock = threading.Lock()

    def set(
        self,
        table: str,
        plural_relation: str,
        rules: Mapping[str, str],
        route: str | None = None,
    ) -> None:
        with self._lock:
            if self._frozen:
                raise ProgrammerError("Order by rules can not be changed after the context is frozen")
            self._rules[(table, plural_relation, route)] = dict(rules)

    def get(self, table: str, plural_relation: str, route: str | None = None) -> dict[str, str]:
        """Rules for the exact route, else the route-less rules, else ``{}``."""
        rules = self._rules.get((table, plural_relation, route))
        if rules is None and route is not None:
            rules = self._rules.get((table, plural_relation, None))
        return dict(rules or {})

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True


class ORMContext:
    """Database, schema, ordering rules and behavior flags for the ORM."""

    def __init__(
        self,
        database: Database,
        *,
        schema: SchemaRegistry | None = None,
        order_bys: OrderByRegistry | None = None,
        legacy_desc_sort: bool = False,
    ):
        self.database = database
        self.schema = schema or SchemaRegistry(default_factory=self._default_schema)
        self.order_bys = order_bys or OrderByRegistry()
        self.legacy_desc_sort = legacy_desc_sort
        self._related: Any = None
        self._frozen = False

    @classmethod
    def from_settings(cls, settings: RelsetSettings) -> ORMContext:
        database = Database.from_url(settings.database_url, query_timeout=settings.query_timeout)
        return cls(database, legacy_desc_sort=settings.legacy_desc_sort)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> ORMContext:
        return cls(Database.from_url(url), **kwargs)

    @property
    def related(self):
        """The :class:`~relset.orm.related.RelationshipQueryBuilder` bound to this context."""
        if self._related is None:
            from relset.orm.related import RelationshipQueryBuilder

            self._related = RelationshipQueryBuilder(self)
        return self._related

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject any further configuration changes."""
        self.schema.freeze()
        self.order_bys.freeze()
        self._frozen = True
        logger.debug("orm_context_frozen")

    def _default_schema(self) -> SQLAlchemySchema:
        from sqlalchemy import create_engine
        from sqlalchemy.pool import StaticPool

        adapter = self.database.adapter
        engine = create_engine(
            adapter.to_sqlalchemy_url(),
            creator=adapter.get_connection,
            poolclass=StaticPool,
            pool_reset_on_return=None,
        )
        return SQLAlchemySchema(engine)


__all__ = ["ORMContext", "OrderByRegistry"]
