"""relset.orm -- records, collections and relationship queries.

Architecture::

    database.py     Database: executes SQL through an adapter, returns ResultCursors
    cursor.py       ResultCursor + driver row transforms
    schema.py       RelationshipDescriptor, StaticSchema, SQLAlchemySchema, SchemaRegistry
    sql.py          Clause parsing and WHERE / ORDER BY / FROM builders
    inflection.py   Plural/singular and table/class name helpers
    record.py       Record base class
    collection.py   RecordCollection + Sort / Preload operations
    related.py      RelationshipQueryBuilder
    context.py      ORMContext, OrderByRegistry

Tags:
    relset, orm, active-record, relationships
"""

from relset.orm.collection import Operation, Preload, RecordCollection, Sort, apply
from relset.orm.context import OrderByRegistry, ORMContext
from relset.orm.cursor import (
    ResultCursor,
    RowTransform,
    dblib_row_fixup,
    get_row_transform,
    register_row_transform,
)
from relset.orm.database import Database
from relset.orm.record import Record, record_class_for_table, resolve_record_class
from relset.orm.related import RelationshipQueryBuilder
from relset.orm.schema import (
    TO_MANY,
    TO_ONE,
    RelationshipDescriptor,
    RelationshipKind,
    SchemaRegistry,
    SQLAlchemySchema,
    StaticSchema,
)

__all__ = [
    # Execution
    "Database",
    "ResultCursor",
    "RowTransform",
    "register_row_transform",
    "get_row_transform",
    "dblib_row_fixup",
    # Schema
    "RelationshipKind",
    "RelationshipDescriptor",
    "TO_MANY",
    "TO_ONE",
    "StaticSchema",
    "SQLAlchemySchema",
    "SchemaRegistry",
    # Records
    "Record",
    "resolve_record_class",
    "record_class_for_table",
    "RecordCollection",
    "Sort",
    "Preload",
    "Operation",
    "apply",
    "RelationshipQueryBuilder",
    # Configuration
    "ORMContext",
    "OrderByRegistry",
]
