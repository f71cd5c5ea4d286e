"""
Shared pytest fixtures for relset tests.

This module provides:
- An in-memory SQLite blog database (users, posts, tags, post_tags,
  comments, enrollments) with committed data
- A declared ``StaticSchema`` for the same tables
- An ``ORMContext`` wired to both
- The blog ``Record`` classes

Data:
    users        1 Ann, 2 bob, 3 Cy
    posts        1 "Zebra notes" (live, author 1, editor 2)
                 2 "apple pie"   (live, author 1)
                 3 "Item 10"     (draft, author 2, editor 1)
                 4 "item 9"      (live, author 3)
    tags         1 python, 2 sql, 3 orm, 4 unused
    post_tags    post 1: 1, 2, 3   post 2: 2   post 3: 1   post 4: none
    comments     post 1: "first", "second"   post 2: "third"
    enrollments  (1, 10) A, (1, 20) B, (2, 10) C
"""

from types import SimpleNamespace

import pytest
import structlog

from relset.core.adapters import SQLiteAdapter
from relset.orm import Database, ORMContext, Record, SchemaRegistry, StaticSchema


# =============================================================================
# Record classes
# =============================================================================


class User(Record):
    pass


class Post(Record):
    def headline(self):
        return self.get("title").upper()


class Tag(Record):
    pass


class Comment(Record):
    pass


class Enrollment(Record):
    pass


# =============================================================================
# Database
# =============================================================================


BLOG_DDL = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL)",
    "CREATE TABLE posts ("
    " id INTEGER PRIMARY KEY,"
    " title TEXT NOT NULL,"
    " status TEXT,"
    " author_id INTEGER REFERENCES users(id),"
    " editor_id INTEGER REFERENCES users(id))",
    "CREATE TABLE tags (id INTEGER PRIMARY KEY, name TEXT NOT NULL)",
    "CREATE TABLE post_tags ("
    " post_id INTEGER NOT NULL REFERENCES posts(id),"
    " tag_id INTEGER NOT NULL REFERENCES tags(id),"
    " PRIMARY KEY (post_id, tag_id))",
    "CREATE TABLE comments (id INTEGER PRIMARY KEY, post_id INTEGER REFERENCES posts(id), body TEXT)",
    "CREATE TABLE enrollments ("
    " student_id INTEGER NOT NULL,"
    " course_id INTEGER NOT NULL,"
    " grade TEXT,"
    " PRIMARY KEY (student_id, course_id))",
]

BLOG_ROWS = {
    "users": [(1, "Ann"), (2, "bob"), (3, "Cy")],
    "posts": [
        (1, "Zebra notes", "live", 1, 2),
        (2, "apple pie", "live", 1, None),
        (3, "Item 10", "draft", 2, 1),
        (4, "item 9", "live", 3, None),
    ],
    "tags": [(1, "python"), (2, "sql"), (3, "orm"), (4, "unused")],
    "post_tags": [(1, 1), (1, 2), (1, 3), (2, 2), (3, 1)],
    "comments": [(1, 1, "first"), (2, 1, "second"), (3, 2, "third")],
    "enrollments": [(1, 10, "A"), (1, 20, "B"), (2, 10, "C")],
}


def load_blog(database: Database) -> None:
    """Create the blog tables and rows, then commit."""
    for statement in BLOG_DDL:
        database.query(statement)
    for table, rows in BLOG_ROWS.items():
        placeholders = ", ".join("?" for _ in rows[0])
        for row in rows:
            database.query(f"INSERT INTO {table} VALUES ({placeholders})", row)
    database.commit()


def build_blog_schema() -> StaticSchema:
    schema = StaticSchema(
        {
            "users": ["id"],
            "posts": ["id"],
            "tags": ["id"],
            "post_tags": ["post_id", "tag_id"],
            "comments": ["id"],
            "enrollments": ["student_id", "course_id"],
        },
        column_types={
            "users": {"id": "integer", "name": "text"},
            "posts": {"id": "integer", "title": "text", "status": "text"},
            "tags": {"id": "integer", "name": "text"},
            "comments": {"id": "integer", "body": "text"},
        },
    )
    schema.add_foreign_key("posts", "author_id", "users")
    schema.add_foreign_key("posts", "editor_id", "users")
    schema.add_many_to_many("posts", "tags", "post_tags", "post_id", "tag_id")
    schema.add_foreign_key("comments", "post_id", "posts")
    return schema


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any structlog configuration made by a test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def models() -> SimpleNamespace:
    return SimpleNamespace(User=User, Post=Post, Tag=Tag, Comment=Comment, Enrollment=Enrollment)


@pytest.fixture
def database():
    db = Database(SQLiteAdapter())
    load_blog(db)
    db.reset_query_count()
    yield db
    db.close()


@pytest.fixture
def schema() -> StaticSchema:
    return build_blog_schema()


@pytest.fixture
def ctx(database, schema) -> ORMContext:
    registry = SchemaRegistry()
    registry.attach(schema)
    return ORMContext(database, schema=registry)


@pytest.fixture
def legacy_ctx(database, schema) -> ORMContext:
    registry = SchemaRegistry()
    registry.attach(schema)
    return ORMContext(database, schema=registry, legacy_desc_sort=True)


@pytest.fixture
def blog_db_url(tmp_path) -> str:
    """URL of a file-backed copy of the blog database."""
    path = tmp_path / "blog.db"
    db = Database(SQLiteAdapter(str(path)))
    load_blog(db)
    db.close()
    return f"sqlite:///{path}"
