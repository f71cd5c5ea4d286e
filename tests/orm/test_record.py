"""Tests for ``relset.orm.record`` — loading records and their related data."""

from __future__ import annotations

import pytest

from relset.core.errors import (
    AmbiguousRouteError,
    NotFoundError,
    ProgrammerError,
    RecordClassError,
)
from relset.orm.collection import RecordCollection
from relset.orm.cursor import ResultCursor
from relset.orm.record import Record, record_class_for_table, resolve_record_class


class TestClassRegistration:
    def test_table_derived_from_class_name(self, models):
        assert models.Post.table == "posts"
        assert models.Enrollment.table == "enrollments"

    def test_explicit_table_is_kept(self):
        class Writer(Record):
            table = "users"

        assert Writer.table == "users"

    def test_resolve_by_name(self, models):
        assert resolve_record_class("Post") is models.Post
        assert resolve_record_class(models.Tag) is models.Tag

    @pytest.mark.parametrize("value", ["NoSuchRecord", Record, int, 42])
    def test_resolve_failures(self, value):
        with pytest.raises(RecordClassError):
            resolve_record_class(value)

    def test_record_class_for_registered_table(self, models):
        assert record_class_for_table("posts") is models.Post

    def test_record_class_for_unregistered_table(self):
        cls = record_class_for_table("post_tags")
        assert cls.__name__ == "PostTag"
        assert cls.table == "post_tags"
        assert issubclass(cls, Record)


class TestLoading:
    def test_load_by_primary_key(self, ctx, models):
        post = models.Post(1, context=ctx)
        assert post.exists is True
        assert post.get("title") == "Zebra notes"
        assert post.primary_key == 1

    def test_load_by_column_mapping(self, ctx, models):
        post = models.Post({"title": "apple pie"}, context=ctx)
        assert post.primary_key == 2

    def test_load_by_composite_key(self, ctx, models):
        enrollment = models.Enrollment((1, 20), context=ctx)
        assert enrollment.get("grade") == "B"
        assert enrollment.primary_key == (1, 20)
        assert repr(enrollment) == "Enrollment((1, 20))"

    def test_composite_key_width_must_match(self, ctx, models):
        with pytest.raises(ProgrammerError):
            models.Enrollment(1, context=ctx)

    def test_missing_record(self, ctx, models):
        with pytest.raises(NotFoundError) as exc_info:
            models.Post(99, context=ctx)
        assert exc_info.value.message == "The Post requested could not be found"
        assert exc_info.value.context.table == "posts"

    def test_from_positioned_cursor(self, ctx, models):
        cursor = ResultCursor.from_rows([{"id": 7, "name": "x"}, {"id": 8, "name": "y"}])
        cursor.seek(1)
        tag = models.Tag(cursor, context=ctx)
        assert tag.get("name") == "y"
        assert cursor.key() == 1

    def test_new_record(self, ctx, models):
        post = models.Post(context=ctx)
        assert post.exists is False
        post.set("title", "Draft")
        assert post.get("title") == "Draft"
        assert post.primary_key is None

    def test_values_are_a_copy(self, ctx, models):
        post = models.Post(1, context=ctx)
        post.values["title"] = "changed"
        assert post.get("title") == "Zebra notes"

    def test_unknown_column(self, ctx, models):
        with pytest.raises(ProgrammerError):
            models.Post(1, context=ctx).get("nope")

    def test_repr(self, ctx, models):
        assert repr(models.Post(1, context=ctx)) == "Post(1)"


class TestFindRelated:
    def test_many_to_many_keys_follow_order_rules(self, ctx, models):
        ctx.order_bys.set("posts", "tags", {"tags.name": "asc"})
        assert models.Post(1, context=ctx).find_related("tags") == [3, 1, 2]

    def test_one_to_many_keys(self, ctx, models):
        assert sorted(models.Post(1, context=ctx).find_related("comments")) == [1, 2]

    def test_no_related_rows(self, ctx, models):
        assert models.Post(4, context=ctx).find_related("tags") == []

    def test_ambiguous_plural_relation(self, ctx, models):
        with pytest.raises(AmbiguousRouteError) as exc_info:
            models.User(1, context=ctx).find_related("posts")
        assert exc_info.value.routes == ["author_id", "editor_id"]

    def test_named_route(self, ctx, models):
        user = models.User(1, context=ctx)
        assert sorted(user.find_related("posts", "author_id")) == [1, 2]
        assert user.find_related("posts", "editor_id") == [3]

    def test_unknown_plural_relation(self, ctx, models):
        with pytest.raises(ProgrammerError):
            models.Post(1, context=ctx).find_related("users")


class TestCountRelated:
    def test_count_many_to_many(self, ctx, models):
        assert models.Post(1, context=ctx).count_related("tags") == 3

    def test_count_one_to_many(self, ctx, models):
        assert models.Post(1, context=ctx).count_related("comments") == 2
        assert models.User(1, context=ctx).count_related("posts", "author_id") == 2

    def test_count_for_new_record(self, ctx, models):
        assert models.Post(context=ctx).count_related("tags") == 0


class TestBuildObject:
    def test_many_to_one(self, ctx, models):
        post = models.Comment(1, context=ctx).build_object("Post")
        assert isinstance(post, models.Post)
        assert post.primary_key == 1

    def test_route_required_when_ambiguous(self, ctx, models):
        with pytest.raises(AmbiguousRouteError):
            models.Post(1, context=ctx).build_object(models.User)

    def test_named_route(self, ctx, models):
        editor = models.Post(1, context=ctx).build_object("User", "editor_id")
        assert editor.get("name") == "bob"

    def test_null_foreign_key(self, ctx, models):
        assert models.Post(2, context=ctx).build_object("User", "editor_id") is None


class TestBuildRelated:
    def test_collection_is_cached(self, ctx, models, database):
        post = models.Post(1, context=ctx)
        database.reset_query_count()
        comments = post.build_related("comments")
        assert sorted(comments.get_primary_keys()) == [1, 2]
        assert post.build_related("comments") is comments
        assert database.query_count == 1

    def test_order_rules_apply(self, ctx, models):
        ctx.order_bys.set("posts", "tags", {"tags.name": "desc"})
        tags = models.Post(1, context=ctx).build_related("tags")
        assert [tag.get("name") for tag in tags] == ["sql", "python", "orm"]

    def test_ambiguous_route(self, ctx, models):
        with pytest.raises(AmbiguousRouteError):
            models.User(1, context=ctx).build_related("posts")

    def test_named_route(self, ctx, models):
        posts = models.User(2, context=ctx).build_related("posts", "author_id")
        assert [post.get("title") for post in posts] == ["Item 10"]

    def test_new_record_has_no_related(self, ctx, models):
        assert len(models.Post(context=ctx).build_related("tags")) == 0

    def test_build_collection_from_keys(self, ctx, models):
        ctx.order_bys.set("posts", "tags", {"tags.name": "asc"})
        post = models.Post(1, context=ctx)
        tags = ctx.related.build_collection(post, "tags")
        assert tags.record_class is models.Tag
        assert tags.get_primary_keys() == [3, 1, 2]


class TestAssociations:
    def test_assign_stages_without_writing(self, ctx, models, database):
        post = models.Post(4, context=ctx)
        post.assign_related("tags", [1, 4])
        assert post.find_related("tags") == [1, 4]
        assert database.query("SELECT count(*) FROM post_tags WHERE post_id = 4").fetch_scalar() == 0

    def test_staged_keys_stay_out_of_values(self, ctx, models):
        post = models.Post(4, context=ctx)
        post.assign_related("tags", [1, 4])
        assert "tags" not in post.values
        rows = RecordCollection.from_records([post], context=ctx).cursor.fetch_all_rows()
        assert "tags" not in rows[0]

    def test_store_replaces_join_rows(self, ctx, models):
        post = models.Post(1, context=ctx)
        post.assign_related("tags", [4])
        post.store_related()
        assert models.Post(1, context=ctx).find_related("tags") == [4]

    def test_store_without_staged_values_is_a_no_op(self, ctx, models, database):
        post = models.Post(1, context=ctx)
        database.reset_query_count()
        ctx.related.store_associations("posts", post.values, "tags")
        assert database.query_count == 0

    def test_assign_requires_many_to_many(self, ctx, models):
        with pytest.raises(ProgrammerError):
            models.Post(1, context=ctx).assign_related("comments", [3])

    def test_store_for_new_record(self, ctx, models):
        post = models.Post(context=ctx)
        post.assign_related("tags", [1])
        with pytest.raises(ProgrammerError):
            post.store_related()

    def test_associate_related(self, ctx, models):
        post = models.Post(2, context=ctx)
        tags = post.associate_related("tags", [3, None, 1])
        assert isinstance(tags, RecordCollection)
        assert tags.is_flagged_for_association()
        assert tags.get_primary_keys() == [3, 1]
        assert post.build_related("tags") is tags

        post.store_related()
        assert sorted(models.Post(2, context=ctx).find_related("tags")) == [1, 3]

    def test_associate_requires_many_to_many(self, ctx, models):
        with pytest.raises(ProgrammerError):
            models.Post(1, context=ctx).associate_related("comments", [1])
