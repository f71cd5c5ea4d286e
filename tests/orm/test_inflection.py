"""Tests for ``relset.orm.inflection``."""

import pytest

from relset.core.errors import ProgrammerError
from relset.orm.inflection import (
    camelize,
    classize,
    humanize,
    pluralize,
    singularize,
    tablize,
    underscorize,
)


class TestPluralize:
    @pytest.mark.parametrize(
        "singular,plural",
        [
            ("tag", "tags"),
            ("category", "categories"),
            ("day", "days"),
            ("person", "people"),
            ("woman", "women"),
            ("child", "children"),
            ("box", "boxes"),
            ("status", "statuses"),
            ("match", "matches"),
            ("leaf", "leaves"),
            ("wife", "wives"),
            ("photo", "photos"),
            ("potato", "potatoes"),
            ("mouse", "mice"),
            ("news", "news"),
            ("post_tag", "post_tags"),
            ("PostTag", "PostTags"),
        ],
    )
    def test_pluralize(self, singular, plural):
        assert pluralize(singular) == plural


class TestSingularize:
    @pytest.mark.parametrize(
        "plural,singular",
        [
            ("tags", "tag"),
            ("categories", "category"),
            ("days", "day"),
            ("people", "person"),
            ("children", "child"),
            ("boxes", "box"),
            ("statuses", "status"),
            ("matches", "match"),
            ("wolves", "wolf"),
            ("knives", "knife"),
            ("heroes", "hero"),
            ("mice", "mouse"),
            ("post_tags", "post_tag"),
            ("PostTags", "PostTag"),
        ],
    )
    def test_singularize(self, plural, singular):
        assert singularize(plural) == singular

    def test_word_without_plural_form(self):
        with pytest.raises(ProgrammerError):
            singularize("data")


class TestCase:
    def test_underscorize(self):
        assert underscorize("PostTag") == "post_tag"
        assert underscorize("post_tag") == "post_tag"
        assert underscorize("Post Tag") == "post_tag"
        assert underscorize("Post2") == "post_2"

    def test_camelize(self):
        assert camelize("post_tag") == "PostTag"
        assert camelize("post_tag", upper=False) == "postTag"
        assert camelize("post") == "Post"
        assert camelize("post tag") == "PostTag"

    def test_humanize(self):
        assert humanize("post_tags") == "Post Tags"
        assert humanize("PostTag") == "Post Tag"
        assert humanize("Post") == "Post"
        assert humanize("already spaced") == "already spaced"


class TestTableNames:
    @pytest.mark.parametrize(
        "table,class_name",
        [("posts", "Post"), ("post_tags", "PostTag"), ("categories", "Category"), ("people", "Person")],
    )
    def test_classize(self, table, class_name):
        assert classize(table) == class_name

    @pytest.mark.parametrize(
        "class_name,table",
        [("Post", "posts"), ("PostTag", "post_tags"), ("Category", "categories"), ("Person", "people")],
    )
    def test_tablize(self, class_name, table):
        assert tablize(class_name) == table
