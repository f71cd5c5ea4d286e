"""English inflection for table, class and relationship names.

Relationships are addressed by plural names (``post.find_related("tags")``)
and record classes are derived from table names (``post_tags`` →
``PostTag``), so the ORM needs a small, predictable set of rules.  The
rules are ordered; the first match wins.
"""

from __future__ import annotations

import re

from relset.core.errors import ProgrammerError

_PLURAL_TO_SINGULAR: list[tuple[str, str]] = [
    (r"([ml])ice$", r"\1ouse"),
    (r"(media|info(rmation)?|news)$", r"\1"),
    (r"quizzes$", "quiz"),
    (r"children$", "child"),
    (r"people$", "person"),
    (r"men$", "man"),
    (r"((?!sh).)oes$", r"\1o"),
    (r"((?<!o)[ieu]s|[ieuo]x)es$", r"\1"),
    (r"([cs]h)es$", r"\1"),
    (r"(ss)es$", r"\1"),
    (r"([aeo]l)ves$", r"\1f"),
    (r"([^d]ea)ves$", r"\1f"),
    (r"(ar)ves$", r"\1f"),
    (r"([nlw]i)ves$", r"\1fe"),
    (r"([aeiou]y)s$", r"\1"),
    (r"([^aeiou])ies$", r"\1y"),
    (r"(la)ses$", r"\1s"),
    (r"(.)s$", r"\1"),
]

_SINGULAR_TO_PLURAL: list[tuple[str, str]] = [
    (r"([ml])ouse$", r"\1ice"),
    (r"(media|info(rmation)?|news)$", r"\1"),
    (r"(phot|log)o$", r"\1os"),
    (r"^(q)uiz$", r"\1uizzes"),
    (r"child$", "children"),
    (r"person$", "people"),
    (r"man$", "men"),
    (r"([ieu]s|[ieuo]x)$", r"\1es"),
    (r"([cs]h)$", r"\1es"),
    (r"(ss)$", r"\1es"),
    (r"([aeo]l)f$", r"\1ves"),
    (r"([^d]ea)f$", r"\1ves"),
    (r"(ar)f$", r"\1ves"),
    (r"([nlw]i)fe$", r"\1ves"),
    (r"([aeiou]y)$", r"\1s"),
    (r"([^aeiou])y$", r"\1ies"),
    (r"([^o])o$", r"\1oes"),
    (r"s$", "ses"),
    (r"(.)$", r"\1s"),
]

_CAMEL_WORD = re.compile(r"(.*?)((?:[0-9]+|[A-Z][a-z]*))$")


def _split_last_word(name: str) -> tuple[str, str]:
    """Split off the last word of a spaced, underscored or CamelCase name."""
    if " " in name:
        head, _, last = name.rpartition(" ")
        return head + " ", last
    if name == underscorize(name):
        if "_" not in name:
            return "", name
        head, _, last = name.rpartition("_")
        return head + "_", last
    match = _CAMEL_WORD.match(name)
    if match and match.group(2):
        return match.group(1), match.group(2)
    return "", name


def _inflect(word: str, rules: list[tuple[str, str]], what: str) -> str:
    beginning, last = _split_last_word(word)
    for pattern, replacement in rules:
        if re.search(pattern, last, re.IGNORECASE):
            return beginning + re.sub(pattern, replacement, last, count=1, flags=re.IGNORECASE)
    raise ProgrammerError(f"The noun specified, {word!r}, could not be {what}")


def pluralize(singular: str) -> str:
    """``tag`` → ``tags``, ``category`` → ``categories``, ``post_tag`` → ``post_tags``."""
    return _inflect(singular, _SINGULAR_TO_PLURAL, "pluralized")


def singularize(plural: str) -> str:
    """``tags`` → ``tag``, ``categories`` → ``category``, ``people`` → ``person``."""
    return _inflect(plural, _PLURAL_TO_SINGULAR, "singularized")


def underscorize(name: str) -> str:
    """``PostTag`` → ``post_tag``; underscored names are returned unchanged."""
    if "_" in name:
        return name
    if " " in name:
        return re.sub(r"\s+", "_", name).lower()

    previous = None
    while previous != name:
        previous = name
        name = re.sub(r"([a-zA-Z])([0-9])", r"\1_\2", name)
        name = re.sub(r"([a-z0-9A-Z])([A-Z])", r"\1_\2", name)
    return name.lower()


def camelize(name: str, upper: bool = True) -> str:
    """``post_tag`` → ``PostTag`` (or ``postTag`` with ``upper=False``)."""
    if " " in name:
        name = re.sub(r"\s+", "_", name).lower()

    if "_" not in name:
        return name[:1].upper() + name[1:] if upper else name

    name = name.lower()
    if upper:
        name = name[:1].upper() + name[1:]
    return re.sub(r"_([a-z0-9])", lambda m: m.group(1).upper(), name)


def humanize(name: str) -> str:
    """``post_tags`` → ``Post Tags``."""
    if " " in name:
        return name
    if "_" not in name:
        name = underscorize(name)
    return " ".join(word[:1].upper() + word[1:] for word in name.split("_") if word)


def classize(table: str) -> str:
    """Record class name for a table: ``post_tags`` → ``PostTag``."""
    return camelize(singularize(table), upper=True)


def tablize(class_name: str) -> str:
    """Table name for a record class: ``PostTag`` → ``post_tags``."""
    return pluralize(underscorize(class_name))


__all__ = [
    "pluralize",
    "singularize",
    "underscorize",
    "camelize",
    "humanize",
    "classize",
    "tablize",
]
