"""
relset - relationship-aware record collections over SQL databases.

Examples:
    >>> from relset import ORMContext, Record, RecordCollection, Preload
    >>> class Post(Record):
    ...     pass
    >>> ctx = ORMContext.from_url("sqlite:///blog.db")
    >>> posts = RecordCollection.build(Post, order_bys={"title": "asc"}, context=ctx)
    >>> posts.apply(Preload("tags"))
"""

__version__ = "0.1.0"

from relset.core import *  # noqa
from relset.orm import *  # noqa
