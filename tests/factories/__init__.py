"""Test data factories and mapped entities."""

from tests.factories.models import Base, Comment, Post
from tests.factories.post_factory import PostFactory
from tests.factories.results import make_result

__all__ = [
    "Base",
    "Comment",
    "Post",
    "PostFactory",
    "make_result",
]
