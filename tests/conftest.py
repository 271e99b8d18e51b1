"""Pytest configuration and shared fixtures."""
import pytest

from reactiveclass import MemoryCollection, reactive_class, reset_default_options
from reactiveclass import tracker


@pytest.fixture(autouse=True)
def reset_reactive_state():
    """Start every test with no pending reruns and the built-in default options."""
    tracker.reset()
    reset_default_options()

    yield

    tracker.reset()
    reset_default_options()


@pytest.fixture
def posts():
    """Provide an empty posts collection."""
    return MemoryCollection('posts')


@pytest.fixture
def categories():
    """Provide an empty categories collection."""
    return MemoryCollection('categories')


@pytest.fixture
def Post(posts):
    """Provide a reactive class bound to the posts collection (default options)."""
    return reactive_class(posts, name='Post')


@pytest.fixture
def PlainPost(posts):
    """Provide a reactive class that does not install a collection transform."""
    return reactive_class(posts, name='PlainPost', transform_collection=False)
