"""Tests for extend(): records that are also instances of an existing class."""
import pytest

from reactiveclass import (
    ConfigurationError,
    InvalidationNode,
    MissingHostTypeError,
    ReactiveRecord,
    autorun,
    extend,
    flush,
)


class Host:
    """A plain class with its own constructor, statics and methods."""
    field = 'X'

    def __init__(self, name):
        self.name = name

    def m(self):
        return self.name

    def get(self, key):
        return 'host get'

    @classmethod
    def static_method(cls):
        return cls.field


class PostWithComments:

    def __init__(self, comment_limit):
        self.comment_limit = comment_limit


class Bare:

    def describe(self):
        return f"bare {self.name}"


@pytest.fixture
def ReactiveHost(Post):
    return Post.extend(Host)


class TestExtend:

    def test_composed_statics(self, posts, Post, ReactiveHost):
        assert ReactiveHost.collection is posts
        assert ReactiveHost.field == 'X'
        assert ReactiveHost.static_method() == 'X'
        assert callable(ReactiveHost.fetch_one)
        assert ReactiveHost.field_policy is Post.field_policy
        assert ReactiveHost.__name__ == 'ReactiveHost'

    def test_host_constructor_and_record_initializer_run(self, ReactiveHost):
        post = ReactiveHost('My New Post')

        assert post.name == 'My New Post'
        assert isinstance(post._dep, InvalidationNode)
        assert post._reactive is True
        assert post.exists() is False
        assert post._tracker is None

    def test_method_resolution(self, Post, ReactiveHost):
        post = ReactiveHost('My New Post')

        assert post.m() == 'My New Post'
        assert post.get('name') == 'My New Post'
        assert type(post).get is ReactiveRecord.get
        assert type(post).set is ReactiveRecord.set
        assert isinstance(post, Host)
        assert isinstance(post, Post)

    def test_composed_records_are_reactive(self, ReactiveHost):
        post = ReactiveHost('A')
        names = []
        autorun(lambda c: names.append(post.get('name')))

        post.set('name', 'B')
        flush()

        assert names == ['A', 'B']

    def test_composed_records_sync(self, posts, ReactiveHost):
        post = ReactiveHost('A').put()
        post.name = 'B'
        post.update()

        assert posts.find_one(post._id, transform=None)['name'] == 'B'

    def test_chaining(self, posts, ReactiveHost):
        ReactivePostWithComments = ReactiveHost.extend(PostWithComments)
        post = ReactivePostWithComments(10)

        assert ReactivePostWithComments.collection is posts
        assert ReactivePostWithComments.field == 'X'
        assert post.comment_limit == 10
        assert isinstance(post, Host)
        assert isinstance(post, PostWithComments)
        assert type(post).get is ReactiveRecord.get

    def test_host_without_constructor_takes_fields(self, Post):
        ReactiveBare = Post.extend(Bare, name='BarePost')
        post = ReactiveBare({'name': 'A'}, tag=5)

        assert ReactiveBare.__name__ == 'BarePost'
        assert post.describe() == 'bare A'
        assert post.tag == 5

    def test_host_without_constructor_rejects_positional_values(self, Post):
        ReactiveBare = Post.extend(Bare)

        with pytest.raises(TypeError):
            ReactiveBare('A')

    def test_missing_host(self, Post):
        with pytest.raises(MissingHostTypeError):
            Post.extend()

    def test_host_must_be_a_class(self, Post):
        with pytest.raises(ConfigurationError):
            extend(Post, Host('not a class'))

    def test_unbound_descriptor(self):
        with pytest.raises(ConfigurationError):
            ReactiveRecord.extend(Host)
