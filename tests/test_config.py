"""Tests for ReactiveOptions and the process-wide defaults."""
import pytest

from reactiveclass import (
    ConfigurationError,
    ReactiveOptions,
    get_default_options,
    reactive_class,
    set_default_options,
)


class TestReactiveOptions:

    def test_defaults(self):
        options = ReactiveOptions()

        assert options.reactive is True
        assert options.transform_collection is True
        assert options.poll_on_put is False
        assert options.expand == ()

    def test_merged_accepts_aliases(self):
        options = ReactiveOptions().merged(transformCollection=False, pollOnPut=True, reactiveByDefault=False)

        assert options == ReactiveOptions(reactive=False, transform_collection=False, poll_on_put=True)

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError):
            ReactiveOptions().merged(colour='blue')

    def test_sync_modes_are_exclusive(self):
        with pytest.raises(ConfigurationError):
            ReactiveOptions(poll_on_put=True)

    def test_options_are_frozen(self):
        with pytest.raises(AttributeError):
            ReactiveOptions().reactive = False


class TestClassOptions:

    def test_class_options(self, posts):
        Post = reactive_class(posts, transformCollection=False)

        assert Post.options.transform_collection is False
        assert posts.transform is None

    def test_default_options_apply_to_new_classes(self, posts):
        Before = reactive_class(posts)
        set_default_options(reactive=False)
        After = reactive_class(posts)

        assert Before.options.reactive is True
        assert After.options.reactive is False
        assert After()._reactive is False
        assert get_default_options().reactive is False

    def test_explicit_options_override_defaults(self, posts):
        set_default_options(reactive=False)

        assert reactive_class(posts, reactive=True).options.reactive is True

    def test_conflicting_class_options(self, posts):
        with pytest.raises(ConfigurationError):
            reactive_class(posts, poll_on_put=True)

    def test_unknown_class_option(self, posts):
        with pytest.raises(ConfigurationError):
            reactive_class(posts, colour='blue')
