"""Tests for read-time relation expansion."""
import pytest

from reactiveclass import ConfigurationError, Expansion, reactive_class
from reactiveclass.expand import apply_expansions, normalize_expansions, strip_expansions


@pytest.fixture
def Category(categories):
    return reactive_class(categories, name='Category')


@pytest.fixture
def general(Category):
    return Category.create({'name': 'General'})


def expansion(categories, id_field, obj_field):
    return {'idField': id_field, 'objField': obj_field, 'collection': categories}


class TestExpandingProperties:

    def test_options_list(self, posts, categories, general):
        Post = reactive_class(posts, expand=[expansion(categories, 'categoryIds', 'categories')])
        post = Post.create({'name': 'New Post', 'categoryIds': [general._id]})

        assert post.categories[0]['_id'] == general._id
        assert post.categories[0]['name'] == 'General'

    def test_options_object(self, posts, categories, general):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryIds', 'categories'))
        post = Post.create({'name': 'New Post', 'categoryIds': [general._id]})

        assert post.categories[0]['_id'] == general._id

    def test_expansion_instance(self, posts, categories, general):
        Post = reactive_class(posts, expand=Expansion('categoryId', 'category', categories))
        post = Post.create({'name': 'New Post', 'categoryId': general._id})

        assert post.category['_id'] == general._id

    def test_object_instead_of_array(self, posts, categories, general):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryId', 'category'))
        post = Post.create({'name': 'New Post', 'categoryId': general._id})

        assert post.category['_id'] == general._id

    def test_from_subobject(self, posts, categories, general):
        Post = reactive_class(posts, expand=expansion(categories, 'props.categoryIds', 'categories'))
        post = Post.create({'name': 'New Post', 'props': {'categoryIds': [general._id]}})

        assert post.categories[0]['_id'] == general._id

    def test_to_subobject_with_array(self, posts, categories, general):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryIds', 'props.categories'))
        post = Post.create({'name': 'New Post', 'categoryIds': [general._id]})

        assert post.props['categories'][0]['_id'] == general._id

    def test_to_subobject(self, posts, categories, general):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryId', 'props.category'))
        post = Post.create({'name': 'New Post', 'categoryId': general._id})

        assert post.props['category']['_id'] == general._id

    def test_expanded_documents_are_plain(self, posts, categories, general, Category):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryId', 'category'))
        post = Post.create({'name': 'New Post', 'categoryId': general._id})

        assert isinstance(post.category, dict)

    def test_unknown_ids(self, posts, categories, general):
        Post = reactive_class(posts, expand=[
            expansion(categories, 'categoryIds', 'categories'),
            expansion(categories, 'mainId', 'main'),
        ])
        post = Post.create({'categoryIds': ['nope', general._id], 'mainId': 'nope'})

        assert [c['_id'] for c in post.categories] == [general._id]
        assert post.main is None

    def test_absent_id_field_is_skipped(self, posts, categories):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryId', 'category'))
        post = Post.create({'name': 'New Post'})

        assert 'category' not in post.fields()

    def test_fetched_records_are_expanded(self, posts, categories, general):
        Post = reactive_class(posts, transform_collection=False,
                              expand=expansion(categories, 'categoryId', 'category'))
        post_id = posts.insert({'name': 'New Post', 'categoryId': general._id})

        assert Post.fetch_one(post_id).category['name'] == 'General'
        assert Post.fetch()[0].category['name'] == 'General'

    def test_refresh_reexpands(self, posts, categories, general):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryId', 'category'))
        post = Post.create({'name': 'New Post', 'categoryId': general._id})
        categories.update(general._id, {'$set': {'name': 'Renamed'}})

        post.refresh()

        assert post.category['name'] == 'Renamed'


class TestExpansionsAreNotSaved:

    def test_subobject_not_saved(self, posts, categories, general):
        Post = reactive_class(posts, transform_collection=False,
                              expand=expansion(categories, 'categoryId', 'props.category'))
        post = Post.create({'name': 'New Post', 'categoryId': general._id})
        post.update()

        post2 = Post.create({'name': 'New Post 2', 'categoryId': general._id, 'props': {'test': True}})
        post2.update()

        assert 'props' not in posts.find_one(post._id)
        assert posts.find_one(post2._id)['props'] == {'test': True}
        assert post2.props['category']['_id'] == general._id

    def test_top_level_not_saved(self, posts, categories, general):
        Post = reactive_class(posts, transform_collection=False,
                              expand=[expansion(categories, 'categoryId', 'category')])
        post = Post.create({'name': 'New Post', 'categoryId': general._id})
        post.update()

        assert 'category' not in posts.find_one(post._id)

    def test_sanitize_strips_expansion(self, posts, categories, general):
        Post = reactive_class(posts, expand=expansion(categories, 'categoryId', 'props.category'))
        post = Post.create({'name': 'New Post', 'categoryId': general._id, 'props': {'test': True}})

        assert post.sanitize() == {'name': 'New Post', 'categoryId': general._id, 'props': {'test': True}}
        assert 'category' in post.props


class TestExpansionHelpers:

    def test_normalize(self, categories):
        expansions = normalize_expansions({'id_field': 'a', 'obj_field': 'b', 'collection': categories})

        assert expansions == (Expansion('a', 'b', categories),)
        assert normalize_expansions(None) == ()

    def test_missing_key(self, categories):
        with pytest.raises(ConfigurationError):
            normalize_expansions({'idField': 'a', 'collection': categories})

    def test_invalid_collection(self, posts):
        with pytest.raises(ConfigurationError):
            reactive_class(posts, expand={'idField': 'a', 'objField': 'b', 'collection': None})

    def test_invalid_spec(self):
        with pytest.raises(ConfigurationError):
            normalize_expansions(['not a spec'])

    def test_apply_and_strip(self, categories):
        categories.insert({'_id': 'c1', 'name': 'General'})
        expansions = normalize_expansions(Expansion('ref', 'meta.cat', categories))
        doc = {'ref': 'c1'}

        apply_expansions(doc, expansions)
        assert doc['meta'] == {'cat': {'_id': 'c1', 'name': 'General'}}

        assert strip_expansions(doc, expansions) == {'ref': 'c1'}
        assert 'cat' in doc['meta']
