"""
Read-time relation expansion.

An Expansion turns an id reference (or a list of ids) stored at ``id_field``
into the referenced documents, placed at ``obj_field``. Expanded values are a
read-time projection only: they are stripped from every document sent back to
the store.

    Post = reactive_class(posts, expand=Expansion('categoryIds', 'categories', categories))
    post = Post.fetch_one({'name': 'New Post'})
    post.categories[0]['name']  # 'General'
"""
import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, MutableMapping, Tuple, Union

from reactiveclass.errors import ConfigurationError
from reactiveclass.paths import MISSING, get_path, set_path, unset_path
from reactiveclass.tracker import nonreactive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Expansion:
    """Embed documents from ``collection`` referenced by ``id_field`` at ``obj_field``."""
    id_field: str
    obj_field: str
    collection: Any

    @classmethod
    def from_mapping(cls, spec: Mapping[str, Any]) -> 'Expansion':
        """Accept ``{'idField': ..., 'objField': ..., 'collection': ...}`` or snake_case keys."""
        try:
            id_field = spec['id_field'] if 'id_field' in spec else spec['idField']
            obj_field = spec['obj_field'] if 'obj_field' in spec else spec['objField']
            collection = spec['collection']
        except KeyError as e:
            raise ConfigurationError(f"Expansion is missing required key {e}") from None
        return cls(id_field, obj_field, collection)


ExpandOption = Union[None, Expansion, Mapping[str, Any], Iterable[Union[Expansion, Mapping[str, Any]]]]


def normalize_expansions(option: ExpandOption) -> Tuple[Expansion, ...]:
    """Coerce the ``expand`` option (single spec or sequence of specs) to a tuple."""
    if option is None:
        return ()
    if isinstance(option, (Expansion, Mapping)):
        option = [option]

    expansions = []
    for spec in option:
        if isinstance(spec, Expansion):
            expansions.append(spec)
        elif isinstance(spec, Mapping):
            expansions.append(Expansion.from_mapping(spec))
        else:
            raise ConfigurationError(f"Invalid expansion spec: {spec!r}")

    for expansion in expansions:
        if expansion.collection is None or not hasattr(expansion.collection, 'find_one'):
            raise ConfigurationError(
                f"Expansion {expansion.id_field!r} -> {expansion.obj_field!r} needs a valid collection"
            )
    return tuple(expansions)


def _lookup(expansion: Expansion, doc_id: Any) -> Any:
    # Plain documents, untracked: the expansion must not make the caller depend on another collection
    return nonreactive(lambda: expansion.collection.find_one(doc_id, transform=None))


def apply_expansions(target: MutableMapping[str, Any], expansions: Iterable[Expansion]) -> None:
    """Write the expanded documents into ``target`` (a record's field mapping)."""
    for expansion in expansions:
        ids = get_path(target, expansion.id_field)
        if ids is MISSING:
            continue
        if isinstance(ids, (list, tuple)):
            docs = [doc for doc in (_lookup(expansion, doc_id) for doc_id in ids) if doc is not None]
            set_path(target, expansion.obj_field, docs)
        else:
            set_path(target, expansion.obj_field, _lookup(expansion, ids))
        logger.debug(f"Expanded {expansion.id_field!r} into {expansion.obj_field!r}")


def strip_expansions(doc: Dict[str, Any], expansions: Iterable[Expansion]) -> Dict[str, Any]:
    """Return ``doc`` without any expanded path; nested containers are copied, not mutated."""
    expansions = tuple(expansions)
    if not expansions:
        return doc
    stripped = dict(doc)
    for expansion in expansions:
        head = expansion.obj_field.split('.', 1)[0]
        if head in stripped and '.' in expansion.obj_field:
            stripped[head] = copy.deepcopy(stripped[head])
        if not unset_path(stripped, expansion.obj_field):
            continue
        # Drop parent documents that only existed to hold the expansion
        parents = expansion.obj_field.split('.')[:-1]
        while parents:
            path = '.'.join(parents)
            if get_path(stripped, path) != {}:
                break
            unset_path(stripped, path)
            parents.pop()
    return stripped
