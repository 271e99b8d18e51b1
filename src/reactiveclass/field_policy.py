"""
Field visibility policy for records synced with a collection.

Two named field sets decide what a record sends to the store:

- hidden ("offline") fields are never sent, neither on insert nor on update;
- immutable-on-update ("do not update") fields are sent on insert but withheld
  from later field-replacement updates.

Each set starts with protected defaults that cannot be removed. One policy is
owned by each reactive class and shared by reference with all of its records.
"""
import logging
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Set, Union

from reactiveclass.errors import ProtectedFieldError

logger = logging.getLogger(__name__)

ID_FIELD = '_id'

# Record internals: invalidation node, reactive flag, existence flag, poll handle
DEFAULT_HIDDEN_FIELDS: FrozenSet[str] = frozenset({'_dep', '_reactive', '_exists', '_tracker'})
DEFAULT_IMMUTABLE_ON_UPDATE_FIELDS: FrozenSet[str] = frozenset({ID_FIELD})

FieldNames = Union[str, Iterable[str]]


def _as_name_set(names: FieldNames) -> Set[str]:
    """Accept a single field name or any iterable of names."""
    if isinstance(names, str):
        return {names}
    return set(names)


class FieldPolicy:
    """Hidden and immutable-on-update field sets with protected defaults."""

    def __init__(self):
        self._hidden: Set[str] = set(DEFAULT_HIDDEN_FIELDS)
        self._immutable_on_update: Set[str] = set(DEFAULT_IMMUTABLE_ON_UPDATE_FIELDS)

    @property
    def hidden(self) -> FrozenSet[str]:
        return frozenset(self._hidden)

    @property
    def immutable_on_update(self) -> FrozenSet[str]:
        return frozenset(self._immutable_on_update)

    def is_hidden(self, name: str) -> bool:
        return name in self._hidden

    # ========== MUTATORS ==========

    def add_hidden(self, names: FieldNames) -> None:
        new_names = _as_name_set(names)
        self._hidden |= new_names
        logger.debug(f"Added hidden fields: {sorted(new_names)}")

    def remove_hidden(self, names: FieldNames) -> None:
        self._remove(self._hidden, _as_name_set(names), DEFAULT_HIDDEN_FIELDS)

    def add_immutable_on_update(self, names: FieldNames) -> None:
        new_names = _as_name_set(names)
        self._immutable_on_update |= new_names
        logger.debug(f"Added immutable-on-update fields: {sorted(new_names)}")

    def remove_immutable_on_update(self, names: FieldNames) -> None:
        self._remove(self._immutable_on_update, _as_name_set(names), DEFAULT_IMMUTABLE_ON_UPDATE_FIELDS)

    @staticmethod
    def _remove(target: Set[str], names: Set[str], protected: FrozenSet[str]) -> None:
        # Check before mutating so a rejected call leaves the set untouched
        clash = names & protected
        if clash:
            raise ProtectedFieldError(names, clash)
        target -= names
        logger.debug(f"Removed fields from policy: {sorted(names)}")

    # ========== SANITIZING ==========

    def sanitize_for_insert(self, fields: Mapping[str, Any], keep_id: bool = False) -> Dict[str, Any]:
        """Return ``fields`` without hidden fields (and without _id unless keep_id)."""
        excluded = self._hidden if keep_id else self._hidden | {ID_FIELD}
        return {name: value for name, value in fields.items() if name not in excluded}

    def sanitize_for_update(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Return ``fields`` without hidden and immutable-on-update fields."""
        excluded = self._hidden | self._immutable_on_update
        return {name: value for name, value in fields.items() if name not in excluded}

    def __repr__(self) -> str:
        return (
            f"FieldPolicy(hidden={sorted(self._hidden)}, "
            f"immutable_on_update={sorted(self._immutable_on_update)})"
        )
