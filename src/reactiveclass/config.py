"""
Options for reactive classes and their process-wide defaults.

Every reactive class is built from a ReactiveOptions instance: the module-level
defaults with the keyword options passed to reactive_class() merged on top.

    set_default_options(reactive=False)
    Post = reactive_class(posts)               # reactive=False
    Comment = reactive_class(comments, reactive=True)
"""
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Tuple

from reactiveclass.errors import ConfigurationError
from reactiveclass.expand import Expansion, normalize_expansions

logger = logging.getLogger(__name__)

# camelCase spellings accepted for compatibility with stored configuration
_OPTION_ALIASES = {
    'transformCollection': 'transform_collection',
    'reactiveByDefault': 'reactive',
    'autoTransform': 'transform_collection',
    'pollOnPut': 'poll_on_put',
}


@dataclass(frozen=True)
class ReactiveOptions:
    """Per-class behaviour switches.

    Attributes:
        reactive: Initial reactive flag of every record (lock()/unlock() toggle it).
        transform_collection: Install a transform on the collection so every
            query returns fresh records of this class.
        poll_on_put: Start polling a record as soon as put() succeeds.
            Mutually exclusive with transform_collection.
        expand: Read-time relation expansions.
    """
    reactive: bool = True
    transform_collection: bool = True
    poll_on_put: bool = False
    expand: Tuple[Expansion, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'expand', normalize_expansions(self.expand))
        if self.transform_collection and self.poll_on_put:
            raise ConfigurationError(
                "transform_collection and poll_on_put are mutually exclusive live-sync modes"
            )

    def merged(self, **changes: Any) -> 'ReactiveOptions':
        """Copy with ``changes`` applied (camelCase aliases accepted)."""
        normalized = {}
        valid = {f.name for f in dataclasses.fields(self)}
        for key, value in changes.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in valid:
                raise ConfigurationError(f"Unknown option {key!r}; expected one of {sorted(valid)}")
            normalized[name] = value
        return dataclasses.replace(self, **normalized)


_default_options = ReactiveOptions()


def get_default_options() -> ReactiveOptions:
    return _default_options


def set_default_options(**changes: Any) -> ReactiveOptions:
    """Change the defaults used by reactive classes created from now on."""
    global _default_options
    _default_options = _default_options.merged(**changes)
    logger.debug(f"Default options set to {_default_options}")
    return _default_options


def reset_default_options() -> None:
    """Restore the built-in defaults. For testing only."""
    global _default_options
    _default_options = ReactiveOptions()
