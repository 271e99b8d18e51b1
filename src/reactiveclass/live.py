"""
Continuous sync between records and the store.

Two modes, chosen per reactive class:

- Auto-transform (``transform_collection=True``): the collection wraps every
  document it returns into a fresh record. A computation that re-reads a query
  after a remote change gets a *new* record; state attached to the old one is
  gone.
- Poll: poll(record) keeps one record in sync in place. A long-lived
  computation re-reads the document whenever the collection changes and merges
  it into the same object, so identity and extra local state survive.
"""
import logging
from typing import TYPE_CHECKING, Optional, Type

from reactiveclass.errors import RecordGoneError
from reactiveclass.sync import merge_remote, require_id
from reactiveclass.tracker import Computation, autorun, nonreactive

if TYPE_CHECKING:
    from reactiveclass.record import ReactiveRecord

logger = logging.getLogger(__name__)


def install_transform(descriptor: Type['ReactiveRecord']) -> None:
    """Make the descriptor's collection return records of ``descriptor``."""
    descriptor.collection.transform = descriptor.from_record
    logger.debug(f"Installed {descriptor.__name__} transform on {descriptor.collection!r}")


def poll(record: 'ReactiveRecord') -> Computation:
    """Start pulling remote changes into ``record``; returns the tracker handle.

    The first run only registers interest in the document. Every later run
    merges the stored document into the record and signals changed(). When the
    document is gone the record stops existing and the tracker stops itself.
    Polling an already polled record returns the running handle.
    """
    doc_id = require_id(record, 'poll')
    if record._tracker is not None:
        return record._tracker

    collection = type(record).collection

    def pull(computation: Computation) -> None:
        # Raw read, no transform: the tracker must not depend on the record itself
        doc = collection.find_one(doc_id, transform=None)
        if computation.first_run:
            return
        try:
            merge_remote(record, doc)
        except RecordGoneError:
            logger.debug(f"Stopped polling {type(record).__name__} {doc_id!r}: document is gone")

    # Detached from any enclosing computation so a caller's rerun does not stop it
    record._tracker = nonreactive(lambda: autorun(pull))
    logger.debug(f"Polling {type(record).__name__} {doc_id!r}")
    return record._tracker


def stop_poll(record: 'ReactiveRecord') -> Optional[Computation]:
    """Stop polling ``record``; a no-op when it is not polled."""
    tracker = record._tracker
    if tracker is None:
        return None
    record._tracker = None
    tracker.stop()
    logger.debug(f"Stopped polling {type(record).__name__} {record.__dict__.get('_id')!r}")
    return tracker
