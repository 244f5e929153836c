"""Link index and change watching for the document tree."""

from .link_index import (
    completion_candidates,
    document_links,
    incoming_links,
    link_listing,
    outgoing_links,
    resolved_outgoing,
)
from .watcher import FileWatcher, TreeChangeHandler

__all__ = [
    "outgoing_links",
    "resolved_outgoing",
    "incoming_links",
    "completion_candidates",
    "document_links",
    "link_listing",
    "FileWatcher",
    "TreeChangeHandler",
]
