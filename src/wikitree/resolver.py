"""Resolve wiki-link labels to canonical document paths.

Resolution order for a label written in a referencing document:

1. A label starting with ``/`` is absolute and returned unchanged.
2. From a document at the root, the label is ``/<label>``.
3. If the label's segments land on a document starting at the root, that
   wins: ``/<label>``.
4. Otherwise descend the referencing document's folder chain from the root.
   After entering each folder, if the label lands on a document from that
   folder or any folder beneath it, return ``<folder path>/<label>``. The scan
   returns on the first hit, so the shallowest such ancestor wins, not the
   one nearest the referencing document.
5. Otherwise fall back to ``/<label>``.

Resolution never fails; an unmatched label yields a dangling path.
"""

from .models import Folder, ResolvedLink, Tree
from .tree import contains_document, find_folder, lookup_document


def resolve(tree: Tree, label: str, source_path: str) -> str:
    """Resolve ``label`` as written in the document at ``source_path``.

    Args:
        tree: Current document tree.
        label: Unescaped link label.
        source_path: Canonical path of the referencing document, with or
            without a leading slash.

    Returns:
        Canonical target path (leading slash, no extension).
    """
    if label.startswith("/"):
        return label

    source = source_path[1:] if source_path.startswith("/") else source_path
    if not source:
        return f"/{label}"

    segments = label.split("/")
    if lookup_document(tree, segments) is not None:
        return f"/{label}"

    level = tree
    prefix = ""
    for folder_name in source.split("/")[:-1]:
        folder: Folder | None = find_folder(level, folder_name)
        if folder is None:
            break
        level = folder.children
        prefix = f"{prefix}/{folder_name}"
        if contains_document(level, segments):
            return f"{prefix}/{label}"

    return f"/{label}"


def resolve_link(tree: Tree, label: str, source_path: str) -> ResolvedLink:
    return ResolvedLink(label=label, path=resolve(tree, label, source_path))
