"""Pydantic models for the document tree and wiki links."""

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class Document(BaseModel):
    """A document leaf. ``name`` is the file name with its extension stripped."""

    kind: Literal["document"] = "document"
    name: str
    last_modified: datetime


class Folder(BaseModel):
    """A directory and the tree beneath it."""

    kind: Literal["folder"] = "folder"
    name: str
    children: list["Node"] = Field(default_factory=list)


Node = Annotated[Union[Document, Folder], Field(discriminator="kind")]

# Siblings in directory-listing order. Lookups by name return the first match.
Tree = list[Node]

Folder.model_rebuild()


class SourceSpan(BaseModel):
    """Location of a link in its document (0-based line, end column exclusive)."""

    line: int
    start: int
    end: int


class LinkToken(BaseModel):
    """A recognized [[...]] span with its unescaped label."""

    label: str
    span: SourceSpan


class ResolvedLink(BaseModel):
    """A raw label and the canonical path it resolves to."""

    label: str
    path: str  # Root-relative, leading slash, no extension; may be dangling


class LinkSpan(BaseModel):
    """A navigable link: where it sits in the source and where it points on disk."""

    label: str
    span: SourceSpan
    path: str
    location: str  # Absolute file path of the target document


class LinkEntry(BaseModel):
    """One row of an outgoing/incoming listing."""

    label: str
    path: str
    location: str


class LinkListing(BaseModel):
    """Outgoing and incoming links for the active document."""

    path: str
    outgoing: list[LinkEntry] = Field(default_factory=list)
    incoming: list[LinkEntry] = Field(default_factory=list)
