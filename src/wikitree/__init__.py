"""wikitree: wiki-style link resolution and backlinks over a tree of markdown documents."""

__version__ = "0.3.0"
