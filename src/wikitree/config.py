"""Configuration management for wikitree.

Constants for the link resolver and tree builder live here rather than being
scattered throughout the codebase.
"""

import os
from pathlib import Path

# File extension that marks a file as a document. The tree and the resolver
# work on extension-stripped stems; rendered links put it back.
DOC_EXTENSION = ".md"

# Per-project configuration file, discovered by walking up from cwd.
CONFIG_FILENAME = ".wikitree"

# Maximum directories to traverse upward when looking for CONFIG_FILENAME.
MAX_CONFIG_SEARCH_DEPTH = 10


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


def _discover_project_config(
    start_dir: Path | None = None, max_depth: int = MAX_CONFIG_SEARCH_DEPTH
) -> tuple[Path, dict] | None:
    """Walk up from start_dir looking for a .wikitree file with a root key.

    Args:
        start_dir: Directory to start from (defaults to cwd)
        max_depth: Maximum directories to traverse up

    Returns:
        Tuple of (config_path, parsed_data) if found, None otherwise.
    """
    import yaml

    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        config_file = current / CONFIG_FILENAME
        if config_file.is_file():
            try:
                data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError):
                data = {}
            if isinstance(data, dict) and "root" in data:
                return config_file, data

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


def get_root(start_dir: Path | None = None) -> Path:
    """Get the document root directory.

    Discovery order:
    1. WIKITREE_ROOT environment variable (explicit override)
    2. Walk up from cwd looking for .wikitree with a root field
    3. Error with helpful message

    Raises:
        ConfigurationError: If no document root can be found.
    """
    root = os.environ.get("WIKITREE_ROOT")
    if root:
        path = Path(root)
        if not path.is_dir():
            raise ConfigurationError(f"WIKITREE_ROOT is not a directory: {root}")
        return path

    discovered = _discover_project_config(start_dir)
    if discovered:
        config_file, data = discovered
        path = (config_file.parent / str(data["root"])).resolve()
        if path.is_dir():
            return path
        raise ConfigurationError(f"Document root from {config_file} does not exist: {path}")

    raise ConfigurationError(
        "No document root found. Options:\n"
        "  1. Set WIKITREE_ROOT to an existing directory\n"
        f"  2. Add a {CONFIG_FILENAME} file with 'root: <dir>' to your project"
    )


def get_doc_extension(start_dir: Path | None = None) -> str:
    """Get the document extension, honouring an 'extension' key in .wikitree."""
    discovered = _discover_project_config(start_dir)
    if discovered:
        _, data = discovered
        ext = data.get("extension")
        if isinstance(ext, str) and ext.strip():
            ext = ext.strip()
            return ext if ext.startswith(".") else f".{ext}"
    return DOC_EXTENSION
