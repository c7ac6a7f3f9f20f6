"""Project Metadata based on its ``pyproject.toml``."""

from __future__ import annotations

import importlib.metadata

__all__ = ("__project__", "__version__")

__version__ = importlib.metadata.version("litestar-asl")
"""Version of the project."""
__project__ = importlib.metadata.metadata("litestar-asl")["Name"]
"""Name of the project."""
