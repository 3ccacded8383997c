"""fileorganizer: group scanned pages into documents from windowed LLM judgments."""

from fileorganizer.version import __version__

__all__ = ["__version__"]
