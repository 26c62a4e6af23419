"""Adapters for the external Node tools: esbuild (bundler) and Babel (downgrader)."""

from .base import Bundler, Downgrader, ToolAdapter
from .babel import BabelDowngrader
from .esbuild import EsbuildBundler

__all__ = [
    "ToolAdapter",
    "Bundler",
    "Downgrader",
    "EsbuildBundler",
    "BabelDowngrader",
]
