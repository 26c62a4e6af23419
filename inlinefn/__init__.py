"""
inlinefn - Inline composition functions

Packages a JavaScript module into a composition pipeline manifest and runs
the embedded function against observed state to produce desired state.
"""

__version__ = "0.1.0"


__all__ = ["BuildConfig", "load_config", "Packager", "BuildResult"]

from .config import BuildConfig, load_config
from .packager import BuildResult, Packager
