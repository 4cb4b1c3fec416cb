"""
Thematic Coder: code open-ended survey responses against a curated codebook.
"""

from thematic_coder.config import APP_VERSION as __version__

__all__ = ["__version__"]
