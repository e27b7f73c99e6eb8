"""
imagedrop: image upload service backed by a local file store and SQL table.

This package accepts image uploads, stores the files verbatim on disk,
records them in a relational table and keeps both sides consistent
through upload and deletion.
"""

__version__ = "1.0.0"
__author__ = "Development Team"
__email__ = "dev@example.com"
