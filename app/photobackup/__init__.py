"""photo-backup - Multi-source deletion-protected backup mirror.

Mirrors several independent source trees into one shared destination
without letting one source's delete pass remove another source's files.
"""

__version__ = "0.3.0"
