"""A small Unix-style file system with a block cache, redo log, image builder and text tools."""

__version__ = "0.1.0"