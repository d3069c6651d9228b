"""Nova theme build pipeline.

This package compiles the theme's SCSS sources, runs a live-reloading preview
server, and produces the minified distribution bundle (styles, scripts,
images and vendor libraries).

The main entry point is the CLI module, which exposes the named tasks:
the interactive default task, the individual production pipelines, and the
sequential ``dist`` bundle.
"""

__all__ = ["__version__"]
__version__ = "1.2.2"
