"""Command-line core for kbot.

``kbot.registry`` holds the static command tree, ``kbot.dispatcher`` binds
flags and runs the resolved handler, and ``kbot.build_info`` carries the
version stamped in at build time. The ``kbot-build`` tool in
``kbot.apps.build_cli`` drives format, test, packaging and image steps.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
