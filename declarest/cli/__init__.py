"""
declarest command-line interface.

Usage:
    declarest routes app.main:server
    declarest serve app.main:server --port 8080
"""

from declarest import __version__

__cli_name__ = "declarest"
