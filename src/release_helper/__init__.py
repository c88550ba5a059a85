"""Release notes helper for Shortcut-tracked projects.

Finds the commits of one or more git repositories that are present on a
"next" branch but not yet on the "release" branch, links them to Shortcut
stories through their commit messages, and fetches those stories and their
epics to build a structured release payload for a renderer.
"""

__version__ = "0.1.0"
