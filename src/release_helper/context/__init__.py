"""Context-building modules for gathering release data.

These modules read from external sources (local git repositories, the
Shortcut API) and turn what they find into the schema objects the rest of
the pipeline works with.
"""
