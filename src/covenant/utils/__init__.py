"""Utility module for Covenant

Definitions/declarations in this module should be independent of other modules,
to the maximum extent possible.
"""


def fully_qualified_name(cls) -> str:
    """Return Fully Qualified name along with module"""
    return ".".join([cls.__module__, cls.__qualname__])
