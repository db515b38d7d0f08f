"""Import helpers for loading engines by dotted path"""

from importlib import import_module


def import_from_string(dotted_path: str):
    """Import `package.module.Attribute` and return the attribute.

    Raises `ImportError` naming the dotted path when the module cannot be
    imported or does not define the attribute.
    """
    module_path, _, attribute = dotted_path.rpartition(".")
    if not module_path:
        raise ImportError(f"`{dotted_path}` is not a dotted path")

    try:
        return getattr(import_module(module_path), attribute)
    except (ImportError, AttributeError) as exc:
        raise ImportError(
            f"Could not import {dotted_path}. {exc.__class__.__name__}: {exc}"
        ) from exc
