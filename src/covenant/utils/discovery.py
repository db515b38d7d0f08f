import ast
import importlib
import logging
import os
import sys
from types import ModuleType

from covenant.exceptions import NoModuleException
from covenant.module import RPCModule

logger = logging.getLogger(__name__)


def find_rpc_module_in_module(module: ModuleType) -> RPCModule:
    """Given a Python module, find an instance of `RPCModule`.

    Process to identify the RPC module:
    - If `rpc` is present, return that
    - If only one instance of `RPCModule` is present, return that
    - If multiple instances of `RPCModule` are present, raise an exception
    - If no instances of `RPCModule` are present, raise an exception
    """
    rpc = getattr(module, "rpc", None)
    if isinstance(rpc, RPCModule):
        return rpc

    matches = [v for v in module.__dict__.values() if isinstance(v, RPCModule)]

    if len(matches) == 1:
        return matches[0]
    elif len(matches) > 1:
        raise NoModuleException(
            "Detected multiple RPC modules in module"
            f" {module.__name__!r}. Use '{module.__name__}:name'"
            " to specify the correct one."
        )

    raise NoModuleException(
        "Failed to find an RPC module in module"
        f" {module.__name__!r}. Use '{module.__name__}:name' to specify one."
    )


def find_rpc_module_by_string(module: ModuleType, attr_name: str) -> RPCModule:
    """Return the `RPCModule` stored under `attr_name` in `module`"""
    try:
        expr = ast.parse(attr_name.strip(), mode="eval").body
    except SyntaxError:
        raise NoModuleException(f"Failed to parse {attr_name!r} as an attribute name.")

    if not isinstance(expr, ast.Name):
        raise NoModuleException(f"{attr_name!r} is not a valid attribute name.")

    try:
        rpc = getattr(module, expr.id)
    except AttributeError:
        raise NoModuleException(
            f"Failed to find attribute {expr.id!r} in {module.__name__!r}."
        )

    if not isinstance(rpc, RPCModule):
        raise NoModuleException(
            f"{module.__name__}:{expr.id} is not an RPCModule instance."
        )

    return rpc


def derive_rpc_module(path: str) -> RPCModule:
    """Import `package.module[:attribute]` and return the RPC module in it.

    The current directory is put on `sys.path` first, so that modules of the
    project the command runs in can be found.
    """
    module_name, _, attr_name = path.partition(":")

    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        logger.debug(f"Could not import {module_name}", exc_info=True)
        raise NoModuleException(f"Could not import {module_name!r}: {exc}")

    if attr_name:
        return find_rpc_module_by_string(module, attr_name)

    return find_rpc_module_in_module(module)
