"""
nwscript_blocks — Control-flow blocks for NWScript bytecode
===========================================================

This package turns a decoded NWScript (BioWare Aurora engine) instruction
stream into a graph of basic blocks linked by typed control-flow edges,
the input of any later disassembler, decompiler or analyzer.

Core modules
------------
opcodes
    The NWScript instruction set and the branch tables.
instruction
    Decoded instructions; branch linking and input validation.
block
    Basic blocks and edge kinds.
block_graph
    The block collection, its queries, invariant checks and DOT output.
block_builder
    ``build_graph``: the block construction algorithm.
listing
    Reader for text assembly listings.
errors
    Error codes and exceptions.

Addon modules
-------------
render
    Graphviz rendering (needs the ``graphviz`` package).

Quick start
-----------
>>> from nwscript_blocks import build_graph, parse_listing
>>> graph = build_graph(parse_listing('''
... 0: JZ 2
... 1: JMP 0
... 2: RETN
... '''))
>>> len(graph)
3
"""

from __future__ import annotations

import importlib
import logging
import sys
import warnings
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__author__ = "nwscript-blocks contributors"
__license__ = "GPL-3.0-or-later"
__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_import)
#
# Modules are grouped into tiers:
#   CORE:  always imported; failure is fatal
#   ADDON: imported eagerly; failure only warns
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "NWScriptError",
        "ListingSyntaxError",
        "MalformedScriptError",
        "BlockContractError",
        "GraphInvariantError",
        "ErrorCodes",
    ],
    "opcodes": [
        "Opcode",
        "AddressType",
        "BRANCH_OPCODES",
        "BRANCH_ARITY",
    ],
    "instruction": [
        "Instruction",
        "link_instructions",
        "check_instructions",
        "find_instruction",
    ],
    "block": [
        "Block",
        "BlockEdgeType",
    ],
    "block_graph": [
        "BlockGraph",
        "graph_summary",
    ],
    "block_builder": [
        "BuildConfig",
        "build_graph",
    ],
    "listing": [
        "parse_listing",
    ],
}

_ADDON_MODULES = {
    "render": [
        "graph_source",
        "render_graph",
    ],
}

# ---------------------------------------------------------------------------
# Import helper
# ---------------------------------------------------------------------------

def _import_names(
    module_rel_name: str,
    names: List[str],
    *,
    fatal: bool = True,
) -> None:
    """Import *names* from a submodule and bind them in the package namespace.

    If *fatal* is ``False`` an ``ImportError`` only warns and the names are
    skipped (addon tier).
    """
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        if fatal:
            raise ImportError(
                f"nwscript_blocks: required submodule '{module_rel_name}' "
                f"failed to import: {exc}"
            ) from exc
        warnings.warn(
            f"nwscript_blocks: optional submodule '{module_rel_name}' "
            f"could not be imported ({exc}); related symbols will be unavailable.",
            ImportWarning,
            stacklevel=2,
        )
        _log.debug("Skipped optional module %s: %s", module_rel_name, exc)
        return

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            msg = f"nwscript_blocks.{module_rel_name} does not export '{name}'"
            if fatal:
                raise AttributeError(msg)
            _log.warning(msg)
            continue
        setattr(current_module, name, obj)
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)

# ---------------------------------------------------------------------------
# Eagerly import everything at package load time
# ---------------------------------------------------------------------------

for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names, fatal=True)

for _mod, _names in _ADDON_MODULES.items():
    _import_names(_mod, _names, fatal=False)

del _mod, _names

# ---------------------------------------------------------------------------
# Package-level utilities
# ---------------------------------------------------------------------------

def list_submodules() -> List[str]:
    """Return the names of all submodules in the package (core + addon)."""
    return sorted(set(list(_CORE_MODULES.keys()) + list(_ADDON_MODULES.keys())))


def package_info() -> dict:
    """Return a dict of metadata about the package and its loaded modules."""
    loaded = []
    missing = []
    for mod_name in list_submodules():
        fq = f"{__name__}.{mod_name}"
        if fq in sys.modules:
            loaded.append(mod_name)
        else:
            missing.append(mod_name)

    return {
        "package": __name__,
        "version": __version__,
        "python": sys.version,
        "loaded_submodules": loaded,
        "missing_submodules": missing,
        "all_exports": list(__all__),
    }


__all__ += ["list_submodules", "package_info", "__version__"]

# ---------------------------------------------------------------------------
# TYPE_CHECKING re-exports
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from .errors import (
        NWScriptError as NWScriptError,
        ListingSyntaxError as ListingSyntaxError,
        MalformedScriptError as MalformedScriptError,
        BlockContractError as BlockContractError,
        GraphInvariantError as GraphInvariantError,
        ErrorCodes as ErrorCodes,
    )
    from .opcodes import (
        Opcode as Opcode,
        AddressType as AddressType,
        BRANCH_OPCODES as BRANCH_OPCODES,
        BRANCH_ARITY as BRANCH_ARITY,
    )
    from .instruction import (
        Instruction as Instruction,
        link_instructions as link_instructions,
        check_instructions as check_instructions,
        find_instruction as find_instruction,
    )
    from .block import (
        Block as Block,
        BlockEdgeType as BlockEdgeType,
    )
    from .block_graph import (
        BlockGraph as BlockGraph,
        graph_summary as graph_summary,
    )
    from .block_builder import (
        BuildConfig as BuildConfig,
        build_graph as build_graph,
    )
    from .listing import parse_listing as parse_listing
    from .render import (
        graph_source as graph_source,
        render_graph as render_graph,
    )
