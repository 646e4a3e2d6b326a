"""
nwscript_blocks.render
======================

Graphviz rendering of a :class:`BlockGraph`.

Requires the ``graphviz`` package (``pip install nwscript-blocks[viz]``)
and, for :func:`render_graph`, the Graphviz ``dot`` executable.
"""

from __future__ import annotations

import logging
from typing import Optional

import graphviz

from .block_graph import BlockGraph

logger = logging.getLogger(__name__)


def graph_source(graph: BlockGraph, title: Optional[str] = None) -> graphviz.Source:
    """Wrap the DOT text of *graph* in a :class:`graphviz.Source`."""
    return graphviz.Source(graph.to_dot(title=title))


def render_graph(
    graph: BlockGraph,
    filename: str,
    format: str = "svg",
    title: Optional[str] = None,
    view: bool = False,
) -> str:
    """Render *graph* to *filename* and return the path of the output file."""
    source = graph_source(graph, title=title)
    path = source.render(filename=filename, format=format, view=view, cleanup=True)
    logger.info("Rendered %d blocks to %s", len(graph), path)
    return path
