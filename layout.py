"""
Default layout collaborator.

Positions a flat ``{nodes, links}`` snapshot for drawing.  Structure is
re-derived from the link list alone (who points at whom); which side a
child hangs on is decided by comparing values, since the snapshots are
BST snapshots.
"""

from dataclasses import replace
from typing import Dict, List, Tuple

SVG_WIDTH  = 800
SVG_HEIGHT = 500
MARGIN     = 50


def _structure(nodes, links):
    """
    Build child tables from the link list.

    Returns:
        tuple: (by_id, left, right, roots, kept_links)
    """
    by_id = {n.id: n for n in nodes}
    kept  = [l for l in links if l.source_id in by_id and l.target_id in by_id]
    left: Dict[str, str] = {}
    right: Dict[str, str] = {}
    has_parent = set()
    for l in kept:
        parent, child = by_id[l.source_id], by_id[l.target_id]
        has_parent.add(child.id)
        if child.value < parent.value:
            left[parent.id] = child.id
        else:
            right[parent.id] = child.id
    roots = [n.id for n in nodes if n.id not in has_parent]
    return by_id, left, right, roots, kept


def _walk(roots, left, right):
    """
    Pre-order (node, left, right) walk from every root, without recursion.

    Yields (node_id, depth, parent_id, is_left).  A node reachable twice
    (only possible in malformed input) is yielded once.
    """
    seen = set()
    stack = [(rid, 0, None, False) for rid in reversed(roots)]
    while stack:
        item = stack.pop()
        nid, depth = item[0], item[1]
        if nid in seen:
            continue
        seen.add(nid)
        yield item
        for child, is_left in ((right.get(nid), False), (left.get(nid), True)):
            if child is not None:
                stack.append((child, depth + 1, nid, is_left))


def tree_depth(nodes, links) -> int:
    """Number of levels in the snapshot (0 when empty)."""
    _, left, right, roots, _ = _structure(nodes, links)
    return max((depth + 1 for _, depth, _, _ in _walk(roots, left, right)),
               default=0)


def layout_tree(nodes, links, width=SVG_WIDTH, height=SVG_HEIGHT,
                margin=MARGIN) -> Tuple[List, List]:
    """
    Assign pixel x/y to every node.

    Each node sits at the midpoint of its horizontal range; children
    split that range in half.  Depth is spread evenly over the
    available height.

    Args:
        nodes  (list[VisualizerNode]): Snapshot nodes (positions ignored).
        links  (list[VisualizerLink]): Parent → child links.
        width, height (int)          : Drawing area in pixels.
        margin (int)                 : Padding on every side.

    Returns:
        tuple[list, list]: Positioned node copies (root first, depth-first)
                           and the links whose endpoints both exist.
    """
    by_id, left, right, roots, kept = _structure(nodes, links)
    if not roots:
        return [], []

    inner_w = width - 2 * margin
    inner_h = height - 2 * margin
    levels  = max(tree_depth(nodes, kept) - 1, 1)

    # horizontal range per node; several roots (malformed input) share the width
    share  = 1.0 / len(roots)
    ranges = {rid: (i * share, (i + 1) * share) for i, rid in enumerate(roots)}

    placed = []
    for nid, depth, parent, is_left in _walk(roots, left, right):
        if parent is not None:
            lo, hi = ranges[parent]
            mid = (lo + hi) / 2.0
            ranges[nid] = (lo, mid) if is_left else (mid, hi)
        lo, hi = ranges[nid]
        placed.append(replace(by_id[nid],
                              x=margin + (lo + hi) / 2.0 * inner_w,
                              y=margin + depth * inner_h / levels))
    return placed, kept
