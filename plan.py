"""
Animation plan compiler.

Wraps one ``BinarySearchTree`` and turns every insert / delete / find
into an ordered list of declarative steps the sequencer can play back.

Data Flow
─────────
  1. Caller asks for insert(v) / delete(v) / find(v)
  2. The compiler walks the tree itself, appending one step per thing
     a viewer should see (cursor visits, highlights, fades, moves)
  3. It then lets the engine mutate the tree
  4. The plan closes with a self-contained snapshot of the new tree
     (FINALIZE / FINALIZE_INSERT) so playback never depends on state
     the renderer may have missed

Node ids ("node-0", "node-1", ...) are handed out the first time a
node object is seen and are never reused, even after it is deleted.
"""

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Union

from bst import BinarySearchTree, TreeNode

logger = logging.getLogger(__name__)

DELETE_COLOR = "#e74c3c"      # Highlight for the node being deleted
NO_LINK      = "no-link"      # FINALIZE_INSERT link id when the new node is root


# ═════════════════════════════════════════════════════════════════
#  VISUALIZER VALUE OBJECTS
# ═════════════════════════════════════════════════════════════════

@dataclass
class VisualizerNode:
    """A node as the renderer sees it.  x/y come from the layout."""

    id: str
    value: Union[int, float, str]
    x: float = 0
    y: float = 0
    opacity: Optional[float] = None
    fill_color: Optional[str] = None
    stroke_color: Optional[str] = None


@dataclass
class VisualizerLink:
    """Directed parent → child edge."""

    source_id: str
    target_id: str
    opacity: Optional[float] = None

    @property
    def link_id(self) -> str:
        return link_id(self.source_id, self.target_id)


def link_id(source_id: str, target_id: str) -> str:
    return f"{source_id}->{target_id}"


class Snapshot(NamedTuple):
    nodes: List[VisualizerNode]
    links: List[VisualizerLink]


# ═════════════════════════════════════════════════════════════════
#  STEP TYPES
# ═════════════════════════════════════════════════════════════════

class StepType(Enum):
    VISIT = "visit"
    HIGHLIGHT = "highlight"
    FADE_OUT = "fade_out"
    HIDE_VISITOR = "hide_visitor"
    MOVE_NODE = "move_node"
    UPDATE_VALUE = "update_value"
    FINALIZE = "finalize"
    FINALIZE_INSERT = "finalize_insert"


@dataclass
class BaseStep:
    """Base class for all step types."""

    type: StepType = field(init=False)


@dataclass
class VisitStep(BaseStep):
    """Move the traversal cursor onto a node."""

    type: StepType = field(init=False, default=StepType.VISIT)
    node_id: str = ""


@dataclass
class HighlightStep(BaseStep):
    """Colour the given nodes; every other node loses its fill."""

    type: StepType = field(init=False, default=StepType.HIGHLIGHT)
    node_ids: List[str] = field(default_factory=list)
    color: Optional[str] = None


@dataclass
class FadeOutStep(BaseStep):
    """Fade nodes (by id) and links (by "src->dst" id) to invisible."""

    type: StepType = field(init=False, default=StepType.FADE_OUT)
    element_ids: List[str] = field(default_factory=list)


@dataclass
class HideVisitorStep(BaseStep):
    type: StepType = field(init=False, default=StepType.HIDE_VISITOR)


@dataclass
class MoveNodeStep(BaseStep):
    """Slide ``node_id`` onto the current position of ``to_node_id``."""

    type: StepType = field(init=False, default=StepType.MOVE_NODE)
    node_id: str = ""
    to_node_id: str = ""


@dataclass
class UpdateValueStep(BaseStep):
    """Relabel a node in place."""

    type: StepType = field(init=False, default=StepType.UPDATE_VALUE)
    node_id: str = ""
    new_value: Union[int, float, str] = 0


@dataclass
class FinalizeStep(BaseStep):
    """Replace the whole picture with a fresh snapshot."""

    type: StepType = field(init=False, default=StepType.FINALIZE)
    nodes: List[VisualizerNode] = field(default_factory=list)
    links: List[VisualizerLink] = field(default_factory=list)


@dataclass
class FinalizeInsertStep(BaseStep):
    """Snapshot after an insert, with the new node/edge to stage in."""

    type: StepType = field(init=False, default=StepType.FINALIZE_INSERT)
    nodes: List[VisualizerNode] = field(default_factory=list)
    links: List[VisualizerLink] = field(default_factory=list)
    new_node_id: str = ""
    new_link_id: str = NO_LINK


Step = Union[
    VisitStep, HighlightStep, FadeOutStep, HideVisitorStep, MoveNodeStep,
    UpdateValueStep, FinalizeStep, FinalizeInsertStep,
]
Plan = List[Step]


# ═════════════════════════════════════════════════════════════════
#  PLAN COMPILER
# ═════════════════════════════════════════════════════════════════

class PlanCompiler:
    """
    Turns tree operations into animation plans.

    One compiler owns one tree for its whole lifetime; the id mapping
    is only meaningful for that tree.

    Args:
        initial_values (iterable): Values inserted (without plans)
                                   before the first snapshot.
    """

    def __init__(self, initial_values=()):
        self._tree = BinarySearchTree()
        self._ids: Dict[TreeNode, str] = {}     # keyed by node identity
        self._values: Dict[str, object] = {}    # id → value, for narration
        self._counter = itertools.count()
        for v in initial_values:
            self._tree.insert(v)

    @property
    def tree(self) -> BinarySearchTree:
        return self._tree

    # ── Identity mapping ────────────────────────────────────────
    def node_id(self, node: TreeNode) -> str:
        """Stable id for ``node``, assigned on first sight."""
        nid = self._ids.get(node)
        if nid is None:
            nid = f"node-{next(self._counter)}"
            self._ids[node] = nid
            self._values[nid] = node.value
        return nid

    # ── Snapshots ───────────────────────────────────────────────
    def _snapshot(self) -> Snapshot:
        """Breadth-first flattening of the tree with (0, 0) placeholders."""
        nodes, links = [], []
        if self._tree.root is None:
            return Snapshot(nodes, links)

        queue = [self._tree.root]
        while queue:
            current = queue.pop(0)
            cid = self.node_id(current)
            nodes.append(VisualizerNode(cid, current.value))
            for child in (current.left, current.right):
                if child is not None:
                    links.append(VisualizerLink(cid, self.node_id(child)))
                    queue.append(child)
        return Snapshot(nodes, links)

    def get_initial_state(self) -> Snapshot:
        return self._snapshot()

    # ── Traversal helper ────────────────────────────────────────
    def _search_path(self, value, stop_on_match=True) -> List[TreeNode]:
        path = []
        current = self._tree.root
        while current is not None:
            path.append(current)
            if stop_on_match and value == current.value:
                break
            current = current.left if value < current.value else current.right
        return path

    # ─────────────────────────────────────────────────────────────
    #  INSERT
    # ─────────────────────────────────────────────────────────────

    def insert(self, value) -> Plan:
        """
        Plan for inserting ``value``.

        Steps:  VISIT × path  →  FINALIZE_INSERT
        """
        # walk exactly like BinarySearchTree.insert (duplicates go right)
        path = self._search_path(value, stop_on_match=False)
        steps: Plan = [VisitStep(node_id=self.node_id(n)) for n in path]

        new_node = self._tree.insert(value)
        new_id   = self.node_id(new_node)
        parent   = path[-1] if path else None
        new_link = link_id(self.node_id(parent), new_id) if parent else NO_LINK

        snap = self._snapshot()
        steps.append(FinalizeInsertStep(nodes=snap.nodes, links=snap.links,
                                        new_node_id=new_id, new_link_id=new_link))
        logger.debug("insert %r: %d steps, new node %s", value, len(steps), new_id)
        return steps

    # ─────────────────────────────────────────────────────────────
    #  DELETE
    #
    #  not found → VISIT × path (nothing else)
    #  0/1 child → VISIT × path, HIGHLIGHT, FINALIZE
    #  2 children→ VISIT × path, HIGHLIGHT, VISIT × successor path,
    #              HIGHLIGHT(both), FADE_OUT(edge), HIDE_VISITOR,
    #              FADE_OUT(node), MOVE_NODE, FINALIZE
    #
    #  The edge must be gone before the successor moves and the cursor
    #  hidden before the node fades.
    # ─────────────────────────────────────────────────────────────

    def delete(self, value) -> Plan:
        """Plan for deleting one node holding ``value``."""
        path  = self._search_path(value)
        steps: Plan = [VisitStep(node_id=self.node_id(n)) for n in path]

        target = path[-1] if path and path[-1].value == value else None
        if target is None:
            logger.debug("delete %r: not found after %d visits", value, len(steps))
            return steps

        target_id = self.node_id(target)
        steps.append(HighlightStep(node_ids=[target_id], color=DELETE_COLOR))

        if target.left is not None and target.right is not None:
            succ_parent = target
            successor   = target.right
            succ_path   = [successor]
            while successor.left is not None:
                succ_parent = successor
                successor   = successor.left
                succ_path.append(successor)

            steps.extend(VisitStep(node_id=self.node_id(n)) for n in succ_path)

            succ_id = self.node_id(successor)
            steps.append(HighlightStep(node_ids=[target_id, succ_id],
                                       color=DELETE_COLOR))
            steps.append(FadeOutStep(element_ids=[
                link_id(self.node_id(succ_parent), succ_id)]))
            steps.append(HideVisitorStep())
            steps.append(FadeOutStep(element_ids=[target_id]))
            steps.append(MoveNodeStep(node_id=succ_id, to_node_id=target_id))

        self._tree.delete(value)

        snap = self._snapshot()
        steps.append(FinalizeStep(nodes=snap.nodes, links=snap.links))
        logger.debug("delete %r: %d steps", value, len(steps))
        return steps

    # ─────────────────────────────────────────────────────────────
    #  FIND
    # ─────────────────────────────────────────────────────────────

    def find(self, value) -> Plan:
        """Plan for a plain search: one VISIT per node descended."""
        return [VisitStep(node_id=self.node_id(n)) for n in self._search_path(value)]

    # ─────────────────────────────────────────────────────────────
    #  NARRATION
    # ─────────────────────────────────────────────────────────────

    def describe(self, step: Step) -> str:
        """One-line, human-readable description of ``step``."""
        def val(nid):
            return self._values.get(nid, nid)

        def element(eid):
            if "->" in eid:
                src, dst = eid.split("->", 1)
                return f"edge {val(src)}→{val(dst)}"
            return f"node {val(eid)}"

        t = step.type
        if t is StepType.VISIT:
            return f"Visit {val(step.node_id)}"
        if t is StepType.HIGHLIGHT:
            return "Highlight " + ", ".join(str(val(n)) for n in step.node_ids)
        if t is StepType.FADE_OUT:
            return "Fade out " + ", ".join(element(e) for e in step.element_ids)
        if t is StepType.HIDE_VISITOR:
            return "Hide cursor"
        if t is StepType.MOVE_NODE:
            return f"Move {val(step.node_id)} into {val(step.to_node_id)}'s place"
        if t is StepType.UPDATE_VALUE:
            return f"Relabel {val(step.node_id)} as {step.new_value}"
        if t is StepType.FINALIZE_INSERT:
            return f"Insert {val(step.new_node_id)}"
        return "Settle tree"
