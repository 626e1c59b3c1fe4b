"""
Binary search tree engine.

Plain pointer-rewiring BST with no knowledge of animation.  The plan
compiler (plan.py) drives this class and narrates what it does; this
module only answers "what happened" (paths, promoted successor, ...).

Ordering rule: values strictly less than a node go LEFT, everything
else (including duplicates) goes RIGHT.  No rebalancing is done, so the
shape depends entirely on insertion order.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


# ═════════════════════════════════════════════════════════════════
#  TREE NODE
#
#  Parent exclusively owns its children.  No parent pointers, so a
#  node can never be reached twice and deletion only has to rewire
#  the slot that points at it.
# ═════════════════════════════════════════════════════════════════
class TreeNode:
    """
    A single node in the binary search tree.

    Attributes:
        value (int)          : Node value (any totally-ordered scalar).
        left  (TreeNode|None): Left child  (values < value).
        right (TreeNode|None): Right child (values >= value).
    """
    __slots__ = ('value', 'left', 'right')

    def __init__(self, value):
        self.value = value
        self.left  = None
        self.right = None

    def __repr__(self):
        return f"TreeNode({self.value!r})"


@dataclass
class DeletionResult:
    """Facts about a completed deletion."""

    deleted: TreeNode
    parent_of_deleted: Optional[TreeNode]
    successor: Optional[TreeNode] = None
    parent_of_successor: Optional[TreeNode] = None


# ═════════════════════════════════════════════════════════════════
#  BINARY SEARCH TREE
# ═════════════════════════════════════════════════════════════════
class BinarySearchTree:
    """
    Unbalanced binary search tree.

    Attributes:
        root (TreeNode|None): Root of the tree (None when empty).
    """

    def __init__(self):
        self.root = None

    def __len__(self):
        return len(self.in_order())

    # ─────────────────────────────────────────────────────────────
    #  INSERT
    # ─────────────────────────────────────────────────────────────

    def insert(self, value) -> TreeNode:
        """
        Insert a value at the first empty child slot on its search path.

        Args:
            value: The value to insert.

        Returns:
            TreeNode: The newly created node.
        """
        new_node = TreeNode(value)
        if self.root is None:
            self.root = new_node
            return new_node

        current = self.root
        while True:
            if value < current.value:
                if current.left is None:
                    current.left = new_node
                    return new_node
                current = current.left
            else:
                if current.right is None:
                    current.right = new_node
                    return new_node
                current = current.right

    # ─────────────────────────────────────────────────────────────
    #  SEARCH
    # ─────────────────────────────────────────────────────────────

    def find_with_parent(self, value) -> Tuple[Optional[TreeNode], Optional[TreeNode]]:
        """
        Locate a value and the last node visited before it.

        Returns:
            tuple: (node, parent).  When the value is absent, node is
                   None and parent is the deepest node reached.
        """
        node   = self.root
        parent = None
        while node is not None and node.value != value:
            parent = node
            node = node.left if value < node.value else node.right
        return node, parent

    def find_path(self, value) -> Optional[List]:
        """
        Values visited while searching for ``value``, ending with it.

        Returns:
            list | None: The visited values, or None if not present.
        """
        path = []
        current = self.root
        while current is not None:
            path.append(current.value)
            if value < current.value:
                current = current.left
            elif value > current.value:
                current = current.right
            else:
                return path
        return None

    @staticmethod
    def find_min(node: TreeNode) -> TreeNode:
        """Leftmost (minimum) node of the subtree rooted at ``node``."""
        while node.left is not None:
            node = node.left
        return node

    # ─────────────────────────────────────────────────────────────
    #  DELETE
    #
    #    a) 0 or 1 child → splice the child into the parent's slot
    #    b) 2 children   → promote the in-order successor
    #
    #  For (b) the successor is detached BEFORE it is re-linked.  When
    #  the successor is the deleted node's own right child, its old
    #  parent is the node being replaced; re-linking first would make
    #  the successor its own right child.
    # ─────────────────────────────────────────────────────────────

    def delete(self, value) -> Optional[DeletionResult]:
        """
        Remove one node holding ``value``.

        Args:
            value: The value to delete.

        Returns:
            DeletionResult | None: What was rewired, or None when the
            value is not in the tree (the tree is left untouched).
        """
        node, parent = self.find_with_parent(value)
        if node is None:
            return None

        if node.left is None or node.right is None:
            child = node.left if node.left is not None else node.right
            self._replace_child(parent, node, child)
            return DeletionResult(node, parent)

        succ_parent = node
        successor   = node.right
        while successor.left is not None:
            succ_parent = successor
            successor   = successor.left

        # detach: successor's right subtree takes its old slot
        if succ_parent.left is successor:
            succ_parent.left = successor.right
        else:
            succ_parent.right = successor.right

        # reattach: successor inherits the deleted node's children
        successor.left  = node.left
        successor.right = node.right
        self._replace_child(parent, node, successor)

        return DeletionResult(node, parent, successor, succ_parent)

    def _replace_child(self, parent, old, new):
        """Point whichever slot referenced ``old`` at ``new``."""
        if parent is None:
            self.root = new
        elif parent.left is old:
            parent.left = new
        else:
            parent.right = new

    # ─────────────────────────────────────────────────────────────
    #  TRAVERSAL / STATS
    # ─────────────────────────────────────────────────────────────

    def in_order(self) -> List:
        """All values in sorted (in-order) sequence."""
        values = []
        stack = []
        node = self.root
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                node = node.left
            node = stack.pop()
            values.append(node.value)
            node = node.right
        return values

    def height(self) -> int:
        """Number of levels (0 for an empty tree)."""
        best  = 0
        stack = [(self.root, 1)] if self.root is not None else []
        while stack:
            node, depth = stack.pop()
            best = max(best, depth)
            for child in (node.left, node.right):
                if child is not None:
                    stack.append((child, depth + 1))
        return best


# ═════════════════════════════════════════════════════════════════
#  VALIDATION
# ═════════════════════════════════════════════════════════════════

def validate_bst(node, low=None, high=None) -> tuple:
    """
    Check the ordering invariant below ``node``.

    Every value must satisfy ``low <= value < high``; a left child
    tightens ``high`` to its parent's value (strict), a right child
    tightens ``low`` (inclusive, since duplicates go right).

    Walks with an explicit stack, so degenerate (list-shaped) trees of
    any size are fine.

    Args:
        node: Subtree root (TreeNode or None).
        low:  Inclusive lower bound, or None for unbounded.
        high: Exclusive upper bound, or None for unbounded.

    Returns:
        (is_valid, error_list)
    """
    errors = []
    stack = [(node, low, high)]
    while stack:
        n, lo, hi = stack.pop()
        if n is None:
            continue
        if lo is not None and n.value < lo:
            errors.append(f"BST violation: node {n.value} < {lo}")
        if hi is not None and n.value >= hi:
            errors.append(f"BST violation: node {n.value} >= {hi}")
        stack.append((n.right, n.value, hi))
        stack.append((n.left, lo, n.value))
    return len(errors) == 0, errors
