"""
Quadtree LOD Partition
Splits a square world region into cells that get smaller the closer they
are to a point of interest (usually the camera).
"""

import math

from config import ConfigurationError


class QuadTreeNode:
    """One cell of the tree. Has either no children or exactly four."""

    def __init__(self, min_corner, max_corner):
        self.min = (float(min_corner[0]), float(min_corner[1]))
        self.max = (float(max_corner[0]), float(max_corner[1]))
        self.centre = ((self.min[0] + self.max[0]) / 2.0,
                       (self.min[1] + self.max[1]) / 2.0)
        self.size = (self.max[0] - self.min[0], self.max[1] - self.min[1])
        self.children = []

    @property
    def bounds(self):
        return self.min, self.max

    def is_leaf(self):
        return not self.children

    def split(self):
        """Create the four equal quadrants: bottom-left, bottom-right, top-left, top-right."""
        (x0, y0), (x1, y1) = self.min, self.max
        mx, my = self.centre
        self.children = [
            QuadTreeNode((x0, y0), (mx, my)),
            QuadTreeNode((mx, y0), (x1, my)),
            QuadTreeNode((x0, my), (mx, y1)),
            QuadTreeNode((mx, my), (x1, y1)),
        ]
        return self.children

    def __repr__(self):
        return f"QuadTreeNode(centre={self.centre}, size={self.size})"


class QuadTree:
    """Distance-gated quadtree over an axis-aligned rectangle.

    A node splits when the point of interest lies closer to its centre than
    the node's width and the node is still wider than ``min_node_size``.
    The test is against distance, not containment, so neighbouring cells
    near the point also subdivide.
    """

    def __init__(self, min_corner, max_corner, min_node_size):
        if min_node_size <= 0:
            raise ConfigurationError(f"min_node_size must be positive, got {min_node_size}")
        if max_corner[0] <= min_corner[0] or max_corner[1] <= min_corner[1]:
            raise ConfigurationError(f"empty quadtree bounds {min_corner} .. {max_corner}")
        self.min_node_size = min_node_size
        self.root = QuadTreeNode(min_corner, max_corner)

    def insert_point_of_interest(self, point):
        """Subdivide toward ``point``, an (x, z) pair."""
        self._insert(self.root, (float(point[0]), float(point[1])))

    def _insert(self, node, point):
        distance = math.hypot(node.centre[0] - point[0], node.centre[1] - point[1])

        if distance < node.size[0] and node.size[0] > self.min_node_size:
            # Already split by an earlier point: refine the existing children
            children = node.children or node.split()
            for child in children:
                self._insert(child, point)

    def leaves(self):
        """All leaf cells in depth-first child order."""
        found = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf():
                found.append(node)
            else:
                stack.extend(reversed(node.children))
        return found
