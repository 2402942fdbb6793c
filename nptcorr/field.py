# Copyright (c) 2003-2024 by Mike Jarvis
#
# NptCorr is free software: redistribution and use in source and binary forms,
# with or without modification, are permitted provided that the following
# conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions, and the disclaimer given in the accompanying LICENSE
#    file.
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions, and the disclaimer given in the documentation
#    and/or other materials provided with the distribution.

"""
.. module:: field
"""

import numpy as np
import weakref


class Cell(object):
    """A single node in the tree structure of a `Field`.

    A cell covers the points with tree-ordered indices ``start <= i < end`` of its field,
    and knows the bounding box ``lo``, ``hi`` of those points.  Non-leaf cells have exactly
    two daughter cells, which partition the parent's index range.

    Attributes:
        field:      The `Field` this cell belongs to.
        start:      The first index (in tree order) of the points in this cell.
        end:        One past the last index of the points in this cell.
        lo:         The minimum position in each dimension.
        hi:         The maximum position in each dimension.
        size:       Half the diagonal of the bounding box.  So every point in the cell is
                    within this distance of the center of the box.
        depth:      The depth of this cell in the tree.  (The root has depth 0.)
    """
    __slots__ = ('field', 'start', 'end', 'lo', 'hi', 'size', 'depth', '_left', '_right')

    def __init__(self, field, start, end, depth=0):
        self.field = field
        self.start = start
        self.end = end
        self.depth = depth
        pos = field.pos[start:end]
        self.lo = pos.min(axis=0)
        self.hi = pos.max(axis=0)
        self.size = 0.5 * float(np.sqrt(np.sum((self.hi - self.lo)**2)))
        self._left = None
        self._right = None

    @property
    def n(self):
        """The number of points in this cell."""
        return self.end - self.start

    @property
    def center(self):
        """The center of the bounding box."""
        return 0.5 * (self.lo + self.hi)

    def is_leaf(self):
        return self._left is None

    def left_child(self):
        return self._left

    def right_child(self):
        return self._right

    def child(self, left):
        """Return the left daughter if ``left`` is True, else the right daughter.
        """
        return self._left if left else self._right

    def min_dist(self, other):
        """The minimum possible distance between a point in this cell and one in ``other``.
        """
        gap = np.maximum(0., np.maximum(self.lo - other.hi, other.lo - self.hi))
        return float(np.sqrt(np.sum(gap**2)))

    def max_dist(self, other):
        """The maximum possible distance between a point in this cell and one in ``other``.
        """
        span = np.maximum(np.abs(self.hi - other.lo), np.abs(other.hi - self.lo))
        return float(np.sqrt(np.sum(span**2)))

    def __repr__(self):
        return 'Cell(start=%d, end=%d, depth=%d, size=%g)'%(
                self.start, self.end, self.depth, self.size)


class Field(object):
    r"""A Field is the object that stores the tree structure we use for efficient
    calculation of the correlation functions.

    The root cell in the tree has information about the whole field: the total number of
    points and the bounding box of their positions.  It points to two sub-cells which each
    describe about half the points.  These are commonly referred to as "daughter cells".
    They in turn point to two more cells each, and so on until we get to cells that have at
    most ``leaf_size`` points (or whose points are all at the same position).  These lowest
    level cells are referred to as "leaves".

    The points are reordered into tree order when the field is built, so every cell
    corresponds to a contiguous range of indices into ``pos`` and ``w``.  The original
    catalog index of each point is kept in ``index``.

    The split is always done according to whichever dimension has the largest extent.
    The ``split_method`` parameter sets where in that dimension to split:

        - 'mean' means to divide the points at the average (mean) value.
        - 'median' means to divide the points at the median value.
        - 'middle' means to divide the points at midpoint between the minimum and maximum values.
        - 'random' means to divide the points randomly somewhere between the 40th and 60th
          percentile locations in the sorted list.

    Objects with zero weight are not included in the field.

    Parameters:
        cat (Catalog):      The catalog from which to build the field.
        leaf_size (int):    The maximum number of points in a leaf cell. (default: 16)
        split_method (str): Which split method to use. (default: 'mean')
        rng (RandomState):  If desired, a numpy.random.RandomState instance to use for the
                            random split method. (default: None)
        logger (Logger):    If desired, a logger object for logging. (default: None)
    """
    def __init__(self, cat, *, leaf_size=16, split_method='mean', rng=None, logger=None):
        if logger:
            logger.info('Building Field (leaf_size=%d, split_method=%s)',
                        leaf_size, split_method)
        if int(leaf_size) < 1:
            raise ValueError("leaf_size must be >= 1")
        if split_method not in ['mean', 'median', 'middle', 'random']:
            raise ValueError("Invalid split_method %s"%split_method)
        self.leaf_size = int(leaf_size)
        self.split_method = split_method
        self._rng = rng
        self._cat = weakref.ref(cat)
        self.coords = cat.coords

        use = np.where(cat.w != 0)[0]
        self.index = use
        self.pos = cat.pos[use].copy()
        self.w = cat.w[use].copy()
        self.ncells = 0
        self.nleaves = 0
        self.max_depth = 0

        if len(use) == 0:
            self.root = None
        else:
            self.root = self._build()
        if logger:
            logger.debug('Field has %d cells, %d leaves, max depth = %d',
                         self.ncells, self.nleaves, self.max_depth)

    @property
    def cat(self):
        """The catalog from which this field was constructed.

        It is stored as a weakref, so if the Catalog has already been garbage collected, this
        might be None.
        """
        return self._cat()

    @property
    def ntot(self):
        """The number of points in the field."""
        return len(self.w)

    @property
    def rng(self):
        if self._rng is None:
            self._rng = np.random.RandomState()
        return self._rng

    def _split_index(self, vals):
        # vals are sorted.  Return the number of points to put in the left daughter.
        n = len(vals)
        if self.split_method == 'median':
            return n // 2
        elif self.split_method == 'random':
            return int(n * self.rng.uniform(0.4, 0.6))
        elif self.split_method == 'mean':
            split = np.mean(vals)
        else:
            split = 0.5 * (vals[0] + vals[-1])
        mid = int(np.searchsorted(vals, split, side='right'))
        if mid == 0 or mid == n:
            # This can happen from round off when many points have the same value.
            mid = n // 2
        return mid

    def _build(self):
        # Build the tree using an explicit stack, so deep trees don't hit the recursion limit.
        root = Cell(self, 0, len(self.w))
        stack = [root]
        while stack:
            cell = stack.pop()
            self.ncells += 1
            self.max_depth = max(self.max_depth, cell.depth)
            extent = cell.hi - cell.lo
            if cell.n <= self.leaf_size or np.max(extent) == 0.:
                self.nleaves += 1
                continue
            k = int(np.argmax(extent))
            s = slice(cell.start, cell.end)
            order = np.argsort(self.pos[s,k], kind='stable')
            self.pos[s] = self.pos[s][order]
            self.w[s] = self.w[s][order]
            self.index[s] = self.index[s][order]
            mid = cell.start + max(1, min(cell.n-1, self._split_index(self.pos[s,k])))
            cell._left = Cell(self, cell.start, mid, cell.depth+1)
            cell._right = Cell(self, mid, cell.end, cell.depth+1)
            stack.append(cell._right)
            stack.append(cell._left)
        return root

    def leaves(self):
        """Iterate over the leaf cells in tree order.
        """
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            cell = stack.pop()
            if cell.is_leaf():
                yield cell
            else:
                stack.append(cell.right_child())
                stack.append(cell.left_child())

    def __repr__(self):
        return 'Field(ntot=%d, leaf_size=%d, split_method=%r)'%(
                self.ntot, self.leaf_size, self.split_method)
