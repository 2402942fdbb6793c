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
.. module:: nodetuple
"""


def _has_increasing_indices(cells):
    # Whether there are indices i_1 < i_2 < ... < i_k with each i_j in cells[j].
    # Taking the smallest allowed index at each step is optimal, so one pass suffices.
    last = -1
    for c in cells:
        i = max(c.start, last+1)
        if i >= c.end:
            return False
        last = i
    return True


class NodeTuple(object):
    r"""An assignment of one tree cell to each of the N slots of an N-point correlation.

    A NodeTuple represents the region of the search space consisting of all the point
    tuples with the point for slot j drawn from ``cells[j]``.  Node tuples are never
    modified after construction.  Splitting one produces a new tuple with exactly one
    slot replaced by one of its daughter cells.

    When several slots draw from the same tree, the same set of points could be reached
    in several orders.  To count each one only once, we only ever count point tuples whose
    tree-order indices are strictly increasing across the slots of each such group.
    `check_symmetry` uses this rule to skip branches that cannot contain any such tuple.

    Use `NodeTuple.from_fields` to build the root tuple for a set of fields.

    Parameters:
        cells (list):       The cell for each slot.
        tree_ids (list):    For each slot, the index of the tree it draws from.
        groups (tuple):     For each slot, the tuple of slot indices that draw from the same
                            tree.  (default: None, which means to compute it from tree_ids)

    Attributes:
        all_leaves:     Whether every slot's cell is a leaf.
        ind_to_split:   The slot to split next.  This is the non-leaf slot with the largest
                        cell size.  Ties go to the lowest slot index.  None if all_leaves.
    """
    __slots__ = ('cells', 'tree_ids', 'groups', 'all_leaves', 'ind_to_split')

    def __init__(self, cells, tree_ids, groups=None):
        self.cells = tuple(cells)
        self.tree_ids = tuple(tree_ids)
        if len(self.cells) != len(self.tree_ids):
            raise ValueError("cells and tree_ids must have the same length")
        if groups is None:
            groups = tuple(tuple(j for j, t in enumerate(self.tree_ids) if t == tid)
                           for tid in self.tree_ids)
        self.groups = groups

        self.all_leaves = True
        self.ind_to_split = None
        max_size = -1.
        for i, c in enumerate(self.cells):
            if not c.is_leaf():
                self.all_leaves = False
                if c.size > max_size:
                    max_size = c.size
                    self.ind_to_split = i

    @classmethod
    def from_fields(cls, fields, multiplicities):
        """Build the root node tuple for the given fields.

        Each field's root cell is repeated according to its multiplicity, so the total
        number of slots is the sum of the multiplicities.

        Parameters:
            fields (list):          A list of `Field` instances (or anything with a ``root``).
            multiplicities (list):  How many slots each field fills.

        Returns:
            A NodeTuple
        """
        fields = list(fields)
        multiplicities = list(multiplicities)
        if len(fields) == 0:
            raise ValueError("At least one field is required")
        if len(fields) != len(multiplicities):
            raise ValueError("Got %d fields, but %d multiplicities"%(
                             len(fields), len(multiplicities)))
        if any(int(m) != m or m < 1 for m in multiplicities):
            raise ValueError("Multiplicities must be positive integers: %s"%multiplicities)
        if sum(multiplicities) == 0:  # pragma: no cover  (Already checked above)
            raise ValueError("The total number of slots must be positive")
        for i, f in enumerate(fields):
            if any(f is g for g in fields[:i]):
                raise ValueError("The same field was given more than once. " +
                                 "Use a larger multiplicity instead.")
            if f.root is None:
                raise ValueError("Field %d is empty"%i)
        cells = []
        tree_ids = []
        for i, (f, m) in enumerate(zip(fields, multiplicities)):
            cells += [f.root] * int(m)
            tree_ids += [i] * int(m)
        return cls(cells, tree_ids)

    def child(self, left):
        """Make the daughter node tuple for splitting ``ind_to_split``.

        Parameters:
            left (bool):    Whether to take the left (True) or right (False) daughter.

        Returns:
            A new NodeTuple
        """
        ind = self.ind_to_split
        if ind is None:
            raise ValueError("Cannot split a node tuple whose cells are all leaves")
        cells = list(self.cells)
        cells[ind] = cells[ind].child(left)
        return NodeTuple(cells, self.tree_ids, self.groups)

    def check_symmetry(self, ind, left):
        """Check whether splitting slot ``ind`` to its left or right daughter gives a
        node tuple that can contain any point tuple we will count.

        For slots whose tree fills only that one slot, this is always True.  Otherwise,
        the daughter tuple is only worth exploring if there are points in the cells of
        that slot's group with strictly increasing indices.

        Parameters:
            ind (int):      Which slot to split.
            left (bool):    Whether to check the left (True) or right (False) daughter.

        Returns:
            Whether to explore this daughter.
        """
        group = self.group(ind)
        if len(group) == 1:
            return True
        new_cell = self.cells[ind].child(left)
        if new_cell is None:
            raise ValueError("Slot %d holds a leaf, which cannot be split"%ind)
        cells = [new_cell if j == ind else self.cells[j] for j in group]
        return _has_increasing_indices(cells)

    def is_admissible(self):
        """Whether this node tuple contains any point tuple we will count.

        This is False for the root tuple when some tree has fewer points than the number
        of slots it fills.
        """
        seen = set()
        for group in self.groups:
            if group in seen:
                continue
            seen.add(group)
            if len(group) > 1 and not _has_increasing_indices([self.cells[j] for j in group]):
                return False
        return True

    def group(self, ind):
        """The slots that draw from the same tree as slot ``ind``.
        """
        return self.groups[ind]

    def __len__(self):
        return len(self.cells)

    def __getitem__(self, i):
        return self.cells[i]

    def __iter__(self):
        return iter(self.cells)

    def __repr__(self):
        return 'NodeTuple(%s)'%(', '.join('%d:[%d,%d)'%(t, c.start, c.end)
                                           for t, c in zip(self.tree_ids, self.cells)))
