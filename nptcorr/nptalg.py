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
.. module:: nptalg
"""

import numpy as np

from .nodetuple import NodeTuple
from .config import setup_logger


class NptAlg(object):
    r"""The multi-tree branch and bound algorithm for N-point correlations.

    The algorithm walks the trees of all the slots at once.  Starting from the tuple of root
    cells, each node tuple is handled in exactly one of three ways:

        1. If all of its cells are leaves, the matcher computes the base case, and
           ``num_base_cases`` is incremented.
        2. Otherwise, if the matcher's prune test says there can be no match in these cells,
           the whole region is skipped, and ``num_prunes`` is incremented.
        3. Otherwise, the largest non-leaf cell is split, and each of the two daughter node
           tuples is explored, unless the symmetry check says that it cannot contain any
           point tuple that we count.

    The traversal is depth first, always finishing the left daughter before the right one.
    It uses an explicit stack, so there is no limit on the depth of the trees.

    With ``brute=True``, the traversal is skipped, and the matcher's base case is run once on
    the root cells.  This computes the same result (for a sound matcher) by checking every
    tuple of points.  The counters are left at 0 in this case.

    Parameters:
        fields (list):          The `Field` for each distinct point set.
        multiplicities (list):  How many slots each field fills.  So N is the sum of these.
        matcher (Matcher):      The matcher, which also accumulates the results.
        brute (bool):           Whether to do the brute force calculation.  (default: False)
        logger:                 If desired, a logger object for logging. (default: None, in
                                which case one will be built with verbose=1.)

    Attributes:
        num_base_cases: The number of base cases computed so far.
        num_prunes:     The number of node tuples pruned so far.
    """
    def __init__(self, fields, multiplicities, matcher, *, brute=False, logger=None):
        self.fields = list(fields)
        self.multiplicities = [int(m) for m in multiplicities]
        self.matcher = matcher
        self.brute = bool(brute)
        if logger is None:
            self.logger = setup_logger(1)
        else:
            self.logger = logger
        self.num_base_cases = 0
        self.num_prunes = 0

        # Check the configuration now, so that errors are raised before any counting.
        self._root = NodeTuple.from_fields(self.fields, self.multiplicities)
        if len(self._root) != matcher.npoint:
            raise ValueError("The matcher is for %d points, but the multiplicities sum to %d"%(
                             matcher.npoint, len(self._root)))
        dims = set(f.pos.shape[1] for f in self.fields)
        if len(dims) != 1:
            raise ValueError("All fields must have positions of the same dimension")

    @property
    def npoint(self):
        return len(self._root)

    def compute(self):
        """Run the calculation, accumulating the results into the matcher.

        Any exception raised by the matcher propagates out of this function, in which case
        the matcher's results should be considered incomplete.
        """
        self.logger.info('Starting %d-point calculation (multiplicities = %s, brute = %s)',
                         self.npoint, self.multiplicities, self.brute)
        if not self._root.is_admissible():
            self.logger.warning("Some field has fewer points than its multiplicity.  " +
                                "There are no tuples to count.")
        elif self.brute:
            self.matcher.compute_base_case(self._root)
        else:
            self._traverse(self._root)
        self.logger.info('Done: num_base_cases = %d, num_prunes = %d',
                         self.num_base_cases, self.num_prunes)

    def _traverse(self, root):
        matcher = self.matcher
        stack = [root]
        while stack:
            nodes = stack.pop()
            if nodes.all_leaves:
                matcher.compute_base_case(nodes)
                self.num_base_cases += 1
            elif not matcher.test_node_tuple(nodes):
                self.num_prunes += 1
            else:
                ind = nodes.ind_to_split
                # Right first, so the left daughter is popped next.
                if nodes.check_symmetry(ind, False):
                    stack.append(nodes.child(False))
                if nodes.check_symmetry(ind, True):
                    stack.append(nodes.child(True))

    def __repr__(self):
        return 'NptAlg(npoint=%d, multiplicities=%s, matcher=%r, brute=%s)'%(
                self.npoint, self.multiplicities, self.matcher, self.brute)


def compare_brute(fields, multiplicities, matcher, *, logger=None, rtol=1.e-8):
    """Check that the tree calculation gives the same results as the brute force one.

    This runs both calculations on copies of the given matcher, so the input matcher is not
    changed.  It is meant for checking that a matcher's prune test is sound.  A mismatch is
    reported with a warning on the logger.

    Parameters:
        fields (list):          The `Field` for each distinct point set.
        multiplicities (list):  How many slots each field fills.
        matcher (Matcher):      The matcher to check.
        logger:                 If desired, a logger object for logging. (default: None)
        rtol (float):           The relative tolerance to use for the weights. (default: 1.e-8)

    Returns:
        Whether the two calculations agree.
    """
    if logger is None:
        logger = setup_logger(1)
    m1 = matcher.copy()
    m1.clear()
    m2 = matcher.copy()
    m2.clear()
    NptAlg(fields, multiplicities, m1, brute=False, logger=logger).compute()
    NptAlg(fields, multiplicities, m2, brute=True, logger=logger).compute()
    ok = (np.array_equal(m1.ntuples, m2.ntuples) and
          np.allclose(m1.weight, m2.weight, rtol=rtol, atol=0.))
    if not ok:
        logger.warning("Warning: tree and brute force results differ.\n" +
                       "    tree: ntuples = %s, weight = %s\n"%(m1.ntuples, m1.weight) +
                       "    brute: ntuples = %s, weight = %s"%(m2.ntuples, m2.weight))
    else:
        logger.info("Tree and brute force results agree.")
    return ok
