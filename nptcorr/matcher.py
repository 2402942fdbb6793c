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
.. module:: matcher
"""

import itertools
import numpy as np


class Matcher(object):
    r"""The base class for the policies that decide which point tuples count as matches.

    A matcher supplies the two operations that `NptAlg` needs while walking the trees:

        - ``test_node_tuple(nodes)`` decides whether the cells in a `NodeTuple` might contain
          any matching tuple of points.  Returning False prunes that whole region.
        - ``compute_base_case(nodes)`` examines every tuple of points in the cells and
          accumulates the matches into the matcher's own result arrays.

    .. warning::

        The prune test must be *sound*: it may only return False if no tuple of points drawn
        from the cells can possibly match.  An unsound test does not raise any error.  It
        just silently drops matches from the result.  `compare_brute` can be used to check a
        new matcher against the brute force calculation.

    When several slots draw points from the same tree, ``compute_base_case`` must only count
    the point tuples whose tree-order indices are strictly increasing across the slots of
    that group (see `NodeTuple`).  This is what makes each distinct set of points count once.

    The results are stored as numpy arrays with one entry per template:

    Attributes:
        npoint:     The number of points in each tuple.
        ntemplates: The number of templates (i.e. result bins).
        ntuples:    The number of matching tuples for each template.
        weight:     The total weight of the matching tuples for each template, where the
                    weight of a tuple is the product of the weights of its points.
    """
    def __init__(self, npoint, ntemplates):
        if int(npoint) != npoint or npoint < 2:
            raise ValueError("npoint must be an integer >= 2")
        if ntemplates < 1:
            raise ValueError("At least one template is required")
        self.npoint = int(npoint)
        self.ntemplates = int(ntemplates)
        self.ntuples = np.zeros(self.ntemplates, dtype=float)
        self.weight = np.zeros(self.ntemplates, dtype=float)

    def test_node_tuple(self, nodes):
        """Return whether the cells in ``nodes`` might contain a matching tuple of points.

        Parameters:
            nodes (NodeTuple):  The node tuple to test.

        Returns:
            False only if there is definitely no match.
        """
        raise NotImplementedError("Derived classes must define test_node_tuple")

    def compute_base_case(self, nodes):
        """Accumulate all matching tuples of points in the cells of ``nodes``.

        The cells are not required to be leaves.  The brute force calculation calls this once
        with the root cells.

        Parameters:
            nodes (NodeTuple):  The node tuple whose points should be checked.
        """
        raise NotImplementedError("Derived classes must define compute_base_case")

    def _check_nodes(self, nodes):
        if len(nodes) != self.npoint:
            raise ValueError("This matcher requires %d slots, but got %d"%(
                             self.npoint, len(nodes)))

    @property
    def nonzero(self):
        """Return if there are any values accumulated yet.  (i.e. ntuples > 0)
        """
        return bool(np.any(self.ntuples != 0))

    def clear(self):
        """Clear the accumulated results.
        """
        self.ntuples[:] = 0.
        self.weight[:] = 0.

    def copy(self):
        """Make a copy"""
        ret = self.__class__.__new__(self.__class__)
        for key, item in self.__dict__.items():
            if isinstance(item, np.ndarray):
                # Only items that might change need to be deep copied.
                ret.__dict__[key] = item.copy()
            else:
                ret.__dict__[key] = item
        return ret

    def _check_compatible(self, other):
        if not isinstance(other, self.__class__):
            raise TypeError("Can only add another %s object"%self.__class__.__name__)
        if self.npoint != other.npoint or self.ntemplates != other.ntemplates:
            raise ValueError("%s to be added is not compatible"%self.__class__.__name__)

    def __iadd__(self, other):
        """Add a second matcher's results to this one.

        .. note::

            This is used to combine the results of calculations done on different parts of
            the search space.  The templates should be the same for both.
        """
        self._check_compatible(other)
        self.ntuples[:] += other.ntuples[:]
        self.weight[:] += other.weight[:]
        return self

    def __eq__(self, other):
        return (isinstance(other, self.__class__) and
                self.npoint == other.npoint and
                self.ntemplates == other.ntemplates and
                np.array_equal(self.ntuples, other.ntuples) and
                np.array_equal(self.weight, other.weight))


class MultiMatcher(Matcher):
    r"""A matcher with a stack of templates of pairwise distance bounds.

    Each template t is given by two symmetric N x N matrices, ``lower[t]`` and ``upper[t]``.
    A tuple of N points :math:`(p_0, ..., p_{N-1})` matches template t if the points can be
    assigned to the vertices of the template in some order :math:`s` such that

    .. math::

        lower[t][s_i, s_j] \le |p_i - p_j| \le upper[t][s_i, s_j]

    for every pair :math:`i < j`.  The diagonals of the matrices are ignored.  A tuple may
    match several templates, in which case it counts for each of them.

    The prune test uses the minimum and maximum distances between the bounding boxes of each
    pair of cells, so it never rejects a region that contains a match.

    Parameters:
        lower (array):      The lower bounds, shape (ntemplates, N, N).
        upper (array):      The upper bounds, shape (ntemplates, N, N).
        max_block (int):    The maximum number of point tuples to examine at once in the
                            base case. (default: 2**18)
    """
    def __init__(self, lower, upper, *, max_block=2**18):
        lower = np.array(lower, dtype=float)
        upper = np.array(upper, dtype=float)
        if lower.ndim != 3 or upper.ndim != 3:
            raise ValueError("lower and upper must be 3-d arrays (ntemplates, N, N)")
        if lower.shape != upper.shape:
            raise ValueError("lower and upper have different shapes: %s != %s"%(
                             lower.shape, upper.shape))
        ntemplates, n1, n2 = lower.shape
        if n1 != n2:
            raise ValueError("Template matrices must be square")
        super().__init__(n1, ntemplates)
        if int(max_block) < 1:
            raise ValueError("max_block must be positive")
        self.max_block = int(max_block)

        self.pairs = list(itertools.combinations(range(self.npoint), 2))
        ii = np.array([p[0] for p in self.pairs])
        jj = np.array([p[1] for p in self.pairs])
        for name, m in [('lower', lower), ('upper', upper)]:
            if not np.array_equal(m[:,ii,jj], m[:,jj,ii]):
                raise ValueError("%s bounds must be symmetric matrices"%name)
            if np.any(m[:,ii,jj] < 0):
                raise ValueError("%s bounds must be non-negative"%name)
        if np.any(lower[:,ii,jj] > upper[:,ii,jj]):
            raise ValueError("lower bounds must not exceed upper bounds")
        self.lower = lower
        self.upper = upper

        # For each template, the distinct vectors of (lower, upper) pair bounds over all
        # ways of assigning the points to the template vertices.
        self._bounds = []
        for t in range(ntemplates):
            rows = []
            for s in itertools.permutations(range(self.npoint)):
                s = np.array(s)
                rows.append(np.concatenate([lower[t][s[ii],s[jj]], upper[t][s[ii],s[jj]]]))
            rows = np.unique(np.array(rows), axis=0)
            npairs = len(self.pairs)
            self._bounds.append((rows[:,:npairs], rows[:,npairs:]))

    @property
    def npairs(self):
        return len(self.pairs)

    def test_node_tuple(self, nodes):
        self._check_nodes(nodes)
        dmin = np.empty(self.npairs)
        dmax = np.empty(self.npairs)
        for k, (i,j) in enumerate(self.pairs):
            dmin[k] = nodes[i].min_dist(nodes[j])
            dmax[k] = nodes[i].max_dist(nodes[j])
        for lo, hi in self._bounds:
            if np.any(np.all((dmin <= hi) & (dmax >= lo), axis=1)):
                return True
        return False

    def compute_base_case(self, nodes):
        self._check_nodes(nodes)
        cells = list(nodes)
        sizes = [c.n for c in cells]
        total = int(np.prod(sizes, dtype=np.int64))
        # Consecutive slots within a shared-tree group must have increasing indices.
        order_pairs = set()
        for group in nodes.groups:
            for a, b in zip(group[:-1], group[1:]):
                order_pairs.add((a,b))

        for first in range(0, total, self.max_block):
            flat = np.arange(first, min(first+self.max_block, total))
            local = np.unravel_index(flat, sizes)
            index = [c.start + k for c, k in zip(cells, local)]
            if order_pairs:
                use = np.ones(len(flat), dtype=bool)
                for a, b in order_pairs:
                    use &= index[a] < index[b]
                if not np.any(use):
                    continue
                index = [k[use] for k in index]
            self._accumulate(cells, index)

    def _accumulate(self, cells, index):
        pos = [c.field.pos[k] for c, k in zip(cells, index)]
        wt = np.ones(len(index[0]))
        for c, k in zip(cells, index):
            wt *= c.field.w[k]
        d = np.array([np.sqrt(np.sum((pos[i]-pos[j])**2, axis=1)) for i,j in self.pairs])
        for t, (lo, hi) in enumerate(self._bounds):
            match = np.zeros(d.shape[1], dtype=bool)
            for lo_s, hi_s in zip(lo, hi):
                match |= np.all((d >= lo_s[:,None]) & (d <= hi_s[:,None]), axis=0)
            self.ntuples[t] += np.sum(match)
            self.weight[t] += np.sum(wt[match])

    def _check_compatible(self, other):
        super()._check_compatible(other)
        if not (np.array_equal(self.lower, other.lower) and
                np.array_equal(self.upper, other.upper)):
            raise ValueError("%s to be added has different templates"%self.__class__.__name__)

    def __repr__(self):
        return '%s(npoint=%d, ntemplates=%d)'%(self.__class__.__name__, self.npoint,
                                               self.ntemplates)


class DistanceMatcher(MultiMatcher):
    r"""A matcher with a single template of pairwise distance bounds.

    The bounds may be given either as N x N matrices, or as scalars, which means that every
    pair of points must have a separation between ``lower`` and ``upper``.  In the latter case,
    ``npoint`` is required.

        >>> m = nptcorr.DistanceMatcher(0., 10., npoint=3)   # All three sides <= 10
        >>> m = nptcorr.DistanceMatcher(lower_matrix, upper_matrix)

    Parameters:
        lower (float or array): The lower bound(s) on the pair separations.
        upper (float or array): The upper bound(s) on the pair separations.
        npoint (int):           The number of points. Required if lower and upper are scalars.
                                (default: None)
        max_block (int):        The maximum number of point tuples to examine at once in the
                                base case. (default: 2**18)
    """
    def __init__(self, lower, upper, npoint=None, *, max_block=2**18):
        lower = np.array(lower, dtype=float)
        upper = np.array(upper, dtype=float)
        if lower.ndim == 0 and upper.ndim == 0:
            if npoint is None:
                raise TypeError("npoint is required when lower and upper are scalars")
            if int(npoint) != npoint or npoint < 2:
                raise ValueError("npoint must be an integer >= 2")
            npoint = int(npoint)
            lower = np.full((npoint, npoint), float(lower))
            upper = np.full((npoint, npoint), float(upper))
        else:
            if lower.ndim == 0:
                lower = np.full(upper.shape, float(lower))
            if upper.ndim == 0:
                upper = np.full(lower.shape, float(upper))
            if lower.ndim != 2:
                raise ValueError("lower and upper must be scalars or N x N matrices")
            if npoint is not None and lower.shape[0] != npoint:
                raise ValueError("npoint=%d does not match the matrix size %d"%(
                                 npoint, lower.shape[0]))
        super().__init__(lower[np.newaxis], upper[np.newaxis], max_block=max_block)


class AngleMatcher(MultiMatcher):
    r"""A 3-point matcher for triangles with two fixed sides and a range of opening angles.

    Each template is a triangle with sides of length ``r1`` and ``r2`` meeting at an opening
    angle :math:`\theta`.  So the third side has length

    .. math::

        r_3 = \sqrt{r_1^2 + r_2^2 - 2 r_1 r_2 \cos\theta}

    Each side s is matched within a fractional tolerance: :math:`s (1 \pm bt/2)`, where bt is
    the ``bin_thickness``.  There is one template (and so one result bin) for each value
    in ``thetas``.

    Parameters:
        r1 (float):             The length of the first side.
        r2 (float):             The length of the second side.
        thetas (array):         The opening angles in radians.
        bin_thickness (float):  The fractional width of the allowed range for each side.
                                Must be in [0, 2).
        max_block (int):        The maximum number of point tuples to examine at once in the
                                base case. (default: 2**18)
    """
    def __init__(self, r1, r2, thetas, bin_thickness, *, max_block=2**18):
        if r1 <= 0 or r2 <= 0:
            raise ValueError("r1 and r2 must be positive")
        if not (0 <= bin_thickness < 2):
            raise ValueError("bin_thickness must be in [0, 2)")
        thetas = np.atleast_1d(np.array(thetas, dtype=float))
        if thetas.ndim != 1 or len(thetas) == 0:
            raise ValueError("thetas must be a non-empty 1-d array")
        self.r1 = float(r1)
        self.r2 = float(r2)
        self.thetas = thetas
        self.bin_thickness = float(bin_thickness)
        r3 = np.sqrt(np.maximum(0., r1**2 + r2**2 - 2*r1*r2*np.cos(thetas)))

        sides = np.zeros((len(thetas), 3, 3))
        sides[:,0,1] = sides[:,1,0] = r1
        sides[:,0,2] = sides[:,2,0] = r2
        sides[:,1,2] = sides[:,2,1] = r3
        lower = sides * (1. - 0.5*bin_thickness)
        upper = sides * (1. + 0.5*bin_thickness)
        super().__init__(lower, upper, max_block=max_block)

    @property
    def r3(self):
        """The length of the third side for each opening angle."""
        return np.sqrt(np.maximum(0., self.r1**2 + self.r2**2 -
                                   2*self.r1*self.r2*np.cos(self.thetas)))

    def __repr__(self):
        return 'AngleMatcher(r1=%r, r2=%r, thetas=%r, bin_thickness=%r)'%(
                self.r1, self.r2, self.thetas.tolist(), self.bin_thickness)
