# Copyright (c) 2003-2019 by Mike Jarvis
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

import numpy as np
import nptcorr

from test_helper import assert_raises, timer

def make_field(n, leaf_size=2, seed=8675309, scale=1.):
    rng = np.random.RandomState(seed)
    cat = nptcorr.Catalog(x=rng.random_sample(n)*scale, y=rng.random_sample(n)*scale)
    return cat.getField(leaf_size=leaf_size)

@timer
def test_root():
    f1 = make_field(50)
    f2 = make_field(30, seed=1234, scale=3.)

    nodes = nptcorr.NodeTuple.from_fields([f1], [3])
    assert len(nodes) == 3
    assert nodes.tree_ids == (0, 0, 0)
    assert nodes.groups == ((0,1,2),) * 3
    assert all(c is f1.root for c in nodes)
    assert nodes[1] is f1.root
    assert not nodes.all_leaves
    assert nodes.ind_to_split == 0
    assert nodes.is_admissible()
    assert repr(nodes) == 'NodeTuple(0:[0,50), 0:[0,50), 0:[0,50))'

    nodes = nptcorr.NodeTuple.from_fields([f1, f2], [1, 2])
    assert len(nodes) == 3
    assert nodes.tree_ids == (0, 1, 1)
    assert nodes.group(0) == (0,)
    assert nodes.group(1) == nodes.group(2) == (1,2)
    # f2 is larger, so the first of its slots gets split first.
    assert f2.root.size > f1.root.size
    assert nodes.ind_to_split == 1

    # Errors in the configuration
    with assert_raises(ValueError):
        nptcorr.NodeTuple.from_fields([], [])
    with assert_raises(ValueError):
        nptcorr.NodeTuple.from_fields([f1, f2], [3])
    with assert_raises(ValueError):
        nptcorr.NodeTuple.from_fields([f1], [0])
    with assert_raises(ValueError):
        nptcorr.NodeTuple.from_fields([f1, f2], [2, -1])
    with assert_raises(ValueError):
        nptcorr.NodeTuple.from_fields([f1], [1.5])
    with assert_raises(ValueError):
        nptcorr.NodeTuple.from_fields([f1, f1], [1, 1])
    empty = nptcorr.Catalog(x=[], y=[]).getField()
    with assert_raises(ValueError):
        nptcorr.NodeTuple.from_fields([f1, empty], [1, 1])
    with assert_raises(ValueError):
        nptcorr.NodeTuple([f1.root, f2.root], [0])

@timer
def test_split():
    f1 = make_field(50)
    f2 = make_field(30, seed=1234, scale=0.1)

    nodes = nptcorr.NodeTuple.from_fields([f1, f2], [1, 1])
    assert nodes.ind_to_split == 0
    left = nodes.child(True)
    right = nodes.child(False)
    assert left[0] is f1.root.left_child()
    assert right[0] is f1.root.right_child()
    assert left[1] is right[1] is f2.root
    assert left.tree_ids == nodes.tree_ids
    assert left.groups is nodes.groups
    # The original is unchanged.
    assert nodes[0] is f1.root

    # Ties go to the lowest slot.
    nodes = nptcorr.NodeTuple.from_fields([f1], [2])
    assert nodes[0].size == nodes[1].size
    assert nodes.ind_to_split == 0

    # Keep splitting until all leaves, always taking the largest non-leaf cell.
    nodes = nptcorr.NodeTuple.from_fields([f1, f2], [1, 1])
    while not nodes.all_leaves:
        ind = nodes.ind_to_split
        assert not nodes[ind].is_leaf()
        for j, c in enumerate(nodes):
            if not c.is_leaf():
                assert c.size <= nodes[ind].size
                if c.size == nodes[ind].size:
                    assert j >= ind
        nodes = nodes.child(False)
    assert nodes.ind_to_split is None
    assert all(c.is_leaf() for c in nodes)
    with assert_raises(ValueError):
        nodes.child(True)

@timer
def test_symmetry():
    f1 = make_field(40, leaf_size=1)
    f2 = make_field(20, seed=1234, leaf_size=1)

    # Distinct trees never prune anything.
    nodes = nptcorr.NodeTuple.from_fields([f1, f2], [1, 1])
    assert nodes.check_symmetry(0, True)
    assert nodes.check_symmetry(0, False)
    assert nodes.check_symmetry(1, True)
    assert nodes.check_symmetry(1, False)

    root = f1.root
    L = root.left_child()
    R = root.right_child()
    nodes = nptcorr.NodeTuple([root, root], [0, 0])
    assert nodes.check_symmetry(0, True)
    assert nodes.check_symmetry(0, False)
    assert nodes.check_symmetry(1, True)
    assert nodes.check_symmetry(1, False)

    # (R, L) has no increasing pair of indices.
    nodes = nptcorr.NodeTuple([R, root], [0, 0])
    assert nodes.check_symmetry(1, False)
    assert not nodes.check_symmetry(1, True)
    assert not nptcorr.NodeTuple([R, L], [0, 0]).is_admissible()
    assert nptcorr.NodeTuple([L, R], [0, 0]).is_admissible()
    nodes = nptcorr.NodeTuple([root, L], [0, 0])
    assert nodes.check_symmetry(0, True)
    assert not nodes.check_symmetry(0, False)

    # A single leaf with one point cannot fill two slots.
    leaf = next(f1.leaves())
    assert leaf.n == 1
    assert not nptcorr.NodeTuple([leaf, leaf], [0, 0]).is_admissible()
    assert nptcorr.NodeTuple([leaf, leaf], [0, 1]).is_admissible()

    # Three slots need three increasing indices.
    a, b = L.left_child(), L.right_child()
    assert nptcorr.NodeTuple([a, b, R], [0, 0, 0]).is_admissible()
    assert not nptcorr.NodeTuple([b, a, R], [0, 0, 0]).is_admissible()
    assert nptcorr.NodeTuple([L, L, R], [0, 0, 0]).is_admissible()
    # A different tree in between doesn't matter.
    assert nptcorr.NodeTuple([a, f2.root, b], [0, 1, 0]).is_admissible()
    assert not nptcorr.NodeTuple([b, f2.root, a], [0, 1, 0]).is_admissible()

    # Splitting a leaf in a shared group is an error.
    with assert_raises(ValueError):
        nptcorr.NodeTuple([leaf, root], [0, 0]).check_symmetry(0, True)

@timer
def test_admissible_count():
    # Following every admissible branch from the root reaches exactly the leaf tuples with
    # increasing leaves, plus the diagonal ones.
    f1 = make_field(30, leaf_size=3)
    nleaves = f1.nleaves
    nodes = nptcorr.NodeTuple.from_fields([f1], [2])
    stack = [nodes]
    found = []
    while stack:
        nodes = stack.pop()
        assert nodes.is_admissible()
        if nodes.all_leaves:
            found.append((nodes[0].start, nodes[1].start))
            continue
        ind = nodes.ind_to_split
        for left in [False, True]:
            if nodes.check_symmetry(ind, left):
                stack.append(nodes.child(left))
            else:
                assert not nodes.child(left).is_admissible()
    # Pairs of leaves with l1 <= l2, except single-point leaves on the diagonal.
    starts = [c.start for c in f1.leaves()]
    sizes = [c.n for c in f1.leaves()]
    expected = [(s1, s2) for i, s1 in enumerate(starts) for j, s2 in enumerate(starts)
                if i < j or (i == j and sizes[i] >= 2)]
    assert sorted(found) == sorted(expected)
    assert len(found) <= nleaves * (nleaves+1) // 2

if __name__ == '__main__':
    test_root()
    test_split()
    test_symmetry()
    test_admissible_count()
