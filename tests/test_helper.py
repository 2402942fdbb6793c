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

import logging
import sys
import os
import unittest
import warnings
from contextlib import contextmanager

def which(program):
    """
    Mimic functionality of unix which command
    """
    def is_exe(fpath):
        return os.path.isfile(fpath) and os.access(fpath, os.X_OK)

    if sys.platform == "win32" and not program.endswith(".exe"):
        program += ".exe"

    fpath, fname = os.path.split(program)
    if fpath:
        if is_exe(program):
            return program
    else:
        for path in os.environ["PATH"].split(os.pathsep):
            exe_file = os.path.join(path, program)
            if is_exe(exe_file):
                return exe_file
    return None

def get_script_name(file_name):
    """
    Check if the file_name is in the path.  If not, prepend appropriate path to it.
    """
    if which(file_name) is not None:
        return file_name
    else:
        test_dir = os.path.split(os.path.realpath(__file__))[0]
        root_dir = os.path.split(test_dir)[0]
        script_dir = os.path.join(root_dir, 'scripts')
        exe_file_name = os.path.join(script_dir, file_name)
        print('Warning: The script %s is not in the path.'%file_name)
        print('         Using explcit path for the test:',exe_file_name)
        return exe_file_name

def timer(f):
    import functools

    @functools.wraps(f)
    def f2(*args, **kwargs):
        import time
        t0 = time.time()
        result = f(*args, **kwargs)
        t1 = time.time()
        fname = repr(f).split()[1]
        print('time for %s = %.2f' % (fname, t1-t0))
        return result
    return f2


class CaptureLog(object):
    """A context manager that saves logging output into a string that is accessible for
    checking in unit tests.

    After exiting the context, the attribute `output` will have the logging output.

    Sample usage:

            >>> with CaptureLog() as cl:
            ...     cl.logger.info('Do some stuff')
            >>> assert cl.output == 'Do some stuff'

    """
    def __init__(self, level=3):
        logging_levels = { 0: logging.CRITICAL,
                           1: logging.WARNING,
                           2: logging.INFO,
                           3: logging.DEBUG }
        self.logger = logging.getLogger('CaptureLog')
        self.logger.setLevel(logging_levels[level])
        from io import StringIO
        self.stream = StringIO()
        self.handler = logging.StreamHandler(self.stream)
        self.logger.addHandler(self.handler)

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.handler.flush()
        self.output = self.stream.getvalue().strip()
        self.logger.removeHandler(self.handler)
        self.handler.close()


# Replicate a small part of the nose package to get the `assert_raises` function/context-manager
# without relying on nose as a dependency.
class Dummy(unittest.TestCase):
    def nop():
        pass
_t = Dummy('nop')
assert_raises = getattr(_t, 'assertRaises')

@contextmanager
def assert_warns_context(wtype):
    # When used as a context manager
    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter("always")
        yield w
    assert len(w) >= 1, "Expected warning %s was not raised."%(wtype)
    assert any([issubclass(ww.category, wtype) for ww in w]), \
        "Warning raised was the wrong type (got %s, expected %s)"%(
            w[0].category, wtype)

def assert_warns(wtype, *args, **kwargs):
    if len(args) == 0:
        return assert_warns_context(wtype)
    else:
        # When used as a regular function
        func = args[0]
        args = args[1:]
        with assert_warns(wtype):
            res = func(*args, **kwargs)
        return res

del Dummy
del _t


def do_pickle(obj1, func=lambda x : x):
    """Check that the object is picklable.  Also that it has basic == and != functionality.
    """
    import pickle
    import copy
    print('Try pickling ',str(obj1))

    obj2 = pickle.loads(pickle.dumps(obj1))
    assert obj2 is not obj1
    f1 = func(obj1)
    f2 = func(obj2)
    assert f1 == f2

    # Check that == works properly if the other thing isn't the same type.
    assert f1 != object()
    assert object() != f1

    obj3 = copy.copy(obj1)
    assert obj3 is not obj1
    f3 = func(obj3)
    assert f3 == f1

    obj4 = copy.deepcopy(obj1)
    assert obj4 is not obj1
    f4 = func(obj4)
    assert f4 == f1


def count_brute(pos, w, lower, upper):
    """Count the distinct sets of points from a single point set that match a single template,
    checking every combination in pure python.

    Returns (ntuples, weight).
    """
    import itertools
    import numpy as np
    n = len(lower)
    pairs = list(itertools.combinations(range(n), 2))
    ntuples = 0
    weight = 0.
    for idx in itertools.combinations(range(len(pos)), n):
        d = {(i,j) : np.sqrt(np.sum((pos[idx[i]]-pos[idx[j]])**2)) for i,j in pairs}
        for s in itertools.permutations(range(n)):
            if all(lower[s[i]][s[j]] <= d[i,j] <= upper[s[i]][s[j]] for i,j in pairs):
                ntuples += 1
                weight += np.prod([w[k] for k in idx])
                break
    return ntuples, weight


def count_brute_cross(pos, w, multiplicities, lower, upper):
    """Count the distinct sets of points with every separation in [lower, upper], taking
    multiplicities[k] distinct points from the k-th point set, checking every combination
    in pure python.

    Points taken from the same point set are unordered, so each set is counted once.

    Returns (ntuples, weight).
    """
    import itertools
    import numpy as np
    choices = [ list(itertools.combinations(range(len(p)), m))
                for p, m in zip(pos, multiplicities) ]
    ntuples = 0
    weight = 0.
    for combo in itertools.product(*choices):
        pts = [ p[i] for p, idx in zip(pos, combo) for i in idx ]
        wts = [ ww[i] for ww, idx in zip(w, combo) for i in idx ]
        if all(lower <= np.sqrt(np.sum((a-b)**2)) <= upper
               for a, b in itertools.combinations(pts, 2)):
            ntuples += 1
            weight += np.prod(wts)
    return ntuples, weight
