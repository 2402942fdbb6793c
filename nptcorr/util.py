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
.. module:: util
"""

import os
import numpy as np

from .writer import AsciiWriter
from .reader import AsciiReader

def parse_file_type(file_type, file_name, logger=None):
    """Parse the file_type from the file_name if necessary

    Only ASCII files are currently supported, so this mostly serves to give a sensible
    error message for anything else.

    :param file_type:   The input file_type.  If None, then parse from file_name's extension.
    :param file_name:   The filename to use for parsing if necessary.
    :param logger:      A logger if desired. (default: None)

    :returns: The parsed file_type.
    """
    if file_type is None:
        name, ext = os.path.splitext(file_name)
        if ext.lower().startswith('.fit'):
            file_type = 'FITS'
        elif ext.lower().startswith('.hdf'):
            file_type = 'HDF'
        else:
            file_type = 'ASCII'
        if logger:
            logger.info("   file_type assumed to be %s from the file name.",file_type)
    return file_type.upper()

def make_writer(file_name, precision=4, file_type=None, logger=None):
    """Factory function to make a writer instance of the correct type.
    """
    file_type = parse_file_type(file_type, file_name, logger=logger)
    if file_type == 'ASCII':
        writer = AsciiWriter(file_name, precision=precision, logger=logger)
    else:
        raise ValueError("Invalid file_type %s"%file_type)
    return writer

def make_reader(file_name, file_type=None, delimiter=None, comment_marker='#', logger=None):
    """Factory function to make a reader instance of the correct type.
    """
    file_type = parse_file_type(file_type, file_name, logger=logger)
    if file_type == 'ASCII':
        reader = AsciiReader(file_name, delimiter=delimiter, comment_marker=comment_marker,
                             logger=logger)
    else:
        raise ValueError("Invalid file_type %s"%file_type)
    return reader

def elementary_symmetric(w, k):
    r"""Calculate the elementary symmetric polynomial :math:`e_k(w)`.

    This is the sum over all k-element subsets of the product of the values in the subset.
    For unit weights, it is just the binomial coefficient :math:`\binom{n}{k}`, the number
    of distinct k-tuples that can be drawn from n points.

    The calculation uses Newton's identities on the power sums, which only needs O(k^2)
    operations after the k power sums are computed.

    :param w:   A numpy array of weights.
    :param k:   The degree of the polynomial.

    :returns:   The value :math:`e_k(w)` as a float.
    """
    w = np.asarray(w, dtype=float)
    if k < 0:
        raise ValueError("k must be non-negative")
    if k == 0:
        return 1.
    if k > len(w):
        return 0.
    p = [np.sum(w**i) for i in range(1,k+1)]
    e = [1.]
    for m in range(1,k+1):
        s = 0.
        for i in range(1,m+1):
            s += (-1)**(i-1) * e[m-i] * p[i-1]
        e.append(s/m)
    return float(e[k])

class lazy_property(object):
    """
    This decorator will act similarly to @property, but will be efficient for multiple access
    to values that require some significant calculation.

    It works by replacing the attribute with the computed value, so after the first access,
    the property (an attribute of the class) is superseded by the new attribute of the instance.

    Usage::

        @lazy_property
        def slow_function_to_be_used_as_a_property(self):
            x =  ...  # Some slow calculation.
            return x

    Base on an answer from http://stackoverflow.com/a/6849299
    """
    def __init__(self, fget):
        self.fget = fget
        self.func_name = fget.__name__

    def __get__(self, obj, cls):
        if obj is None:
            return self
        value = self.fget(obj)
        setattr(obj, self.func_name, value)
        return value
