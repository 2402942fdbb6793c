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
.. module:: nptcorrelation
"""

import numpy as np
import coord
from math import comb

from .config import merge_config, setup_logger, get, get_pair_values, make_minimal_config
from .config import parse_unit, PAIR_LIST, TEMPLATE_LIST
from .catalog import Catalog, combine_catalogs
from .matcher import DistanceMatcher, AngleMatcher
from .nptalg import NptAlg
from .util import make_writer, make_reader


class NptCorrelation(object):
    r"""This class handles the calculation and storage of a generic N-point count-count
    correlation function.

    The tuples of points that are counted are defined by a matcher, which is chosen by the
    ``matcher`` parameter:

        - 'distance' counts the N-tuples of points where every pair of points has a separation
          between ``min_sep`` and ``max_sep``.  These may be given either as single values,
          or as a list of N(N-1)/2 values, one for each pair of points (0,1), (0,2), ...,
          (1,2), ... in order.  A tuple counts if any ordering of its points fits the bounds.
        - 'angle' counts the triangles (npoint = 3) with two sides of lengths ``r1`` and
          ``r2`` meeting at an opening angle ``theta``.  Each value in ``theta`` gives
          a separate bin.  Each side is allowed to vary by a fraction ``bin_thickness``
          of its length.

    Ojects of this class hold the following attributes:

    Attributes:
        npoint:         The number of points in each tuple.
        ntemplates:     The number of bins (one per template of the matcher).
        ntuples:        The number of matching tuples in each bin.
        weight:         The total weight of the matching tuples in each bin.
        tot:            The total weight of all possible tuples for the catalogs processed.
        num_base_cases: The number of base cases computed by the tree calculation.
        num_prunes:     The number of node tuples that were pruned by the tree calculation.

    If `calculateZeta` has been called, then the following will also be available:

    Attributes:
        zeta:           The correlation function, :math:`\zeta`.
        varzeta:        An estimate of the variance of :math:`\zeta`.

    The typical usage pattern is as follows:

        >>> nnnn = nptcorr.NptCorrelation(config)
        >>> nnnn.process(cat)                        # For auto-correlation
        >>> nnnn.process(cat1, cat2, cat3, cat4)     # For cross-correlation
        >>> nnnn.process(cat1, cat2, multiplicities=[3,1])  # Three from cat1, one from cat2
        >>> nnnn.write(file_name, rrr=rrrr)          # Write out to a file

    Parameters:
        config (dict):  A configuration dict that can be used to pass in the below kwargs if
                        desired.  This dict is allowed to have addition entries in addition
                        to those listed below, which are ignored here. (default: None)
        logger:         If desired, a logger object for logging. (default: None, in which case
                        one will be built according to the config dict's verbose level.)

    Keyword Arguments:
        **kwargs:       Any of the parameters in ``NptCorrelation._valid_params``.
    """
    _valid_params = {
        'npoint' : (int, None, 3, None,
                'The number of points N in each tuple.'),
        'matcher' : (str, None, 'distance', ['distance', 'angle'],
                'Which kind of tuples to count.  distance counts the tuples whose pairwise ',
                'separations are all in [min_sep, max_sep].  angle counts triangles with two ',
                'sides r1, r2 and each opening angle theta between them.'),
        'min_sep' : (float, PAIR_LIST, 0., None,
                'The minimum separation of each pair of points for matcher = distance.',
                'A list gives different bounds to different pairs of template vertices.'),
        'max_sep' : (float, PAIR_LIST, None, None,
                'The maximum separation of each pair of points for matcher = distance.',
                'Required for matcher = distance.'),
        'r1' : (float, None, None, None,
                'The length of the first side of the triangles for matcher = angle.'),
        'r2' : (float, None, None, None,
                'The length of the second side of the triangles for matcher = angle.'),
        'theta' : (float, TEMPLATE_LIST, None, None,
                'The opening angle(s) between r1 and r2 for matcher = angle.',
                'Each angle is a separate template, with its own output row.'),
        'theta_units' : (str, None, None, coord.AngleUnit.valid_names,
                'The units to use for theta.  The default is radians.'),
        'bin_thickness' : (float, None, 0.1, None,
                'The fractional tolerance on each side of the triangle for matcher = angle.',
                'Each side s matches lengths in s * (1 -+ bin_thickness/2).'),
        'sep_units' : (str, None, None, coord.AngleUnit.valid_names,
                'The units of min_sep, max_sep, r1 and r2 for spherical coordinates.',
                'Only valid with ra, dec catalogs.  The default is radians.'),
        'leaf_size' : (int, None, 16, None,
                'The maximum number of points in a leaf cell of the trees.'),
        'split_method' : (str, None, 'mean', ['mean', 'median', 'middle', 'random'],
                'Which method to use for splitting cells.'),
        'brute' : (bool, None, False, [False, True],
                'Whether to check every tuple of points rather than use the trees.',
                'This is much slower, and is mostly useful for testing new matchers.'),
        'verbose' : (int, None, 1, [0, 1, 2, 3],
                'How verbose the code should be during processing. ',
                '0 = Errors Only, 1 = Warnings, 2 = Progress, 3 = Debugging'),
        'log_file' : (str, None, None, None,
                'If desired, an output file for the logging output.',
                'The default is to write the output to stdout.'),
        'precision' : (int, None, 4, None,
                'The number of digits after the decimal in the output.'),
    }

    def __init__(self, config=None, *, logger=None, **kwargs):
        self.config = merge_config(config, kwargs, NptCorrelation._valid_params)
        if logger is None:
            self.logger = setup_logger(get(self.config,'verbose',int,1),
                                       self.config.get('log_file',None))
        else:
            self.logger = logger

        self.npoint = get(self.config,'npoint',int,3)
        if self.npoint < 2:
            raise ValueError("npoint must be at least 2")
        self.npairs = self.npoint * (self.npoint-1) // 2
        self.matcher_type = self.config.get('matcher','distance')
        self.sep_units = self.config.get('sep_units','')
        self._sep_units = get(self.config,'sep_units',parse_unit,'radians')

        if self.matcher_type == 'distance':
            if self.config.get('max_sep',None) is None:
                raise TypeError("max_sep is required for matcher = distance")
            for key in ['r1', 'r2', 'theta']:
                if key in self.config:
                    raise TypeError("%s is invalid for matcher = distance"%key)
            self.min_sep = get_pair_values(self.config, 'min_sep', self.npoint, 0.)
            self.max_sep = get_pair_values(self.config, 'max_sep', self.npoint)
            if np.any(self.min_sep < 0):
                raise ValueError("min_sep must be non-negative")
            if np.any(self.min_sep > self.max_sep):
                raise ValueError("max_sep must be larger than min_sep")
            self.ntemplates = 1
        else:
            if self.npoint != 3:
                raise ValueError("matcher = angle requires npoint = 3")
            for key in ['r1', 'r2', 'theta']:
                if self.config.get(key,None) is None:
                    raise TypeError("%s is required for matcher = angle"%key)
            self.r1 = float(self.config['r1'])
            self.r2 = float(self.config['r2'])
            if self.r1 <= 0 or self.r2 <= 0:
                raise ValueError("r1 and r2 must be positive")
            self.theta_units = self.config.get('theta_units','')
            self._theta_units = get(self.config,'theta_units',parse_unit,'radians')
            self.theta = np.atleast_1d(np.array(self.config['theta'], dtype=float))
            self.bin_thickness = get(self.config,'bin_thickness',float,0.1)
            if not (0 <= self.bin_thickness < 2):
                raise ValueError("bin_thickness must be in [0, 2)")
            self.ntemplates = len(self.theta)

        self.leaf_size = get(self.config,'leaf_size',int,16)
        if self.leaf_size < 1:
            raise ValueError("leaf_size must be >= 1")
        self.split_method = self.config.get('split_method','mean')
        self.brute = get(self.config,'brute',bool,False)
        self.coords = None

        self.ntuples = np.zeros(self.ntemplates, dtype=float)
        self.weight = np.zeros(self.ntemplates, dtype=float)
        self.tot = 0.
        self.num_base_cases = 0
        self.num_prunes = 0
        self.zeta = None
        self.varzeta = None
        self.logger.debug('Finished building NptCorrelation (npoint=%d, matcher=%s)',
                          self.npoint, self.matcher_type)

    def _scale(self, sep, coords):
        # Convert separations given in sep_units into distances between positions.
        if coords == 'spherical':
            sep = np.minimum(sep * self._sep_units, np.pi)
            return 2. * np.sin(0.5 * sep)
        if self.sep_units != '':
            raise ValueError("sep_units is invalid with %s coordinates"%coords)
        return sep

    def _make_matcher(self, coords):
        if self.matcher_type == 'distance':
            lower = np.zeros((self.npoint, self.npoint))
            upper = np.zeros((self.npoint, self.npoint))
            ii, jj = np.triu_indices(self.npoint, k=1)
            lower[ii,jj] = lower[jj,ii] = self._scale(self.min_sep, coords)
            upper[ii,jj] = upper[jj,ii] = self._scale(self.max_sep, coords)
            return DistanceMatcher(lower, upper)
        else:
            r1 = float(self._scale(self.r1, coords))
            r2 = float(self._scale(self.r2, coords))
            return AngleMatcher(r1, r2, self.theta * self._theta_units, self.bin_thickness)

    def _parse_multiplicities(self, ncats, multiplicities):
        if multiplicities is None:
            if ncats == 1:
                multiplicities = [self.npoint]
            elif ncats == self.npoint:
                multiplicities = [1] * ncats
            else:
                raise ValueError("multiplicities are required when processing %d catalogs "%ncats
                                 + "for a %d-point correlation"%self.npoint)
        multiplicities = list(multiplicities)
        if len(multiplicities) != ncats:
            raise ValueError("Got %d catalogs, but %d multiplicities"%(
                             ncats, len(multiplicities)))
        if any(int(m) != m or m < 1 for m in multiplicities):
            raise ValueError("Multiplicities must be positive integers: %s"%multiplicities)
        if sum(multiplicities) != self.npoint:
            raise ValueError("Multiplicities %s do not sum to npoint = %d"%(
                             multiplicities, self.npoint))
        return [int(m) for m in multiplicities]

    def process(self, *cats, multiplicities=None):
        """Accumulate the number of matching N-tuples of points from the given catalogs.

        Each argument may be a single `Catalog` or a list of them, in which case they are
        combined into one point set.  The multiplicities say how many points of each tuple
        come from each catalog.  If omitted, a single catalog is used for all N points, and
        N catalogs are used for one point each.

        Points that come from the same catalog are counted as unordered sets, so each distinct
        set of points is only counted once.  This function may be called several times, in
        which case the results accumulate.

        Parameters:
            cats (Catalog):         The catalog(s) to process.
            multiplicities (list):  How many points of each tuple come from each catalog.
                                    (default: None)
        """
        if len(cats) == 0:
            raise TypeError("At least one catalog is required")
        cats = [combine_catalogs(c, logger=self.logger) if isinstance(c, list) else c
                for c in cats]
        for c in cats:
            if not isinstance(c, Catalog):
                raise TypeError("Arguments must be Catalog instances (or lists of them)")
        multiplicities = self._parse_multiplicities(len(cats), multiplicities)

        coords = cats[0].coords
        if any(c.coords != coords for c in cats):
            raise ValueError("All catalogs must use the same coordinate system")
        if self.coords is not None and self.coords != coords:
            raise ValueError("Cannot mix coordinate systems %s and %s"%(self.coords, coords))

        self.logger.info('Starting process NptCorrelation for multiplicities %s',
                         multiplicities)
        fields = [c.getField(leaf_size=self.leaf_size, split_method=self.split_method)
                  for c in cats]
        matcher = self._make_matcher(coords)
        alg = NptAlg(fields, multiplicities, matcher, brute=self.brute, logger=self.logger)
        alg.compute()

        self.coords = coords
        self.ntuples += matcher.ntuples
        self.weight += matcher.weight
        self.tot += float(np.prod([c.sumw_tuples(m) for c, m in zip(cats, multiplicities)]))
        self.num_base_cases += alg.num_base_cases
        self.num_prunes += alg.num_prunes
        self.logger.info('   ntuples = %s, tot = %g', self.ntuples, self.tot)

    @property
    def nonzero(self):
        """Return if there are any values accumulated yet.  (i.e. ntuples > 0)
        """
        return bool(np.any(self.ntuples != 0))

    def clear(self):
        """Clear all data vectors, results and the total number of tuples.
        """
        self.ntuples[:] = 0.
        self.weight[:] = 0.
        self.tot = 0.
        self.num_base_cases = 0
        self.num_prunes = 0
        self.coords = None
        self.zeta = None
        self.varzeta = None

    def copy(self):
        """Make a copy"""
        ret = NptCorrelation.__new__(NptCorrelation)
        for key, item in self.__dict__.items():
            if isinstance(item, np.ndarray):
                # Only items that might change need to be deep copied.
                ret.__dict__[key] = item.copy()
            else:
                ret.__dict__[key] = item
        ret.config = dict(self.config)
        return ret

    def _same_templates(self, other):
        if self.npoint != other.npoint or self.matcher_type != other.matcher_type:
            return False
        if self.ntemplates != other.ntemplates or self._sep_units != other._sep_units:
            return False
        if self.matcher_type == 'distance':
            return (np.array_equal(self.min_sep, other.min_sep) and
                    np.array_equal(self.max_sep, other.max_sep))
        else:
            return (self.r1 == other.r1 and self.r2 == other.r2 and
                    self.bin_thickness == other.bin_thickness and
                    np.array_equal(self.theta * self._theta_units,
                                   other.theta * other._theta_units))

    def __iadd__(self, other):
        """Add a second `NptCorrelation`'s data to this one.

        .. note::

            For this to make sense, both objects should not have had `calculateZeta`
            called yet.  Also, the matcher parameters must be the same for both.
        """
        if not isinstance(other, NptCorrelation):
            raise TypeError("Can only add another NptCorrelation object")
        if not self._same_templates(other):
            raise ValueError("NptCorrelation to be added is not compatible with this one.")
        if self.coords is not None and other.coords is not None and self.coords != other.coords:
            raise ValueError("Cannot add correlations with different coordinate systems")
        if self.coords is None:
            self.coords = other.coords
        self.ntuples[:] += other.ntuples[:]
        self.weight[:] += other.weight[:]
        self.tot += other.tot
        self.num_base_cases += other.num_base_cases
        self.num_prunes += other.num_prunes
        return self

    def __eq__(self, other):
        # Note: the counters are not compared, since brute and tree calculations should
        # be considered equal if they give the same results.
        return (isinstance(other, NptCorrelation) and
                self._same_templates(other) and
                self.coords == other.coords and
                self.tot == other.tot and
                np.array_equal(self.ntuples, other.ntuples) and
                np.array_equal(self.weight, other.weight))

    def __repr__(self):
        kwargs = make_minimal_config(self.config, NptCorrelation._valid_params)
        # npoint and matcher are always included, since they define the calculation.
        kwargs['npoint'] = self.npoint
        kwargs['matcher'] = self.matcher_type
        return 'NptCorrelation(%s)'%(', '.join('%s=%r'%(k,v) for k,v in sorted(kwargs.items())))

    def calculateZeta(self, *, rrr, cross=None):
        r"""Calculate the N-point correlation function given the same correlation of random
        points, and possibly the mixed correlations of the data and randoms.

        There are two possible formulae that are currently supported.

        1. The simplest formula to use is :math:`\zeta^\prime = D^N/R^N - 1`, where each term
           is normalized by the total number of possible tuples.  In this case, only rrr needs
           to be given.  This includes the contributions of all the lower order correlations.

        2. A better formula is the generalization of the Landy-Szalay estimator (Szapudi
           and Szalay, 1998):

           .. math::

                \zeta = \frac{\sum_{k=0}^N (-1)^k \binom{N}{k} D^{N-k} R^k}{R^N}

           where :math:`D^{N-k} R^k` is the normalized number of tuples with N-k points from
           the data and k points from the randoms.  For N=2, this is the Landy-Szalay
           estimator.  The mixed terms are what is calculated by::

                >>> cross[k-1].process(data_cat, rand_cat, multiplicities=[N-k, k])

        - If only rrr is provided, the first formula will be used.
        - If cross is provided, it must be a list of the N-1 mixed correlations for
          k = 1 .. N-1, and the second formula will be used.

        After calling this method, you can use the `write` method to write the results to a
        file, including zeta and its variance.

        Parameters:
            rrr (NptCorrelation):   The correlation of the random field (R^N).
            cross (list):           The mixed correlations D^(N-k) R^k, for k = 1 .. N-1.
                                    (default: None)

        Returns:
            Tuple containing

                - zeta = array of :math:`\zeta`
                - varzeta = array of variance estimates of :math:`\zeta`
        """
        if self.tot == 0:
            raise ValueError("This NptCorrelation has tot=0.")
        if rrr.tot == 0:
            raise ValueError("rrr has tot=0.")
        if not self._same_templates(rrr):
            raise ValueError("rrr is not compatible with this NptCorrelation")

        # rrrf is the factor to scale rrr weights to get something commensurate to the data.
        rrrf = self.tot / rrr.tot
        rrrw = rrr.weight * rrrf
        mask = rrrw != 0

        num = self.weight.copy()
        if cross is None:
            num -= rrrw
        else:
            if len(cross) != self.npoint-1:
                raise TypeError("cross should have %d items (k = 1 .. %d), but got %d"%(
                                self.npoint-1, self.npoint-1, len(cross)))
            for k, c in enumerate(cross, start=1):
                if c.tot == 0:
                    raise ValueError("cross[%d] has tot=0."%(k-1))
                if not self._same_templates(c):
                    raise ValueError("cross[%d] is not compatible with this NptCorrelation"%(k-1))
                num += (-1)**k * comb(self.npoint, k) * c.weight * (self.tot / c.tot)
            num += (-1)**self.npoint * rrrw

        self.zeta = np.zeros(self.ntemplates)
        self.varzeta = np.zeros(self.ntemplates)
        self.zeta[mask] = num[mask] / rrrw[mask]
        self.varzeta[mask] = 1. / rrrw[mask]
        if not np.all(mask):
            self.logger.warning("Warning: %d bins have no random tuples.  zeta = 0 there.",
                                np.sum(~mask))
        return self.zeta, self.varzeta

    @property
    def _write_col_names(self):
        col_names = ['template']
        if self.matcher_type == 'angle':
            col_names += ['theta', 'r3']
        col_names += ['ntuples', 'weight']
        if self.zeta is not None:
            col_names += ['zeta', 'sigma_zeta']
        return col_names

    @property
    def _write_data(self):
        data = [np.arange(self.ntemplates)]
        if self.matcher_type == 'angle':
            theta = self.theta * self._theta_units
            data += [self.theta, np.sqrt(np.maximum(0., self.r1**2 + self.r2**2 -
                                        2*self.r1*self.r2*np.cos(theta)))]
        data += [np.rint(self.ntuples).astype(np.int64), self.weight]
        if self.zeta is not None:
            data += [self.zeta, np.sqrt(self.varzeta)]
        return data

    @property
    def _write_params(self):
        params = make_minimal_config(self.config, NptCorrelation._valid_params)
        # Don't write out the logging or output options.
        for key in ['verbose', 'log_file', 'precision']:
            params.pop(key, None)
        params['npoint'] = self.npoint
        params['matcher'] = self.matcher_type
        params['coords'] = self.coords
        params['tot'] = float(self.tot)
        params['num_base_cases'] = int(self.num_base_cases)
        params['num_prunes'] = int(self.num_prunes)
        return params

    def write(self, file_name, *, rrr=None, cross=None, precision=None, file_type=None):
        r"""Write the correlation function to the file, file_name.

        The output file will include the following columns:

        ==========      =========================================================
        Column          Description
        ==========      =========================================================
        template        The index of the bin
        theta           The opening angle (only for matcher = angle)
        r3              The length of the third side (only for matcher = angle)
        ntuples         The number of matching tuples
        weight          The total weight of the matching tuples
        zeta            The estimator of :math:`\zeta` (if rrr is given, or
                        `calculateZeta` has been called)
        sigma_zeta      The sqrt of the variance estimate of :math:`\zeta`
        ==========      =========================================================

        Parameters:
            file_name (str):    The name of the file to write to.
            rrr (NptCorrelation): If given, the correlation of the random field to use for
                                `calculateZeta`.  (default: None)
            cross (list):       The mixed correlations for `calculateZeta` if desired.
                                (default: None)
            precision (int):    For ASCII output catalogs, the desired precision. (default: 4;
                                this value can also be given in the constructor in the config
                                dict.)
            file_type (str):    The type of file to write ('ASCII').  (default: determine
                                the type automatically from the extension of file_name.)
        """
        self.logger.info('Writing NptCorrelation to %s',file_name)
        if rrr is not None:
            self.calculateZeta(rrr=rrr, cross=cross)
        elif cross is not None:
            raise TypeError("rrr is required when cross is given")
        if precision is None:
            precision = get(self.config,'precision',int,4)
        with make_writer(file_name, precision, file_type, self.logger) as writer:
            writer.write(self._write_col_names, self._write_data, params=self._write_params)

    def read(self, file_name, *, file_type=None):
        """Read in values from a file.

        This should be a file that was written by nptcorr.

        .. warning::

            The current object should be constructed with the same configuration parameters as
            the one being read.  e.g. the same min_sep, max_sep, etc.  Only the number of bins
            is checked by the read function.

        Parameters:
            file_name (str):    The name of the file to read in.
            file_type (str):    The type of file ('ASCII').  (default: determine the type
                                automatically from the extension of file_name.)
        """
        self.logger.info('Reading NptCorrelation from %s',file_name)
        with make_reader(file_name, file_type, logger=self.logger) as reader:
            params = reader.read_params()
            if 'tot' not in params:
                raise OSError("%s does not look like an NptCorrelation output file"%file_name)
            data = reader.read_data()
        if len(data) != self.ntemplates:
            raise OSError("%s has %d rows, but this NptCorrelation has %d bins"%(
                          file_name, len(data), self.ntemplates))
        self.ntuples = np.array(data['ntuples'], dtype=float)
        self.weight = np.array(data['weight'], dtype=float)
        self.tot = float(params['tot'])
        self.coords = params.get('coords', None)
        self.num_base_cases = int(params.get('num_base_cases', 0))
        self.num_prunes = int(params.get('num_prunes', 0))
        if 'zeta' in data.dtype.names:
            self.zeta = np.array(data['zeta'], dtype=float)
            self.varzeta = np.array(data['sigma_zeta'], dtype=float)**2
        else:
            self.zeta = None
            self.varzeta = None

    @classmethod
    def from_file(cls, file_name, *, file_type=None, logger=None):
        """Create a new instance from an output file.

        This should be a file that was written by nptcorr.

        Parameters:
            file_name (str):    The name of the file to read in.
            file_type (str):    The type of file ('ASCII').  (default: determine the type
                                automatically from the extension of file_name.)
            logger (Logger):    If desired, a ``Logger`` object to use for logging. (default:
                                create one.)

        Returns:
            An NptCorrelation object, constructed from the information in the file.
        """
        if logger:
            logger.info('Building NptCorrelation from %s',file_name)
        with make_reader(file_name, file_type, logger=logger) as reader:
            params = reader.read_params()
        if 'tot' not in params:
            raise OSError("%s does not look like an NptCorrelation output file"%file_name)
        config = {k:v for k,v in params.items() if k in NptCorrelation._valid_params}
        ret = cls(config, logger=logger)
        ret.read(file_name, file_type=file_type)
        return ret
