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
.. module:: catalog
"""

import numpy as np
import coord
import os

from .config import merge_config, setup_logger, get, get_from_list, parse_unit, FILE_LIST
from .util import make_reader, lazy_property, elementary_symmetric
from .field import Field


class Catalog(object):
    r"""A set of input data (positions and weights) to be correlated.

    A Catalog object keeps track of the relevant information for a number of objects to
    be correlated.  The objects each have some kind of position (for instance (x,y), (ra,dec),
    (x,y,z), etc.), and possibly a weight.

    The object positions may be given either as numpy arrays or as columns of an ASCII file:

        >>> cat = nptcorr.Catalog(x=x, y=y, w=w)
        >>> cat = nptcorr.Catalog(ra=ra, dec=dec, ra_units='deg', dec_units='deg')
        >>> cat = nptcorr.Catalog(file_name, config)

    The coordinate system is determined by which positions are given:

        - 'flat' means (x,y) positions on a plane.
        - '3d' means either (x,y,z) or (ra,dec,r).
        - 'spherical' means (ra,dec) on the celestial sphere.  These are converted to
          positions on the unit sphere, so the natural distance is the chord distance.

    Internally, the positions are stored as an (N,d) array, ``pos``, which is what the
    `Field` tree is built from.

    Parameters:
        file_name (str):    The name of the catalog file to be read in. (default: None, in
                            which case the positions must be given as numpy arrays.)
        config (dict):      A configuration dict which defines attributes about how to read
                            the file.  Any optional kwargs may be given here in the config
                            dict if desired.  (default: None)

    Keyword Arguments:
        num (int):          Which number catalog are we reading.  e.g. for the second catalog
                            of a cross-correlation, num=1.  This is used to select items from
                            list-valued config parameters. (default: 0)
        logger:             If desired, a logger object for logging. (default: None, in which
                            case one will be built according to the config dict's verbose
                            level.)
        is_rand (bool):     If this is a random file, then weights are not required even if
                            w_col is set for the data catalog. (default: False)
        x (array):          The x values. (default: None)
        y (array):          The y values. (default: None)
        z (array):          The z values, if doing 3d positions. (default: None)
        ra (array):         The RA values. (default: None)
        dec (array):        The Dec values. (default: None)
        r (array):          The r values (the distances of each source from Earth).
                            (default: None)
        w (array):          The weights to apply to each point. (default: None)
        **kwargs:           Other parameters in ``Catalog._valid_params`` may be given as
                            kwargs, and they take precedence over the config dict.
    """
    _valid_params = {
        'file_type' : (str, FILE_LIST, None, ['ASCII'],
                'What kind of file is the input file. Valid options are ASCII.',
                'The default is to use the file name extension.'),
        'delimiter' : (str, FILE_LIST, None, None,
                'The delimiter between values in an ASCII catalog. The default is any whitespace.'),
        'comment_marker' : (str, FILE_LIST, '#', None,
                'The first (non-whitespace) character of comment lines in an input ASCII catalog.'),
        'first_row' : (int, FILE_LIST, 1, None,
                'The first row to use from the input catalog'),
        'last_row' : (int, FILE_LIST, -1, None,
                'The last row to use from the input catalog.  The default is to use all of them.'),
        'every_nth' : (int, FILE_LIST, 1, None,
                'Only use every nth row of the input catalog. The default is to use all of them.'),
        'x_col' : (str, FILE_LIST, '0', None,
                'Which column to use for x. Should be an integer for ASCII catalogs.'),
        'y_col' : (str, FILE_LIST, '0', None,
                'Which column to use for y. Should be an integer for ASCII catalogs.'),
        'z_col' : (str, FILE_LIST, '0', None,
                'Which column to use for z. Should be an integer for ASCII catalogs.'),
        'ra_col' : (str, FILE_LIST, '0', None,
                'Which column to use for ra. Should be an integer for ASCII catalogs.'),
        'dec_col' : (str, FILE_LIST, '0', None,
                'Which column to use for dec. Should be an integer for ASCII catalogs.'),
        'r_col' : (str, FILE_LIST, '0', None,
                'Which column to use for r.  Only valid with ra,dec. ',
                'Should be an integer for ASCII catalogs.'),
        'w_col' : (str, FILE_LIST, '0', None,
                'Which column to use for the weight (if any).'),
        'ra_units' : (str, FILE_LIST, None, coord.AngleUnit.valid_names,
                'The units of ra values. Required when using ra_col.'),
        'dec_units' : (str, FILE_LIST, None, coord.AngleUnit.valid_names,
                'The units of dec values. Required when using dec_col.'),
        'verbose' : (int, None, 1, [0, 1, 2, 3],
                'How verbose the code should be during processing. ',
                '0 = Errors Only, 1 = Warnings, 2 = Progress, 3 = Debugging'),
        'log_file' : (str, None, None, None,
                'If desired, an output file for the logging output.',
                'The default is to write the output to stdout.'),
    }

    def __init__(self, file_name=None, config=None, *, num=0, logger=None, is_rand=False,
                 x=None, y=None, z=None, ra=None, dec=None, r=None, w=None, **kwargs):

        self.config = merge_config(config, kwargs, Catalog._valid_params)
        self._num = num
        self._is_rand = is_rand

        if logger is not None:
            self.logger = logger
        else:
            self.logger = setup_logger(get(self.config,'verbose',int,1),
                                       self.config.get('log_file',None))

        self._x = self._y = self._z = None
        self._ra = self._dec = self._r = None
        self._w = None
        self._fields = {}

        first_row = get_from_list(self.config,'first_row',num,int,1)
        if first_row < 1:
            raise ValueError("first_row should be >= 1")
        last_row = get_from_list(self.config,'last_row',num,int,-1)
        if last_row > 0 and last_row < first_row:
            raise ValueError("last_row should be >= first_row")
        self.start = first_row - 1
        self.end = last_row if last_row > 0 else None
        self.every_nth = get_from_list(self.config,'every_nth',num,int,1)
        if self.every_nth < 1:
            raise ValueError("every_nth should be >= 1")

        if file_name is not None:
            if any(v is not None for v in [x,y,z,ra,dec,r,w]):
                raise TypeError("Vectors may not be provided when file_name is provided.")
            self.file_name = file_name
            self.name = file_name
            self._read_file(file_name, num, is_rand)
        else:
            self.file_name = None
            self.name = ''
            if x is not None or y is not None:
                if x is None or y is None:
                    raise TypeError("x and y must both be provided")
                if ra is not None or dec is not None:
                    raise TypeError("ra and dec may not be provided with x,y")
                if r is not None:
                    raise TypeError("r may not be provided with x,y")
            elif ra is not None or dec is not None:
                if ra is None or dec is None:
                    raise TypeError("ra and dec must both be provided")
                if z is not None:
                    raise TypeError("z may not be provided with ra,dec")
            else:
                raise TypeError("Either file_name or (x,y) or (ra,dec) is required")
            self._x = self.makeArray(x,'x')
            self._y = self.makeArray(y,'y')
            self._z = self.makeArray(z,'z')
            self._ra = self.makeArray(ra,'ra')
            self._dec = self.makeArray(dec,'dec')
            self._r = self.makeArray(r,'r')
            self._w = self.makeArray(w,'w')
            if self._ra is not None:
                self._apply_radec_units()

        self._finish_input()

    @property
    def x(self): return self._x

    @property
    def y(self): return self._y

    @property
    def z(self): return self._z

    @property
    def ra(self): return self._ra

    @property
    def dec(self): return self._dec

    @property
    def r(self): return self._r

    @property
    def w(self): return self._w

    @property
    def pos(self):
        """The positions as an (ntot, d) array, where d is 2 for flat coordinates and 3
        otherwise.
        """
        return self._pos

    @property
    def ntot(self):
        """The total number of objects, including any with zero weight."""
        return len(self._w)

    @lazy_property
    def nobj(self):
        """The number of objects with non-zero weight."""
        return int(np.sum(self._w != 0))

    @lazy_property
    def sumw(self):
        """The sum of the weights."""
        return float(np.sum(self._w))

    @lazy_property
    def nontrivial_w(self):
        """Whether any of the weights differ from 1."""
        return bool(np.any(self._w != 1))

    @property
    def coords(self):
        if self.ra is not None:
            if self.r is None:
                return 'spherical'
            else:
                return '3d'
        else:
            if self.z is None:
                return 'flat'
            else:
                return '3d'

    def sumw_tuples(self, k):
        r"""The total weight of all distinct k-tuples of objects in this catalog.

        This is the sum over all k-element subsets of the product of their weights.
        For unit weights, this is just :math:`\binom{n}{k}`.

        Parameters:
            k (int):    The number of objects in each tuple.

        Returns:
            The total weight as a float.
        """
        return elementary_symmetric(self._w, k)

    def makeArray(self, col, col_str, dtype=float):
        """Turn the input column into a numpy array if it wasn't already.
        Also make sure the input is 1-d.

        Parameters:
            col (array-like):   The input column to be converted into a numpy array.
            col_str (str):      The name of the column.  Used only as information in logging output.
            dtype (type):       The dtype for the returned array.  (default: float)

        Returns:
            The column converted to a 1-d numpy array.
        """
        if col is not None:
            col = np.array(col,dtype=dtype)
            if len(col.shape) != 1:
                s = col.shape
                col = col.reshape(-1)
                self.logger.warning("Warning: Input %s column was not 1-d.\n"%col_str +
                                    "         Reshaping from %s to %s"%(s,col.shape))
            col = np.ascontiguousarray(col[self.start:self.end:self.every_nth])
        return col

    def checkForNaN(self, col, col_str):
        """Check if the column has any NaNs.  If so, set those rows to have w[k]=0.

        Parameters:
            col (array):    The input column to check.
            col_str (str):  The name of the column.  Used only as information in logging output.
        """
        if col is not None and np.any(np.isnan(col)):
            index = np.where(np.isnan(col))[0]
            s = 's' if len(index) > 1 else ''
            self.logger.warning("Warning: %d NaN%s found in %s column.",len(index),s,col_str)
            if len(index) < 20:
                self.logger.info("Skipping row%s %s.",s,index.tolist())
            else:
                self.logger.info("Skipping rows starting %s",
                                 str(index[:10].tolist()).replace(']',' ...]'))
            self._w[index] = 0
            col[index] = 0  # Don't leave the nans there.

    def _apply_radec_units(self):
        ra_units = get_from_list(self.config,'ra_units',self._num,parse_unit)
        dec_units = get_from_list(self.config,'dec_units',self._num,parse_unit)
        if ra_units is None:
            raise TypeError("ra_units is required when using ra, dec")
        if dec_units is None:
            raise TypeError("dec_units is required when using ra, dec")
        self.ra_units = ra_units
        self.dec_units = dec_units
        self._ra *= self.ra_units
        self._dec *= self.dec_units

    def _finish_input(self):
        ntot = len(self._x) if self._x is not None else len(self._ra)
        for col, col_str in [(self._y,'y'), (self._z,'z'), (self._dec,'dec'), (self._r,'r'),
                             (self._w,'w')]:
            if col is not None and len(col) != ntot:
                raise ValueError("%s has the wrong length (%d != %d)"%(col_str, len(col), ntot))
        if self._w is None:
            self._w = np.ones(ntot, dtype=float)
        else:
            self._w = self._w.copy()
        if np.any(self._w < 0):
            raise ValueError("Weights must be non-negative")

        for col, col_str in [(self._x,'x'), (self._y,'y'), (self._z,'z'),
                             (self._ra,'ra'), (self._dec,'dec'), (self._r,'r'), (self._w,'w')]:
            self.checkForNaN(col, col_str)

        if self._ra is not None:
            r = self._r if self._r is not None else 1.
            x, y, z = coord.CelestialCoord.radec_to_xyz(self._ra, self._dec, r)
            self._pos = np.column_stack([x, y, z])
        elif self._z is not None:
            self._pos = np.column_stack([self._x, self._y, self._z])
        else:
            self._pos = np.column_stack([self._x, self._y])
        self._pos = np.ascontiguousarray(self._pos, dtype=float)

        if ntot == 0:
            self.logger.warning("Warning: Catalog %s has no objects.", self.name)
        else:
            self.logger.info("   nobj = %d, coords = %s", np.sum(self._w != 0), self.coords)

    def _read_file(self, file_name, num, is_rand):
        if not os.path.isfile(file_name):
            raise OSError("%s not found"%file_name)
        self.logger.info("Reading input file %s",file_name)

        x_col = get_from_list(self.config,'x_col',num,str,'0')
        y_col = get_from_list(self.config,'y_col',num,str,'0')
        z_col = get_from_list(self.config,'z_col',num,str,'0')
        ra_col = get_from_list(self.config,'ra_col',num,str,'0')
        dec_col = get_from_list(self.config,'dec_col',num,str,'0')
        r_col = get_from_list(self.config,'r_col',num,str,'0')
        w_col = get_from_list(self.config,'w_col',num,str,'0')

        # Check the consistency of the column specifications before reading anything.
        if x_col != '0' or y_col != '0':
            if x_col == '0':
                raise ValueError("x_col missing for file %s"%file_name)
            if y_col == '0':
                raise ValueError("y_col missing for file %s"%file_name)
            if ra_col != '0' or dec_col != '0':
                raise ValueError("ra/dec cols are not allowed in conjunction with x/y cols")
            if r_col != '0':
                raise ValueError("r_col is invalid in conjunction with x/y cols")
        elif ra_col != '0' or dec_col != '0':
            if ra_col == '0':
                raise ValueError("ra_col missing for file %s"%file_name)
            if dec_col == '0':
                raise ValueError("dec_col missing for file %s"%file_name)
            if z_col != '0':
                raise ValueError("z_col is invalid in conjunction with ra/dec cols")
        else:
            raise ValueError("No valid position columns specified for file %s"%file_name)
        if is_rand:
            w_col = '0'

        cols = [c for c in [x_col, y_col, z_col, ra_col, dec_col, r_col, w_col] if c != '0']
        file_type = get_from_list(self.config,'file_type',num)
        delimiter = get_from_list(self.config,'delimiter',num)
        comment_marker = get_from_list(self.config,'comment_marker',num,str,'#')
        s = slice(self.start, self.end, self.every_nth)
        with make_reader(file_name, file_type, delimiter, comment_marker, self.logger) as reader:
            for c in cols:
                if c not in reader.names():
                    raise ValueError("Column %s is invalid for file %s"%(c,file_name))
            data = reader.read(cols, s)

        if x_col != '0':
            self._x = data[x_col].astype(float)
            self._y = data[y_col].astype(float)
            if z_col != '0':
                self._z = data[z_col].astype(float)
        else:
            self._ra = data[ra_col].astype(float)
            self._dec = data[dec_col].astype(float)
            if r_col != '0':
                self._r = data[r_col].astype(float)
            self._apply_radec_units()
        if w_col != '0':
            self._w = data[w_col].astype(float)

    def getField(self, *, leaf_size=16, split_method='mean', rng=None):
        """Return a `Field` based on the positions in this catalog.

        The Field object is cached, so this is efficient to call multiple times.

        Parameters:
            leaf_size (int):    The maximum number of points in a leaf cell. (default: 16)
            split_method (str): Which split method to use ('mean', 'median', 'middle',
                                or 'random'). (default: 'mean')
            rng (RandomState):  If desired, a numpy.random.RandomState instance to use for
                                the random split method. (default: None)

        Returns:
            A `Field` object
        """
        key = (leaf_size, split_method)
        if key not in self._fields:
            self._fields[key] = Field(self, leaf_size=leaf_size, split_method=split_method,
                                      rng=rng, logger=self.logger)
        return self._fields[key]

    def clear_cache(self):
        """Clear the cache of Field objects built from this catalog.
        """
        self._fields.clear()

    def __repr__(self):
        s = 'nptcorr.Catalog('
        if self.file_name is not None:
            s += repr(self.file_name)
        else:
            s += 'ntot=%d, coords=%r'%(self.ntot, self.coords)
        s += ')'
        return s


def read_catalogs(config, key=None, list_key=None, *, num=0, logger=None, is_rand=None):
    """Read in a list of catalogs for the given key.

    key should be the file_name parameter or similar key word.
    list_key should be be corresponging file_list parameter, if appropriate.
    At least one of key or list_key must be provided.  If both are provided, then only
    one of these should be in the config dict.

    num indicates which key to use if any of the fields like x_col, w_col, etc. are lists.
    The default is 0, which means to use the first item in the list if they are lists.

    Parameters:
        config (dict):  The configuration dict to use for the appropriate parameters
        key (str):      Which key name to use for the file names. e.g. 'file_name' (default: None)
        list_key (str): Which key name to use for the name of a list file. e.g. 'file_list'.
                        Either key or list_key is required.  (default: None)
        num (int):      Which number catalog does this correspond to. e.g. file_name should use
                        num=0, file_name2 should use num=1.  (default: 0)
        logger:         If desired, a Logger object for logging. (default: None, in which case
                        one will be built according to the config dict's verbose level.)
        is_rand (bool): If this is a random file, then setting is_rand to True will let them
                        skip w_col if it was set for the main catalog.
                        (default: None, which means infer from the key name)

    Returns:
        A list of Catalogs (empty if no catalogs are specified).
    """
    if logger is None:
        logger = setup_logger(get(config,'verbose',int,1), config.get('log_file',None))

    if key is None and list_key is None:
        raise TypeError("Must provide either key or list_key")
    if key is not None and key in config:
        if list_key is not None and list_key in config:
            raise TypeError("Cannot provide both key and list_key")
        file_names = config[key]
    elif list_key is not None and list_key in config:
        list_file = config[list_key]
        with open(list_file,'r') as fin:
            file_names = [ f.strip() for f in fin if f.strip() != '' ]
    else:
        # If this key was required (i.e. file_name) then let the caller check this.
        return []
    if is_rand is None:
        if key is not None:
            is_rand = 'rand' in key
        else:
            is_rand = 'rand' in list_key
    if not isinstance(file_names,list):
        file_names = file_names.split()
    return [ Catalog(file_name, config, num=num, logger=logger, is_rand=is_rand)
             for file_name in file_names ]


def combine_catalogs(cat_list, *, logger=None):
    """Combine several catalogs into a single one.

    The catalogs must all use the same coordinate system.  This is how a list of input
    files is turned into a single point set for the correlation.

    Parameters:
        cat_list (list):    A list of `Catalog` instances.
        logger:             If desired, a logger object for logging. (default: None)

    Returns:
        A single `Catalog`.
    """
    if len(cat_list) == 0:
        raise ValueError("cat_list should not be empty")
    if len(cat_list) == 1:
        return cat_list[0]
    coords = cat_list[0].coords
    if any(c.coords != coords for c in cat_list):
        raise ValueError("All catalogs must use the same coordinate system")
    logger = logger or cat_list[0].logger
    kwargs = {}
    if coords == 'spherical' or (coords == '3d' and cat_list[0].ra is not None):
        kwargs['ra'] = np.concatenate([c.ra for c in cat_list])
        kwargs['dec'] = np.concatenate([c.dec for c in cat_list])
        kwargs['ra_units'] = kwargs['dec_units'] = 'radians'
        if coords == '3d':
            kwargs['r'] = np.concatenate([c.r for c in cat_list])
    else:
        kwargs['x'] = np.concatenate([c.x for c in cat_list])
        kwargs['y'] = np.concatenate([c.y for c in cat_list])
        if coords == '3d':
            kwargs['z'] = np.concatenate([c.z for c in cat_list])
    kwargs['w'] = np.concatenate([c.w for c in cat_list])
    return Catalog(logger=logger, **kwargs)
