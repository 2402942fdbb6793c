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
Helper class for reading the ASCII files used by nptcorr: input catalogs for the
`Catalog` class and the output files written by `NptCorrelation.write`.
"""
import ast
import numpy as np

class AsciiReader(object):
    """Reader interface for ASCII files using numpy.

    Columns may be referred to either by name (if the last comment line before the data
    gives the column names) or by 1-based column number given as a string.
    """
    def __init__(self, file_name, delimiter=None, comment_marker='#', logger=None):
        """
        Parameters:
            file_name (str):        The file name
            delimiter (str):        What delimiter to use between values.  (default: None,
                                    which means any whitespace)
            comment_marker (str):   What token indicates a comment line. (default: '#')
            logger:                 If desired, a logger object for logging. (default: None)
        """
        self.file_name = file_name
        self.delimiter = delimiter
        self.comment_marker = comment_marker
        self.logger = logger
        self.nrows = None
        self._file = None

    @property
    def file(self):
        if self._file is None:
            raise RuntimeError('Illegal operation when not in a "with" context')
        return self._file

    def _icol(self, col):
        if col in self.col_names:
            return self.col_names.index(col)
        icol = int(col) - 1
        if icol < 0 or icol >= self.ncols:
            raise ValueError("Column %s is invalid for file %s"%(col, self.file_name))
        return icol

    def read(self, cols, s=slice(None)):
        """Read a slice of a column or list of columns.

        Parameters:
            cols (str/list):    The name(s) of column(s) to read
            s (slice/array):    A slice object or selection of integers to read (default: all)

        Returns:
            The data as a dict or single numpy array as appropriate
        """
        self.file  # Check that we are in a with context.

        if np.isscalar(cols):
            icols = [self._icol(cols)]
        else:
            icols = [self._icol(col) for col in cols]

        data = np.genfromtxt(self.file, comments=self.comment_marker,
                             delimiter=self.delimiter, usecols=icols,
                             skip_header=self.comment_rows)
        self.file.seek(0)

        # genfromtxt drops dimensions for a single column or a single row.
        data = data.reshape(-1, len(icols))
        data = data[s,:]

        if np.isscalar(cols):
            return data[:,0]
        else:
            return {col : data[:,i] for i,col in enumerate(cols)}

    def read_params(self):
        """Read the params written in a ``## {...}`` header line, if any.

        Returns:
            params (dict)
        """
        header = next(self.file)
        params = {}
        if header.startswith('##'):
            params = ast.literal_eval(header[2:].strip())
            header = next(self.file)
        self.col_names = header[1:].split()
        self.ncols = len(self.col_names)
        return params

    def read_data(self, max_rows=None):
        """Read all the data following the header as a structured array.

        Parameters:
            max_rows (int):     The max number of rows to read. (default: None)

        Returns:
            data
        """
        data = np.genfromtxt(self.file, names=self.col_names, max_rows=max_rows)
        return np.atleast_1d(data)

    def row_count(self):
        """Count the number of data rows in the file.
        """
        if self.nrows is None:
            self.nrows = len(self.read(self.names()[0]))
        return self.nrows

    def names(self):
        """Return a list of the names of all the columns

        Both the 1-based column numbers as strings and any real names are included.
        """
        self.file
        return [str(i+1) for i in range(self.ncols)] + list(self.col_names)

    def __enter__(self):
        # See how many comment rows there are at the start
        self.comment_rows = 0
        with open(self.file_name, 'r') as fid:
            for line in fid:  # pragma: no branch
                if line.startswith(self.comment_marker): self.comment_rows += 1
                else: break

        # The last comment line, if any, may have the column names.
        self.col_names = []
        self.ncols = None
        if self.comment_rows >= 1:
            try:
                data = np.genfromtxt(self.file_name, comments=self.comment_marker,
                                     delimiter=self.delimiter, names=True,
                                     skip_header=self.comment_rows-1, max_rows=1)
                self.col_names = list(data.dtype.names)
                self.ncols = len(self.col_names)
            except (ValueError, TypeError):
                self.col_names = []
        if self.ncols is None:
            data = np.genfromtxt(self.file_name, comments=self.comment_marker,
                                 delimiter=self.delimiter, max_rows=1)
            if len(data.shape) != 1:
                raise OSError('Unable to parse %s as a numpy array'%self.file_name)
            self.ncols = data.shape[0]

        self._file = open(self.file_name, 'r')
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self._file.close()
        self._file = None
