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

import os
import numpy as np

def ensure_dir(target):
    d = os.path.dirname(target)
    if d != '':
        os.makedirs(d, exist_ok=True)

class AsciiWriter(object):
    """Write the columns of an output table to an ASCII (text) file.

    The file starts with an optional ``## {params}`` line, which `AsciiReader.read_params`
    reads back, then a ``#`` line with the column names, then one row per bin.

    Columns with an integer dtype, such as the template index and the tuple counts, are
    written exactly.  Other columns are written in exponential notation with ``precision``
    digits after the decimal point.

    Parameters:
        file_name:      The file name
        precision:      The number of digits of precision to output for float columns.
                        (default: 4)
        logger:         If desired, a logger object for logging. (default: None)
    """
    def __init__(self, file_name, *, precision=4, logger=None):
        self.file_name = file_name
        self.precision = precision
        self.logger = logger
        self._file = None
        ensure_dir(file_name)

    @property
    def width(self):
        return self.precision + 8

    @property
    def file(self):
        if self._file is None:
            raise RuntimeError('Illegal operation when not in a "with" context')
        return self._file

    def _fmt(self, col):
        if np.issubdtype(col.dtype, np.integer):
            return '%{}d'.format(self.width)
        return '%{}.{}e'.format(self.width, self.precision)

    def write(self, col_names, columns, *, params=None):
        """Write some columns to the file with the given column names.

        Parameters:
            col_names:      A list of columns names for the given columns.
            columns:        A list of numpy arrays with the data to write.
            params:         A dict of extra parameters to write at the top of the output file.
        """
        if len(columns) != len(col_names):
            raise ValueError("Got %d column names for %d columns"%(len(col_names), len(columns)))
        columns = [ np.asarray(col) for col in columns ]
        fmt = ' '.join(self._fmt(col) for col in columns)

        # The first name is 1 shorter to make room for the initial #.
        names = [col_names[0].center(self.width-1)]
        names += [ name.center(self.width) for name in col_names[1:] ]

        if params is not None:
            self.file.write(('## %r\n'%(params,)).encode())
        self.file.write(('#' + ' '.join(names) + '\n').encode())
        rows = np.column_stack(columns)
        np.savetxt(self.file, rows, fmt=fmt)
        if self.logger:
            self.logger.debug('Wrote %d rows to %s', len(rows), self.file_name)

    def __enter__(self):
        self._file = open(self.file_name, 'wb')
        return self

    def __exit__(self, exc_type, exc_value, exc_traceback):
        self._file.close()
        self._file = None
