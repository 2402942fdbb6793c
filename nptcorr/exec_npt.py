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
.. module:: exec_npt
"""

from .catalog import Catalog, read_catalogs, combine_catalogs
from .nptcorrelation import NptCorrelation
from .config import setup_logger, check_config, print_params, FILE_LIST


# The parameters of the npt function about the input and output files.
# See config.py for the layout of each tuple.
npt_file_params = {

    # Parameters about the input catalogs

    'file_name' : (str, FILE_LIST, None, None,
            'The file(s) with the data points.  Several files are combined into one catalog.'),
    'rand_file_name' : (str, FILE_LIST, None, None,
            'The file(s) with the random points.  Several files are combined into one catalog.'),
    'file_list' : (str, None, None, None,
            'A text file with file names in lieu of file_name.'),
    'rand_file_list' : (str, None, None, None,
            'A text file with file names in lieu of rand_file_name.'),

    # Parameters about the output file(s)

    'npt_file_name' : (str, None, None, None,
            'The output filename for the N-point correlation function.'),
    'npt_statistic' : (str, None, 'compensated', ['compensated','simple'],
            'Which statistic to use for the estimator of the N-point correlation function. ',
            'compensated uses all the mixed data-random correlations.  simple uses only R^N.'),
}

npt_valid_params = dict(npt_file_params)
for c in [ Catalog, NptCorrelation ]:
    npt_valid_params.update(c._valid_params)


npt_aliases = {
    'nnn_file_name' : 'npt_file_name',
    'nnn_statistic' : 'npt_statistic',
}

def npt(config, logger=None):
    """Run the full N-point correlation function code based on the parameters in the
    given config dict.

    The data catalog is correlated with itself, and if random catalogs are given, the
    random catalog with itself.  With npt_statistic = compensated (the default), all the
    mixed correlations with N-k data points and k random points are computed as well.

    The function `print_npt_params` will output information about the valid parameters
    that are expected to be in the config dict.

    Optionally a logger parameter may be given, in which case it is used for logging.
    If not given, the logging will be based on the verbose and log_file parameters.

    :param config:  The configuration dict which defines what to do.
    :param logger:  If desired, a ``Logger`` object for logging. (default: None, in which case
                    one will be built according to the config dict's verbose level.)
    """
    # Setup logger based on config verbose value
    if logger is None:
        logger = setup_logger(config.get('verbose',1), config.get('log_file',None))

    # Check that config doesn't have any extra parameters.
    # (Such values are probably typos.)
    # Also convert the given parameters to the correct type, etc.
    config = check_config(config, npt_valid_params, npt_aliases, logger)

    import pprint
    logger.debug('Using configuration dict:\n%s',pprint.pformat(config))

    if 'npt_file_name' not in config:
        raise TypeError("npt_file_name is required")

    # Read in the input files.  Each of these is a list.
    cat1 = read_catalogs(config, 'file_name', 'file_list', num=0, logger=logger)
    rand1 = read_catalogs(config, 'rand_file_name', 'rand_file_list', num=0, logger=logger)
    if len(cat1) == 0:
        raise TypeError("Either file_name or file_list is required")
    data = combine_catalogs(cat1, logger=logger)
    rand = combine_catalogs(rand1, logger=logger) if len(rand1) > 0 else None
    logger.info("Done creating input catalogs")

    npoint = config['npoint']
    letters = lambda k: 'D^%d R^%d'%(npoint-k, k)

    logger.warning("Performing %s calculations...", letters(0))
    dd = NptCorrelation(config, logger=logger)
    dd.process(data)
    logger.info("Done %s calculations.", letters(0))

    cross = None
    if rand is None:
        logger.warning("No random catalogs given.  Only doing ntuples calculation.")
        rr = None
    else:
        logger.warning("Performing %s calculations...", letters(npoint))
        rr = NptCorrelation(config, logger=logger)
        rr.process(rand)
        logger.info("Done %s calculations.", letters(npoint))

        if config['npt_statistic'] == 'compensated':
            cross = []
            for k in range(1, npoint):
                logger.warning("Performing %s calculations...", letters(k))
                dr = NptCorrelation(config, logger=logger)
                dr.process(data, rand, multiplicities=[npoint-k, k])
                logger.info("Done %s calculations.", letters(k))
                cross.append(dr)

    dd.write(config['npt_file_name'], rrr=rr, cross=cross)
    logger.warning("Wrote NPT correlation to %s",config['npt_file_name'])

def print_npt_params():
    """Print information about the valid parameters that may be given to the `npt` function.
    """
    print_params(npt_file_params, title='Input and output files')
    print_params({k:v for k,v in Catalog._valid_params.items()
                  if k not in NptCorrelation._valid_params}, title='Catalog parameters')
    print_params(NptCorrelation._valid_params, title='Correlation parameters')
