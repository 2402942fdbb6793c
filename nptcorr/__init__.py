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

# The version is stored in _version.py as recommended here:
# http://stackoverflow.com/questions/458550/standard-way-to-embed-version-into-python-package
from ._version import __version__, __version_info__

# Also let nptcorr.version show the version.
version = __version__

from .config import read_config

from .catalog import Catalog, read_catalogs, combine_catalogs
from .field import Field, Cell

from .nodetuple import NodeTuple
from .matcher import Matcher, MultiMatcher, DistanceMatcher, AngleMatcher
from .nptalg import NptAlg, compare_brute

from .nptcorrelation import NptCorrelation

from .exec_npt import npt, print_npt_params, npt_valid_params, npt_aliases
