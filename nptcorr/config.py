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
.. module:: config

The configuration parameters of nptcorr are described by ``_valid_params`` dicts, one per
class (e.g. `Catalog._valid_params`, `NptCorrelation._valid_params`) plus the file
parameters of the `npt` function.  Each value is a tuple with the following items:

    - type
    - list kind: None if only a single value is allowed, else one of
        - `FILE_LIST`: a list with one value per input file,
        - `PAIR_LIST`: a list with one value per pair of points in each tuple,
        - `TEMPLATE_LIST`: a list with one value per template (i.e. output bin).
    - default value
    - valid values (or None for any value)
    - description (Multiple entries here are allowed for longer strings)
"""

import os
import sys
import json
import logging
import warnings
import numpy as np
import yaml
import coord

FILE_LIST = 'file'
PAIR_LIST = 'pair'
TEMPLATE_LIST = 'template'

_list_help = {
    FILE_LIST: 'a list with one value per input file',
    PAIR_LIST: 'a list with one value per pair of points, ordered (0,1), (0,2), ..., (1,2), ...',
    TEMPLATE_LIST: 'a list with one value per template',
}

_brackets = { '[' : ']', '(' : ')', '{' : '}' }

_true_words = ('true', 'yes', 't', 'y')
_false_words = ('false', 'no', 'f', 'n', 'none')


def parse_variable(config, v):
    """Parse a string of the form 'key = value' and write the value to config[key].

    This is how both the lines of a .params file and the extra command line arguments of
    the npt executable are read.  A trailing # comment is ignored.  Lists may be given
    either in brackets with commas, e.g. ``max_sep = [1, 2, 2]``, or separated by whitespace,
    e.g. ``file_name = f1.dat f2.dat``.  All values are left as strings.

    :param config:  The configuration dict to which to write the key,value pair
    :param v:       A string of the form 'key = value'
    """
    key, eq, value = v.partition('=')
    if not eq:
        raise ValueError('Improper variable specification: %s.  Use syntax: key = value.'%v)
    key = key.strip()
    value = value.split('#', 1)[0].strip()
    if not value:
        raise ValueError('No value given for %s.'%key)
    if value[0] in _brackets:
        if value[-1] != _brackets[value[0]]:
            raise ValueError('List symbol %s not properly matched'%value[0])
        values = [ vv.strip() for vv in value[1:-1].split(',') ]
    else:
        values = value.split()
    config[key] = values[0] if len(values) == 1 else values


def parse_bool(value):
    """Parse a value as a boolean.

    Valid string values for True are: 'true', 'yes', 't', 'y', or any nonzero integer.
    Valid string values for False are: 'false', 'no', 'f', 'n', 'none', or 0.
    Capitalization is ignored.

    :param value:   The value to parse.

    :returns:       The value converted to a bool.
    """
    if isinstance(value, (bool, np.bool_, int, np.integer)):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _true_words:
            return True
        if word in _false_words:
            return False
        try:
            return bool(int(word))
        except ValueError:
            pass
    raise ValueError("Unable to parse %s as a bool."%value)


def parse_unit(value):
    """Parse a string naming an angle unit, and return the size of that unit in radians.

    The value is allowed to start with one of the names in coord.AngleUnit.valid_names, so
    'deg', 'degree' and 'degrees' all give pi/180.

    :param value:   The unit name.

    :returns:       The given unit in radians.
    """
    if not any(value.startswith(unit) for unit in coord.AngleUnit.valid_names):
        raise ValueError("Unable to parse %s as an angle unit"%value)
    return coord.AngleUnit.from_name(value).value


def _read_yaml_file(file_name):
    with open(file_name) as fin:
        return yaml.safe_load(fin)

def _read_json_file(file_name):
    with open(file_name) as fin:
        return json.load(fin)

def _read_params_file(file_name):
    # key = value lines.  A line +other.params includes the lines of another file.
    config = dict()
    with open(file_name) as fin:
        for line in fin:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            if line.startswith('+'):
                config.update(read_config(line[1:].strip()))
            else:
                parse_variable(config, line)
    return config

_config_readers = {
    'yaml' : _read_yaml_file,
    'json' : _read_json_file,
    'params' : _read_params_file,
}

_config_extensions = {
    '.yaml' : 'yaml',
    '.yml' : 'yaml',
    '.json' : 'json',
    '.params' : 'params',
}

def read_config(file_name, file_type='auto'):
    """Read a configuration dict from a file.

    :param file_name:   The file name from which the configuration dict should be read.
    :param file_type:   The type of config file.  Options are 'auto', 'yaml', 'json', 'params'.
                        (default: 'auto', which determines the type from the extension)

    :returns:           A config dict built from the configuration file.
    """
    if file_type == 'auto':
        ext = os.path.splitext(file_name)[1]
        if ext not in _config_extensions:
            raise ValueError("Unable to determine the type of config file from the extension")
        file_type = _config_extensions[ext]
    if file_type not in _config_readers:
        raise ValueError("Invalid file_type %s"%file_type)
    return _config_readers[file_type](file_name)


def setup_logger(verbose, log_file=None, name=None):
    """Make a logger with the logging level given by an integer verbosity.

    verbose = 0, 1, 2, 3 give levels CRITICAL, WARNING, INFO, DEBUG respectively.
    Each logger only gets one handler, so calling this again with the same name just
    updates the level.

    :param verbose:     An integer indicating what verbosity level to use.
    :param log_file:    If given, a file name to which to write the logging output.
                        If omitted or None, then output to stdout.
    :param name:        The base name of the logger.  (default: 'nptcorr')

    :returns:           The logging.Logger object to use.
    """
    logging_levels = { 0: logging.CRITICAL,
                       1: logging.WARNING,
                       2: logging.INFO,
                       3: logging.DEBUG }

    if name is None:
        name = 'nptcorr'
    if log_file is not None:
        name = name + '_' + log_file
    logger = logging.getLogger(name)

    if not logger.handlers:
        if log_file is None:
            handle = logging.StreamHandler(stream=sys.stdout)
        else:
            handle = logging.FileHandler(log_file)
        handle.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(handle)
    logger.setLevel(logging_levels[int(verbose)])
    return logger


def convert(value, value_type=str):
    """Convert a config value (often a string) to the given type.

    value_type may be a type or any conversion function, e.g. `parse_unit` to get the
    size of an angle unit in radians.  None is returned unchanged.

    :param value:       The input value to be converted.
    :param value_type:  The type to convert to. (default: str)

    :returns:           The converted value.
    """
    if value is None:
        return None
    if value_type is bool:
        return parse_bool(value)
    return value_type(value)


def _check_item(key, value, value_type, valid_values):
    try:
        value = convert(value, value_type)
    except (ValueError, TypeError):
        raise ValueError("Could not parse %s=%s as type %s"%(key, value, value_type.__name__))
    if valid_values is None or value is None:
        return value
    if value in valid_values:
        return value
    if isinstance(value, str):
        # Allow the string to be longer.  e.g. degrees is valid if 'deg' is in valid_values.
        matches = [ v for v in valid_values if value.startswith(v) ]
        if len(matches) == 1:
            return matches[0]
    raise ValueError("Parameter %s has invalid value %s.  Valid values are %s."%(
                     key, value, valid_values))


def _npairs(config, params):
    npoint = config.get('npoint', None)
    if npoint is None:
        npoint = params['npoint'][2]
    return npoint * (npoint-1) // 2


def check_config(config, params, aliases=None, logger=None):
    """Check (and update) a config dict to conform to the given parameter rules.

    Each value is converted to the right type and checked against its valid values.
    List values are only allowed for parameters with a list kind, and per-pair lists
    must have one value for each pair of points, N(N-1)/2 for N = npoint.
    Parameters not given in config are filled in with their default values.

    :param config:  The config dict to check.
    :param params:  A dict of valid parameters with information about each one.
    :param aliases: A dict of deprecated parameters that are still aliases for new names.
                    (default: None)
    :param logger:  If desired, a logger object for logging any warnings here. (default: None)

    :returns:       The updated config dict.
    """
    checked = {}
    for key, value in config.items():
        if aliases and key in aliases:
            msg = "The parameter %s is deprecated.  You should use %s instead."%(
                    key, aliases[key])
            if logger:
                logger.warning(msg)
            else:
                warnings.warn(msg, FutureWarning)
            key = aliases[key]

        if key not in params:
            raise TypeError("Invalid parameter %s."%key)

        value_type, list_kind, _, valid_values = params[key][:4]
        if isinstance(value, (list, tuple)):
            if list_kind is None:
                raise ValueError("Parameter %s may not be a list."%key)
            value = [ _check_item(key, v, value_type, valid_values) for v in value ]
        else:
            value = _check_item(key, value, value_type, valid_values)
        checked[key] = value

    if 'npoint' in params:
        npairs = _npairs(checked, params)
        for key, value in checked.items():
            if params[key][1] == PAIR_LIST and isinstance(value, list) and len(value) != npairs:
                raise ValueError("%s should have %d values (one per pair), but got %d"%(
                                 key, npairs, len(value)))

    for key in params:
        if key not in checked and params[key][2] is not None:
            checked[key] = params[key][2]
    return checked


def print_params(params, title=None):
    """Print the information about the valid parameters in the given params dict.

    :param params:  A dict of valid parameters with information about each one.
    :param title:   If given, a heading to print above the parameters. (default: None)
    """
    if title is not None:
        print(title)
        print('-' * len(title))
        print()
    max_len = max(len(key) for key in params)
    indent = ' ' * (max_len + 1)
    for key, info in params.items():
        value_type, list_kind, default_value, valid_values = info[:4]
        description = info[4:]
        print(key.ljust(max_len), description[0])
        for d in description[1:]:
            print(indent + d)
        type_name = value_type.__name__
        if list_kind is None:
            print(indent + 'Type must be %s.'%type_name)
        else:
            print(indent + 'Type must be %s, or %s.'%(type_name, _list_help[list_kind]))
        if valid_values is not None:
            print(indent + 'Valid values are %s'%(valid_values,))
        if default_value is not None:
            print(indent + 'Default value is %s'%(default_value,))
        print()


def get(config, key, value_type=str, default=None, *, num=None):
    """Get a value from config converted to a particular type.

    If the value is a per-file list and ``num`` is given, the ``num`` item is used.
    A missing key or a value of None gives the default.

    :param config:      The configuration dict from which to get the key value.
    :param key:         Which key to get from config.
    :param value_type:  Which type should the value be converted to. (default: str)
    :param default:     What value should be used if the key is not in the config dict.
                        (default: None)
    :param num:         Which item to use if the value is a list. (default: None)

    :returns:           The specified value, converted as needed.
    """
    value = config.get(key, None)
    if num is not None and isinstance(value, list):
        if num >= len(value):
            raise IndexError("num=%d is out of range of list for %s"%(num,key))
        value = value[num]
    if value is None:
        value = default
    return convert(value, value_type)

def get_from_list(config, key, num, value_type=str, default=None):
    """Get the value for input file number ``num`` of a per-file parameter.

    A single value applies to all the files.
    """
    return get(config, key, value_type, default, num=num)

def get_pair_values(config, key, npoint, default=None):
    """Get a per-pair parameter as an array with one value for each of the N(N-1)/2 pairs.

    A single value applies to every pair.  The pairs are in the order of
    ``numpy.triu_indices(npoint, k=1)``.  The config should already have been through
    `check_config`, which checks the lengths of per-pair lists.

    :returns:           A numpy array of floats, or None if the value is missing.
    """
    value = config.get(key, None)
    if value is None:
        value = default
    if value is None:
        return None
    return np.broadcast_to(np.array(value, dtype=float), (npoint * (npoint-1) // 2,)).copy()


def merge_config(config, kwargs, valid_params, aliases=None):
    """Merge the values from kwargs into config, and check the result.

    Values in kwargs take precedence over ones in config.  The config dict is allowed to have
    items that are not in valid_params (e.g. the output file names of the npt executable),
    which are skipped, but kwargs is not.  Neither input dict is modified.

    :param config:          The root config, or None.
    :param kwargs:          A second dict with more or updated values, or None.
    :param valid_params:    A dict of valid parameters that are allowed for this usage.
    :param aliases:         An optional dict of aliases. (default: None)

    :returns:               The merged and checked dict.
    """
    merged = {}
    if config:
        merged.update((k, v) for k, v in config.items() if k in valid_params)
    if kwargs:
        merged.update(kwargs)
    return check_config(merged, valid_params, aliases)

def make_minimal_config(config, valid_params):
    """Make a minimal version of a config dict, excluding values that are None or the default.

    :param config:          The source config (will not be modified)
    :param valid_params:    A dict of valid parameters that are allowed for this usage.

    :returns:               The minimal config dict.
    """
    return {k:v for k,v in config.items()
            if k in valid_params and v is not None and v != valid_params[k][2]}
