#
#    Copyright (c) 2018-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#

"""Convenience functions for ConfigObj"""

import io
import os.path

import configobj

default_wmrlog_root = os.path.expanduser('~/wmrlog-data')

DEFAULT_LOCATIONS = [default_wmrlog_root, '/etc/wmrlog', '/home/wmrlog']


def find_file(file_path=None, args=None, locations=DEFAULT_LOCATIONS,
              file_name='wmrlog.conf'):
    """Find and return a path to a file, looking in "the usual places."

    First, file_path is tried. If not given, the first element of args that
    does not look like an option is tried. If that fails, the list of
    directory locations is searched for a file named file_name.

    Args:
        file_path (str): A candidate path to the file.
        args (list[str]): command-line arguments.
        locations (list[str]): A list of directories to be searched.
        file_name (str): The name of the file to be found. Used only if the
            directories must be searched. Default is 'wmrlog.conf'.

    Returns:
        str: full path to the file

    Raises:
        IOError: If the configuration file cannot be found, or is not a file.
    """

    # Start by searching args (if available)
    if file_path is None and args:
        for i in range(len(args)):
            # Ignore empty strings and None values:
            if not args[i]:
                continue
            if not args[i].startswith('-'):
                file_path = args[i]
                del args[i]
                break

    if file_path is None:
        for directory in locations:
            candidate = os.path.abspath(os.path.join(directory, file_name))
            if os.path.isfile(candidate):
                return candidate

    if file_path is None:
        raise IOError("Unable to find file '%s'. Tried directories %s"
                      % (file_name, locations))
    elif not os.path.isfile(file_path):
        raise IOError("%s is not a file" % file_path)

    return file_path


def read_config(config_path, args=None, locations=DEFAULT_LOCATIONS,
                file_name='wmrlog.conf', defaults=None):
    """Read the specified configuration file, return an instance of ConfigObj
    with the file contents. If no file is specified, look in the standard
    locations for wmrlog.conf. Returns the filename of the actual configuration
    file, as well as the ConfigObj.

    Args:
        config_path (str): configuration filename.
        args (list[str]): command-line arguments.
        locations (list[str]): A list of directories to search.
        file_name (str): The name of the config file. Default is 'wmrlog.conf'
        defaults (configobj.ConfigObj): Backstop values. Any option missing from the
            file is taken from here.

    Returns:
        (str, configobj.ConfigObj): path-to-file, instance-of-ConfigObj

    Raises:
        SyntaxError: If there is a syntax error in the file
        IOError: If the file cannot be found
    """
    # Find and open the config file:
    config_path = find_file(config_path, args,
                            locations=locations, file_name=file_name)
    try:
        # Now open it up and parse it.
        config_dict = configobj.ConfigObj(config_path,
                                          file_error=True,
                                          encoding='utf-8',
                                          default_encoding='utf-8')
    except configobj.ConfigObjError as e:
        # Add on the path of the offending file, then reraise.
        e.msg += " File '%s'." % config_path
        raise

    if defaults is not None:
        conditional_merge(config_dict, defaults)

    # Remember where we found the config file
    config_dict['config_path'] = os.path.realpath(config_path)

    return config_path, config_dict


def conditional_merge(a_dict, b_dict):
    """Merge fields from b_dict into a_dict, but only if they do not yet
    exist in a_dict"""
    # Go through each key in b_dict
    for k in b_dict:
        if isinstance(b_dict[k], dict):
            if k not in a_dict:
                # It's a new section. Initialize it...
                a_dict[k] = {}
                # ... and transfer over the section comments, if available
                try:
                    a_dict.comments[k] = b_dict.comments[k]
                except AttributeError:
                    pass
            conditional_merge(a_dict[k], b_dict[k])
        elif k not in a_dict:
            # It's a scalar. Transfer over the value...
            a_dict[k] = b_dict[k]
            # ... then its comments, if available:
            try:
                a_dict.comments[k] = b_dict.comments[k]
            except AttributeError:
                pass


def config_from_str(input_str):
    """Return a ConfigObj from a string. Values will be in Unicode."""
    config = configobj.ConfigObj(io.StringIO(input_str), encoding='utf-8',
                                 default_encoding='utf-8')
    return config
