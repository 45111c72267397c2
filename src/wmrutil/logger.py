#
#    Copyright (c) 2020-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Logging for wmrd, set up from section [Logging] of the configuration file.

The defaults below send everything to syslog. The user's [Logging] section is
merged over them, so it need only name what it changes. Both follow the layout
of logging.config.dictConfig().
"""

import io
import logging.config
import os.path
import sys
import traceback

import configobj

import wmrlog

# Two kinds of placeholders are used:
#
#  {value}: plugged in by setup().
#  %(value)s: plugged in by the Python logging module.
#
LOGGING_STR = """[Logging]
    version = 1
    disable_existing_loggers = False

    [[root]]
      level = {log_level}
      handlers = syslog,

    # Per module tailoring goes here, e.g. [[[wmrlog.sinks]]] level = WARNING
    [[loggers]]

    [[handlers]]

        [[[syslog]]]
            level = DEBUG
            formatter = standard
            class = logging.handlers.SysLogHandler
            address = {address}
            facility = {facility}

        [[[console]]]
            level = DEBUG
            formatter = verbose
            class = logging.StreamHandler
            stream = ext://sys.stdout

        # Log files under WMRLOG_ROOT, rotated at 10 MB
        [[[rotate]]]
            level = DEBUG
            formatter = standard
            class = logging.handlers.RotatingFileHandler
            filename = {log_file}
            maxBytes = 10000000
            backupCount = 4
            delay = True

    [[formatters]]
        [[[simple]]]
            format = "%(levelname)s %(message)s"
        [[[standard]]]
            format = "{process_name}[%(process)d] %(levelname)s %(name)s: %(message)s"
        [[[verbose]]]
            format = "%(asctime)s  {process_name}[%(process)d] %(levelname)s %(name)s: %(message)s"
            datefmt = %Y-%m-%d %H:%M:%S
"""

# (platform prefix, syslog socket, facility)
SYSLOG_TARGETS = (
    ('darwin', '/var/run/syslog', 'local1'),
    ('linux', '/dev/log', 'user'),
    ('freebsd', '/var/run/log', 'user'),
    ('openbsd', '/dev/log', 'user'),
)


def syslog_target(platform=None):
    """Return (address, facility) of the syslog daemon on this platform. Where
    there is no local socket, it is reached over UDP on localhost."""
    platform = platform or sys.platform
    for prefix, address, facility in SYSLOG_TARGETS:
        if platform.startswith(prefix):
            return address, facility
    return ['localhost', 514], 'user'


def setup(process_name, config_dict):
    """Configure logging.

    Args:
        process_name (str): The label to put in front of every log entry.
        config_dict (dict): The configuration, possibly a ConfigObj. Its section
            'Logging', if any, holds the user's customizations; WMRLOG_ROOT is
            where the 'rotate' handler puts its file.
    """
    log_config = configobj.ConfigObj(io.StringIO(LOGGING_STR), interpolation=False,
                                     encoding='utf-8')
    if 'Logging' in config_dict:
        log_config.merge({'Logging': _as_dict(config_dict['Logging'])})

    address, facility = syslog_target()
    values = {
        'log_level': 'DEBUG' if wmrlog.debug else 'INFO',
        'process_name': process_name,
        'facility': facility,
        'log_file': os.path.join(os.path.expanduser(config_dict.get('WMRLOG_ROOT', '.')),
                                 'wmrlog.log'),
    }

    def _fill(section, key):
        value = section[key]
        if value == '{address}':
            # Not a string on every platform
            section[key] = address
        elif isinstance(value, (list, tuple)):
            section[key] = [_convert(item.format(**values)) for item in value]
        elif isinstance(value, str):
            section[key] = _convert(value.format(**values))

    log_config['Logging'].walk(_fill)
    logging.config.dictConfig(log_config.dict()['Logging'])


def log_traceback(log_fn, prefix=''):
    """Log the stack traceback of the exception being handled, one line per entry.

    log_fn: One of the logging.Logger logging functions, such as logging.Logger.warning.

    prefix: A string, which will be put in front of each log entry. Default is no string.
    """
    for chunk in traceback.format_exc().splitlines():
        log_fn("%s%s", prefix, chunk)


def _as_dict(section):
    """A plain copy of section, read with interpolation off. ConfigObj would
    otherwise try to fill in the %(...)s placeholders of the formats."""
    if not hasattr(section, 'dict'):
        return dict(section)
    main = section.main
    saved, main.interpolation = main.interpolation, False
    try:
        return section.dict()
    finally:
        main.interpolation = saved


def _convert(value):
    """Turn a string from the configuration into a bool, int or float, where it is one."""
    lowered = value.lower()
    if lowered in ('true', 'false'):
        return lowered == 'true'
    for kind in (int, float):
        try:
            return kind(value)
        except ValueError:
            pass
    return value
