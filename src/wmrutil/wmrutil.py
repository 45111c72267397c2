#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Various handy utilities that don't belong anywhere else.

   NB: To run the doctests, this code must be run as a module. For example:
     cd ~/git/wmrlog/src
     python -m wmrutil.wmrutil
"""

import datetime
import importlib
import time


def timestamp_to_string(ts, format_str="%Y-%m-%d %H:%M:%S %Z"):
    """Return a string formatted from the timestamp

    Args:
        ts (float): A unix-epoch timestamp
        format_str(str): A format string

    Returns:
        str: The time in local time as a string.

    Example:
        >>> import os
        >>> os.environ['TZ'] = 'America/Los_Angeles'
        >>> time.tzset()
        >>> print(timestamp_to_string(1196705700))
        2007-12-03 10:15:00 PST (1196705700)
        >>> print(timestamp_to_string(None))
        ******* N/A *******     (    N/A   )
    """
    if ts is not None:
        return "%s (%d)" % (time.strftime(format_str, time.localtime(ts)), ts)
    else:
        return "******* N/A *******     (    N/A   )"


def utcnow():
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def to_iso_utc(dt):
    """Format a datetime as UTC with second precision plus six digits of microseconds.

    Example:
        >>> dt = datetime.datetime(2024, 3, 1, 7, 5, 9, 42, tzinfo=datetime.timezone.utc)
        >>> print(to_iso_utc(dt))
        2024-03-01T07:05:09.000042
        >>> print(to_iso_utc(datetime.datetime(2024, 3, 1, 7, 5, 9)))
        2024-03-01T07:05:09.000000
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(datetime.timezone.utc)
    return "%s.%06d" % (dt.strftime("%Y-%m-%dT%H:%M:%S"), dt.microsecond)


def fmt_bytes(data):
    """Format a sequence of bytes as space separated hex.

    Example:
        >>> print(fmt_bytes(bytearray([0xff, 0x42, 0x0a])))
        ff 42 0a
    """
    return ' '.join(['%02x' % x for x in data])


def get_object(module_class):
    """Given a string with a module class name, it imports and returns the class."""
    # Split the path into its parts
    module_name, klass_name = module_class.rsplit('.', 1)
    module = importlib.import_module(module_name)
    klass = getattr(module, klass_name)
    return klass


def tobool(x):
    """Convert an object to boolean.

    Examples:
    >>> print(tobool('TRUE'))
    True
    >>> print(tobool(True))
    True
    >>> print(tobool(1))
    True
    >>> print(tobool('FALSE'))
    False
    >>> print(tobool(False))
    False
    >>> print(tobool(0))
    False
    >>> print(tobool('Foo'))
    Traceback (most recent call last):
    ValueError: Unknown boolean specifier: 'Foo'.
    >>> print(tobool(None))
    Traceback (most recent call last):
    ValueError: Unknown boolean specifier: 'None'.
    """

    try:
        if x.lower() in ('true', 'yes', 'y'):
            return True
        elif x.lower() in ('false', 'no', 'n'):
            return False
    except AttributeError:
        pass
    try:
        return bool(int(x))
    except (ValueError, TypeError):
        pass
    raise ValueError("Unknown boolean specifier: '%s'." % x)


to_bool = tobool


def to_int(x):
    """Convert an object to an integer, unless it is None.

    Strings in hex notation are accepted, which is handy for USB identifiers.

    Examples:
    >>> print(to_int(123))
    123
    >>> print(to_int('123'))
    123
    >>> print(to_int('0x0fde'))
    4062
    >>> print(to_int(-5.2))
    -5
    >>> print(to_int(None))
    None
    """
    if isinstance(x, str) and (x.lower() == 'none' or x == ''):
        x = None
    if x is None:
        return None
    if isinstance(x, str) and x.lower().startswith('0x'):
        return int(x, 16)
    try:
        return int(x)
    except ValueError:
        # Perhaps it's a string, holding a floating point number?
        return int(float(x))


def to_float(x):
    """Convert an object to a float, unless it is None

    Examples:
    >>> print(to_float(12.3))
    12.3
    >>> print(to_float('12.3'))
    12.3
    >>> print(to_float(None))
    None
    """
    if isinstance(x, str) and x.lower() == 'none':
        x = None
    return float(x) if x is not None else None


class bcolors:
    """Colors used for terminals"""
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'


if __name__ == '__main__':
    import doctest

    if not doctest.testmod().failed:
        print("PASSED")
