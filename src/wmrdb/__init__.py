#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""A small layer over DBAPI, for the archive database.

Errors raised by the underlying driver are translated into the exceptions
below, so that callers can tell the cases apart without knowing the driver:
  - Opening a database that does not exist raises wmrdb.NoDatabaseError.
  - Operating on a table that does not exist raises wmrdb.NoTableError.
  - Adding a duplicate key raises wmrdb.IntegrityError.

The only driver is 'wmrdb.sqlite'.
"""


class DatabaseError(Exception):
    """Base class of all wmrdb exceptions."""


class IntegrityError(DatabaseError):
    """Operation attempted involving the relational integrity of the database."""


class ProgrammingError(DatabaseError):
    """SQL or other programming error."""


class NoTableError(ProgrammingError):
    """Attempt to operate on a non-existing table."""


class OperationalError(DatabaseError):
    """Runtime database errors."""


class NoDatabaseError(OperationalError):
    """Operation attempted on a database that does not exist."""


class CannotConnectError(OperationalError):
    """Unable to open or create the database."""


class PermissionError(OperationalError):
    """Lacking necessary permissions."""


DRIVERS = ('wmrdb.sqlite',)


def _driver(db_dict):
    driver = db_dict.get('driver', 'wmrdb.sqlite')
    if driver not in DRIVERS:
        raise DatabaseError("Unsupported database driver '%s'" % driver)
    from wmrdb import sqlite
    return sqlite


def create(db_dict):
    """Create the database described by db_dict. It is an error if it already exists."""
    return _driver(db_dict).create(**dict(db_dict))


def connect(db_dict):
    """Return a connection to the database described by db_dict. If the database
    does not exist, wmrdb.NoDatabaseError is raised."""
    return _driver(db_dict).connect(**dict(db_dict))


class Transaction(object):
    """Wraps a transaction in a 'with' clause. Commits on a clean exit, rolls
    back if an exception escapes."""

    def __init__(self, connection):
        self.connection = connection
        self.cursor = self.connection.cursor()

    def __enter__(self):
        self.connection.begin()
        return self.cursor

    def __exit__(self, etyp, einst, etb):  # @UnusedVariable
        if etyp is None:
            self.connection.commit()
        else:
            self.connection.rollback()
        self.cursor.close()


def get_database_dict_from_config(config_dict, database):
    """Return the database dictionary for a database named in section [Databases].

    Args:
        config_dict (dict): The configuration dictionary.
        database (str): The name of the database (example: 'archive_sqlite')

    Returns:
        dict: Everything needed to pass on to wmrdb.connect() or wmrdb.create().

    Example:
    >>> import configobj, io
    >>> config_snippet = '''
    ... WMRLOG_ROOT = /home/wmrlog
    ... [Databases]
    ...     [[archive_sqlite]]
    ...        database_name = wmrlog.sdb
    ...        driver = wmrdb.sqlite
    ...        SQLITE_ROOT = archive'''
    >>> config_dict = configobj.ConfigObj(io.StringIO(config_snippet))
    >>> database_dict = get_database_dict_from_config(config_dict, 'archive_sqlite')
    >>> for k in sorted(database_dict):
    ...     print("%8s: %s" % (k, database_dict[k]))
     db_path: /home/wmrlog/archive/wmrlog.sdb
      driver: wmrdb.sqlite
    """
    try:
        database_dict = dict(config_dict['Databases'][database])
    except KeyError as e:
        raise DatabaseError("Unknown database '%s'" % e)

    return _driver(database_dict).modify_config(config_dict, database_dict)
