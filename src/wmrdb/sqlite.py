#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""wmrdb driver for sqlite"""

import os.path
import sqlite3

import wmrdb
from wmrutil.wmrutil import to_int


def guard(fn):
    """Decorator function that converts sqlite exceptions into wmrdb exceptions."""

    def guarded_fn(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except sqlite3.IntegrityError as e:
            raise wmrdb.IntegrityError(e)
        except sqlite3.OperationalError as e:
            msg = str(e).lower()
            if msg.startswith("unable to open"):
                raise wmrdb.CannotConnectError(e)
            elif msg.startswith("no such table"):
                raise wmrdb.NoTableError(e)
            else:
                raise wmrdb.OperationalError(e)
        except sqlite3.ProgrammingError as e:
            raise wmrdb.ProgrammingError(e)

    return guarded_fn


def connect(db_path='', driver='', **argv):  # @UnusedVariable
    """Return an open wmrdb.sqlite.Connection to the database file at db_path."""
    return Connection(db_path=db_path, **argv)


@guard
def create(db_path='', driver='', timeout=5, **argv):  # @UnusedVariable
    """Create an empty SQLite database, along with any directories it needs.

    Raises:
        OperationalError: If the database already exists.
        PermissionError: If its directory cannot be made.
    """
    if db_path == ':memory:':
        return
    if os.path.exists(db_path):
        raise wmrdb.OperationalError(f"Database {db_path} already exists")
    sqlite_dir = os.path.dirname(db_path)
    if sqlite_dir:
        try:
            os.makedirs(sqlite_dir, exist_ok=True)
        except OSError:
            raise wmrdb.PermissionError(f"Cannot create {sqlite_dir}")
    # Opening the file is enough to create it
    sqlite3.connect(db_path, timeout=to_int(timeout)).close()


class Connection(object):
    """A sqlite3 connection in autocommit mode. Transactions are opened
    explicitly, with begin(), usually through wmrdb.Transaction."""

    @guard
    def __init__(self, db_path='', timeout=5, **argv):  # @UnusedVariable
        """Initialize an instance of Connection.

        Args:
            db_path(str): The path to the SQLite database file, or ':memory:'.
            timeout(float): How long to wait for a lock to be released, in seconds.

        Raises:
            NoDatabaseError: If the database file does not exist.
        """
        self.db_path = db_path
        if db_path != ':memory:' and not os.path.exists(db_path):
            raise wmrdb.NoDatabaseError(f"Attempt to open a non-existent database {db_path}")
        # The archive thread, not the thread that opened the database, does the writing
        self.connection = sqlite3.connect(db_path, timeout=to_int(timeout),
                                          isolation_level=None, check_same_thread=False)

    @guard
    def cursor(self):
        """Return a cursor object."""
        return self.connection.cursor(Cursor)

    @guard
    def tables(self):
        """Returns a list of tables in the database."""
        return [str(row[0]) for row in
                self.connection.execute("SELECT tbl_name FROM sqlite_master WHERE type='table';")]

    @guard
    def begin(self):
        self.connection.execute("BEGIN TRANSACTION")

    @guard
    def commit(self):
        self.connection.commit()

    @guard
    def rollback(self):
        self.connection.rollback()

    @guard
    def close(self):
        self.connection.close()

    def __enter__(self):
        return self

    def __exit__(self, etyp, einst, etb):  # @UnusedVariable
        self.close()


class Cursor(sqlite3.Cursor):
    """A sqlite cursor whose execute() raises wmrdb exceptions."""

    @guard
    def execute(self, *args, **kwargs):
        return sqlite3.Cursor.execute(self, *args, **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, etyp, einst, etb):  # @UnusedVariable
        self.close()


def modify_config(config_dict, database_dict):
    """Turn the database dictionary from section [Databases] into one that
    connect() accepts: 'database_name' and 'SQLITE_ROOT' become an absolute
    'db_path' under WMRLOG_ROOT."""
    db_dict = dict(database_dict)
    sqlite_dir = db_dict.pop('SQLITE_ROOT', 'archive')
    db_dict['db_path'] = os.path.join(os.path.expanduser(config_dict.get('WMRLOG_ROOT', '.')),
                                      sqlite_dir,
                                      db_dict.pop('database_name'))
    return db_dict
