#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Periodic archiving of the aggregate state to a database.

Station wide readings (pressure, wind, rain, clock) go into table 'conditions',
one row per archive interval. Readings with a sensor channel (temperature and
water) go into table 'sensors', one row per observed channel.
"""

import logging
import threading

import wmrdb
import wmrutil.logger
from wmrutil.wmrutil import timestamp_to_string, to_bool, to_float

log = logging.getLogger(__name__)

# =============================================================================
#                     Schema of the archive database
# =============================================================================

conditions_schema = [
    ('dateTime', 'INTEGER NOT NULL UNIQUE PRIMARY KEY'),
    ('pressure', 'INTEGER'),
    ('forecast', 'INTEGER'),
    ('altPressure', 'INTEGER'),
    ('altForecast', 'INTEGER'),
    ('windDir', 'REAL'),
    ('windSpeed', 'REAL'),
    ('windAvgSpeed', 'REAL'),
    ('windPower', 'INTEGER'),
    ('rainRate', 'INTEGER'),
    ('rainHour', 'REAL'),
    ('rainDay', 'REAL'),
    ('rainTotal', 'REAL'),
    ('rainSince', 'VARCHAR(16)'),
    ('clock', 'VARCHAR(16)'),
    ('clockPowered', 'INTEGER'),
    ('clockBattery', 'INTEGER'),
    ('rf', 'INTEGER'),
    ('level', 'INTEGER'),
]

sensors_schema = [
    ('dateTime', 'INTEGER NOT NULL'),
    ('sensor', 'INTEGER NOT NULL'),
    ('temperature', 'REAL'),
    ('humidity', 'INTEGER'),
    ('dewpoint', 'REAL'),
    ('trend', 'INTEGER'),
    ('comfort', 'INTEGER'),
    ('waterTemperature', 'REAL'),
]

schema = {
    'conditions': conditions_schema,
    'sensors': sensors_schema,
}

# Which reading field goes into which column, per record type
CONDITIONS_MAP = {
    'pressure': (('pressure', 'pressure'), ('forecast', 'forecast'),
                 ('altPressure', 'altpressure'), ('altForecast', 'altforecast')),
    'wind': (('windDir', 'degrees'), ('windSpeed', 'speed'),
             ('windAvgSpeed', 'avgspeed'), ('windPower', 'power')),
    'rain': (('rainRate', 'rate'), ('rainHour', 'hour_total'),
             ('rainDay', 'day_total'), ('rainTotal', 'all_total'), ('rainSince', 'since')),
    'clock': (('clock', 'at'), ('clockPowered', 'powered'), ('clockBattery', 'battery'),
              ('rf', 'rf'), ('level', 'level')),
}

SENSORS_MAP = {
    'temp': (('temperature', 'temp'), ('humidity', 'humidity'), ('dewpoint', 'dewpoint'),
             ('trend', 'trend'), ('comfort', 'comfort')),
    'water': (('waterTemperature', 'temp'),),
}


# =============================================================================
#                         Class ArchiveManager
# =============================================================================

class ArchiveManager(object):
    """Writes snapshots of the aggregate state into a database."""

    def __init__(self, connection):
        self.connection = connection
        self._create_schema()

    @classmethod
    def open(cls, db_dict):
        """Open (and, if necessary, create) the database described by db_dict."""
        try:
            connection = wmrdb.connect(db_dict)
        except wmrdb.NoDatabaseError:
            log.info("Creating database %s", db_dict.get('db_path'))
            wmrdb.create(db_dict)
            connection = wmrdb.connect(db_dict)
        return cls(connection)

    def _create_schema(self):
        existing = self.connection.tables()
        with wmrdb.Transaction(self.connection) as cursor:
            for table, columns in schema.items():
                if table in existing:
                    continue
                column_defs = ', '.join("%s %s" % (name, kind) for name, kind in columns)
                if table == 'sensors':
                    column_defs += ', PRIMARY KEY (dateTime, sensor)'
                cursor.execute("CREATE TABLE %s (%s);" % (table, column_defs))
                log.debug("Created table %s", table)

    def add_snapshot(self, snapshot, log_success=True):
        """Write one snapshot. Slots that were never observed are skipped.

        Returns:
            int: The number of rows written.
        """
        timestamp = int(snapshot.timestamp)
        conditions = {}
        for record_type, columns in CONDITIONS_MAP.items():
            # Rain carries a channel; the gauge may report on any of them
            sensors = snapshot.sensors(record_type)
            if sensors:
                reading = snapshot.get(record_type, sensors[0])
                for column, field in columns:
                    conditions[column] = getattr(reading, field)

        sensor_rows = {}
        for record_type, columns in SENSORS_MAP.items():
            for sensor in snapshot.sensors(record_type):
                reading = snapshot.get(record_type, sensor)
                row = sensor_rows.setdefault(sensor, {'dateTime': timestamp, 'sensor': sensor})
                for column, field in columns:
                    row[column] = getattr(reading, field)

        rows = []
        if conditions:
            conditions['dateTime'] = timestamp
            rows.append(('conditions', conditions))
        rows.extend(('sensors', sensor_rows[sensor]) for sensor in sorted(sensor_rows))

        if not rows:
            log.debug("Nothing observed yet; no archive record written")
            return 0

        try:
            with wmrdb.Transaction(self.connection) as cursor:
                for table, row in rows:
                    names = list(row.keys())
                    sql = "INSERT INTO %s (%s) VALUES (%s);" \
                          % (table, ', '.join(names), ', '.join('?' * len(names)))
                    cursor.execute(sql, tuple(row[name] for name in names))
        except wmrdb.IntegrityError as e:
            log.error("Unable to add archive record %s: %s",
                      timestamp_to_string(timestamp), e)
            return 0

        if log_success:
            log.info("Added archive record %s (%d rows)", timestamp_to_string(timestamp), len(rows))
        return len(rows)

    def close(self):
        self.connection.close()

    def __enter__(self):
        return self

    def __exit__(self, etyp, einst, etb):  # @UnusedVariable
        self.close()


def open_manager(config_dict):
    """Return an ArchiveManager for the database named in section [Archive]."""
    db_binding = config_dict['Archive'].get('database', 'archive_sqlite')
    db_dict = wmrdb.get_database_dict_from_config(config_dict, db_binding)
    return ArchiveManager.open(db_dict)


# =============================================================================
#                         Class ArchiveThread
# =============================================================================

class ArchiveThread(threading.Thread):
    """Saves a snapshot of the aggregate state every archive interval."""

    def __init__(self, state, manager_factory, archive_interval=60, log_success=True):
        """Initialize an instance of ArchiveThread.

        state: The AggregateState to be archived.

        manager_factory: A callable returning an ArchiveManager. It is called in
        the new thread.

        archive_interval: Seconds between saves.
        """
        super().__init__(name='ArchiveThread')
        self.daemon = True
        self.state = state
        self.manager_factory = manager_factory
        self.archive_interval = to_float(archive_interval)
        self.log_success = to_bool(log_success)
        self.stop_event = threading.Event()
        self.manager = None
        self.saves = 0

    def run(self):
        try:
            self.manager = self.manager_factory()
        except wmrdb.DatabaseError as e:
            log.critical("Unable to open archive database: %s", e)
            log.critical("    ****  Archiving disabled")
            return
        try:
            while not self.stop_event.wait(self.archive_interval):
                self.save()
        finally:
            self.manager.close()

    def save(self):
        """Take a snapshot and write it. Database errors are logged, not raised."""
        try:
            self.manager.add_snapshot(self.state.snapshot(), self.log_success)
        except wmrdb.DatabaseError as e:
            log.error("Archive write failed: %s", e)
            wmrutil.logger.log_traceback(log.debug, '    ****  ')
        else:
            self.saves += 1

    def shutDown(self, timeout=10.0):
        """Stop the thread and wait for it to finish."""
        self.stop_event.set()
        if self.is_alive():
            self.join(timeout)
            if self.is_alive():
                log.error("Unable to shut down %s thread", self.name)
            else:
                log.debug("Shut down %s thread.", self.name)
