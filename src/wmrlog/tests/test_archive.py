#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Test archiving of the aggregate state"""

import os.path
import shutil
import tempfile
import time
import unittest
from unittest import mock

import configobj

import wmrdb
import wmrlog.archive
import wmrlog.defaults
import wmrutil.config
from wmrlog.decoders import decode, WaterReading
from wmrlog.state import AggregateState

from fake_station import RAIN_RECORD, TEMP_RECORD, WIND_RECORD, with_checksum

db_dict = {'db_path': ':memory:', 'driver': 'wmrdb.sqlite'}


class ArchiveManagerTest(unittest.TestCase):

    def setUp(self):
        self.manager = wmrlog.archive.ArchiveManager(wmrdb.connect(db_dict))
        self.state = AggregateState()

    def tearDown(self):
        self.manager.close()

    def fetch(self, sql):
        with self.manager.connection.cursor() as cursor:
            cursor.execute(sql)
            return cursor.fetchall()

    def test_schema(self):
        self.assertEqual(sorted(self.manager.connection.tables()), ['conditions', 'sensors'])
        columns = [row[1] for row in self.fetch("PRAGMA table_info(sensors)")]
        self.assertEqual(columns, [name for name, _ in wmrlog.archive.sensors_schema])

    def test_nothing_observed(self):
        self.assertEqual(self.manager.add_snapshot(self.state.snapshot()), 0)
        self.assertEqual(self.fetch("SELECT COUNT(*) FROM conditions"), [(0,)])
        self.assertEqual(self.fetch("SELECT COUNT(*) FROM sensors"), [(0,)])

    def test_add_snapshot(self):
        self.state.update(decode(TEMP_RECORD))
        self.state.update(decode(WIND_RECORD))
        self.state.update(WaterReading(sensor=0, temp=18.5))
        self.state.update(WaterReading(sensor=3, temp=12.0))
        snapshot = self.state.snapshot()

        self.assertEqual(self.manager.add_snapshot(snapshot), 3)

        rows = self.fetch("SELECT dateTime, windSpeed, windAvgSpeed, pressure, rainTotal "
                          "FROM conditions")
        # Pressure and rain were never observed, so they are left empty
        self.assertEqual(rows, [(int(snapshot.timestamp), 3.0, 2.1, None, None)])

        rows = self.fetch("SELECT sensor, temperature, humidity, trend, waterTemperature "
                          "FROM sensors ORDER BY sensor")
        self.assertEqual(rows, [(0, 5.0, 65, 1, 18.5), (3, None, None, None, 12.0)])

    def test_rain_on_remote_channel(self):
        reading = decode(RAIN_RECORD)
        self.assertEqual(reading.sensor, 1)
        self.assertTrue(self.state.update(reading))
        snapshot = self.state.snapshot()

        self.assertEqual(self.manager.add_snapshot(snapshot), 1)
        rows = self.fetch("SELECT dateTime, rainRate, rainHour, rainDay, rainTotal, rainSince "
                          "FROM conditions")
        self.assertEqual(rows, [(int(snapshot.timestamp), 2, 2.54, 25.4, 254.0,
                                 '2009-12-24T13:05')])

    def test_high_channels(self):
        # Temperature on channel 12, water on channel 15
        self.state.update(decode(with_checksum(0xd2, 0x42, 0x1c, 0x32, 0x00, 0x41, 0x28, 0x00,
                                               0x78, 0x78)))
        self.state.update(WaterReading(sensor=15, temp=7.5))
        self.assertEqual(self.manager.add_snapshot(self.state.snapshot()), 2)
        rows = self.fetch("SELECT sensor, temperature, humidity, waterTemperature "
                          "FROM sensors ORDER BY sensor")
        self.assertEqual(rows, [(12, 5.0, 65, None), (15, None, None, 7.5)])

    def test_sensor_rows_only(self):
        self.state.update(WaterReading(sensor=1, temp=18.5))
        self.assertEqual(self.manager.add_snapshot(self.state.snapshot()), 1)
        self.assertEqual(self.fetch("SELECT COUNT(*) FROM conditions"), [(0,)])

    def test_duplicate_timestamp(self):
        self.state.update(decode(WIND_RECORD))
        snapshot = self.state.snapshot()
        self.manager.add_snapshot(snapshot)
        with self.assertLogs('wmrlog.archive', level='ERROR'):
            self.assertEqual(self.manager.add_snapshot(snapshot), 0)
        self.assertEqual(self.fetch("SELECT COUNT(*) FROM conditions"), [(1,)])


class OpenManagerTest(unittest.TestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_creates_database(self):
        config_dict = configobj.ConfigObj({'WMRLOG_ROOT': self.root})
        wmrutil.config.conditional_merge(config_dict, wmrlog.defaults.defaults)
        with wmrlog.archive.open_manager(config_dict) as manager:
            self.assertIn('conditions', manager.connection.tables())
        self.assertTrue(os.path.exists(os.path.join(self.root, 'archive', 'wmrlog.sdb')))
        # A second open finds the existing database and schema
        with wmrlog.archive.open_manager(config_dict) as manager:
            self.assertIn('sensors', manager.connection.tables())


class ArchiveThreadTest(unittest.TestCase):

    def test_saves_periodically(self):
        state = AggregateState()
        state.update(decode(WIND_RECORD))
        manager = mock.MagicMock()
        thread = wmrlog.archive.ArchiveThread(state, lambda: manager, archive_interval=0.01)
        thread.start()
        deadline = time.time() + 5.0
        while manager.add_snapshot.call_count < 2 and time.time() < deadline:
            time.sleep(0.01)
        thread.shutDown()

        self.assertFalse(thread.is_alive())
        self.assertGreaterEqual(manager.add_snapshot.call_count, 2)
        snapshot = manager.add_snapshot.call_args[0][0]
        self.assertTrue(snapshot.observed('wind'))
        manager.close.assert_called_once_with()

    def test_database_error_is_survived(self):
        manager = mock.MagicMock()
        manager.add_snapshot.side_effect = [wmrdb.OperationalError("database is locked"), 1]
        thread = wmrlog.archive.ArchiveThread(AggregateState(), lambda: manager)
        thread.manager = manager
        with self.assertLogs('wmrlog.archive', level='ERROR'):
            thread.save()
        thread.save()
        self.assertEqual(thread.saves, 1)

    def test_unopenable_database(self):
        def factory():
            raise wmrdb.CannotConnectError("No database")

        thread = wmrlog.archive.ArchiveThread(AggregateState(), factory, archive_interval=0.01)
        with self.assertLogs('wmrlog.archive', level='CRITICAL'):
            thread.start()
            thread.join(5.0)
        self.assertFalse(thread.is_alive())


if __name__ == '__main__':
    unittest.main()
