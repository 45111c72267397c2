#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Test the decode engine, from reports in to sinks out"""

import os.path
import shutil
import tempfile
import unittest

import configobj

import wmrlog
import wmrlog.defaults
import wmrlog.engine
import wmrutil.config
from wmrlog.sinks import AbstractSink, ConsoleSink, FileSink

from fake_station import FakeSource, framed, to_reports, TEMP_RECORD, WIND_RECORD, WATER_RECORD


class ListSink(AbstractSink):
    def __init__(self, **sink_dict):
        super().__init__(**sink_dict)
        self.envelopes = []

    def write(self, envelope):
        self.envelopes.append(envelope)


def make_config(**overrides):
    config_dict = configobj.ConfigObj(overrides)
    config_dict.setdefault('Archive', {})['enable'] = False
    wmrutil.config.conditional_merge(config_dict, wmrlog.defaults.defaults)
    return config_dict


class DecodeEngineTest(unittest.TestCase):

    def setUp(self):
        self.sink = ListSink(name='list')

    def engine_for(self, *records):
        self.source = FakeSource(to_reports(framed(*records)))
        return wmrlog.engine.DecodeEngine(make_config(), source=self.source, sinks=[self.sink])

    def test_end_to_end(self):
        engine = self.engine_for(TEMP_RECORD, WIND_RECORD, WATER_RECORD)
        with self.assertRaises(wmrlog.StopNow):
            engine.run()

        self.assertEqual([e.topic for e in self.sink.envelopes], ['temp', 'wind', 'water'])
        temp = self.sink.envelopes[0]
        self.assertEqual(temp.source, 'wmr100.0')
        self.assertEqual(temp.fields['temp'], 5.0)
        self.assertEqual(temp.fields['humidity'], 65)
        self.assertEqual(self.sink.envelopes[1].fields['dir'], 'N')

        snapshot = engine.state.snapshot()
        self.assertEqual(snapshot.get('temp').dewpoint, 4.0)
        self.assertEqual(snapshot.get('water', 2).temp, 99.9)
        self.assertEqual(self.source.acks, 3)
        # run() shuts everything down on the way out
        self.assertTrue(self.source.closed)

    def test_flipped_checksum(self):
        corrupted = bytearray(TEMP_RECORD)
        corrupted[-2] ^= 0xff
        engine = self.engine_for(corrupted, WATER_RECORD)

        self.assertIsNone(engine.process_record())
        # Nothing was stored or sent, but the console was still acknowledged
        self.assertEqual(len(engine.state.snapshot()), 0)
        self.assertEqual(self.sink.envelopes, [])
        self.assertEqual(self.source.acks, 1)

        # The loop carries on with the next record
        reading = engine.process_record()
        self.assertEqual(reading.record_type, 'water')
        self.assertEqual(self.source.acks, 2)
        self.assertEqual(engine.reader.bad_checksums, 1)

    def test_unknown_type_is_acknowledged(self):
        unknown = bytearray([0x00, 0x99, 0x00, 0x00])
        engine = self.engine_for(unknown, WATER_RECORD)
        self.assertIsNone(engine.process_record())
        self.assertEqual(self.source.acks, 1)
        self.assertEqual(engine.process_record().sensor, 2)

    def test_transport_failure_is_fatal(self):
        engine = self.engine_for()
        with self.assertRaises(wmrlog.StopNow):
            engine.process_record()
        self.assertEqual(self.source.acks, 0)


class LoadTest(unittest.TestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_load_driver_and_sinks(self):
        with open(os.path.join(self.root, 'reports.txt'), 'w') as fd:
            for report in to_reports(framed(TEMP_RECORD)):
                fd.write(' '.join('%02x' % b for b in report) + '\n')
        config_dict = make_config(WMRLOG_ROOT=self.root,
                                  Station={'driver': 'wmrlog.drivers.replay'})
        engine = wmrlog.engine.DecodeEngine(config_dict)
        try:
            self.assertEqual(engine.source.hardware_name, 'Replay')
            sinks = dict((sink.name, sink) for sink in engine.fanout.sinks)
            # The console and file sinks are enabled by default, the MQTT sink is not
            self.assertEqual(sorted(sinks), ['console', 'file'])
            self.assertIsInstance(sinks['console'], ConsoleSink)
            self.assertIsInstance(sinks['file'], FileSink)
            self.assertEqual(sinks['file'].filename, os.path.join(self.root, 'data.log'))
            self.assertIsNone(engine.archive_thread)
        finally:
            engine.shutDown()

    def test_bad_driver(self):
        config_dict = make_config(Station={'driver': 'wmrlog.drivers.nonexistent'})
        with self.assertRaises(wmrlog.engine.InitializationError):
            wmrlog.engine.DecodeEngine(config_dict)

    def test_bad_sink(self):
        source = FakeSource([])
        config_dict = make_config(Sinks={'bogus': {'sink': 'wmrlog.sinks.NoSuchSink'}})
        with self.assertRaises(wmrlog.ConfigError):
            wmrlog.engine.DecodeEngine(config_dict, source=source)
        self.assertTrue(source.closed)


if __name__ == '__main__':
    unittest.main()
