#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Test the report sources, with the USB bus mocked out"""

import os.path
import shutil
import tempfile
import unittest
from unittest import mock

import usb

import wmrlog
import wmrlog.drivers.replay
import wmrlog.drivers.wmr100
from wmrlog.drivers.replay import ReplaySource, parse_report
from wmrlog.drivers.wmr100 import WMR100Source, INIT_PACKET, READY_PACKET

REPORT = (7, 0xff, 0xff, 0xd2, 0x42, 0x10, 0x32, 0x00)


class WMR100Test(unittest.TestCase):

    def setUp(self):
        self.dev = mock.MagicMock(idVendor=0x0fde, idProduct=0xca01)
        self.devh = self.dev.open.return_value
        self.bus = mock.Mock(devices=[mock.Mock(idVendor=0x1234, idProduct=0x0001), self.dev])
        patcher = mock.patch.object(wmrlog.drivers.wmr100.usb, 'busses', return_value=[self.bus])
        self.busses = patcher.start()
        self.addCleanup(patcher.stop)
        patcher = mock.patch.object(wmrlog.drivers.wmr100.time, 'sleep')
        self.sleep = patcher.start()
        self.addCleanup(patcher.stop)

    def sent_packets(self):
        return [tuple(c[0][2]) for c in self.devh.controlMsg.call_args_list]

    def test_open(self):
        source = WMR100Source(vendor_id='0x0fde', product_id='0xca01', interface='0')
        self.devh.claimInterface.assert_called_once_with(0)
        # Wake up the console, then tell it we are ready
        self.assertEqual(self.sent_packets(), [INIT_PACKET, READY_PACKET])
        request_type, request, _, value, index, _ = self.devh.controlMsg.call_args[0]
        self.assertEqual(request_type, usb.TYPE_CLASS + usb.RECIP_INTERFACE)
        self.assertEqual((request, value, index), (0x09, 0x0200, 0))
        self.assertEqual(source.hardware_name, 'WMR100')

    def test_read(self):
        self.devh.interruptRead.return_value = REPORT
        source = WMR100Source()
        self.assertEqual(source.read(), bytes(REPORT))
        self.devh.interruptRead.assert_called_with(usb.ENDPOINT_IN + 1, 8, 0)

    def test_read_retries(self):
        self.devh.interruptRead.side_effect = [usb.USBError("Timeout"), (), REPORT]
        source = WMR100Source(max_tries=3)
        self.assertEqual(source.read(), bytes(REPORT))
        self.assertEqual(self.sleep.call_count, 2)

    def test_read_retries_exceeded(self):
        self.devh.interruptRead.side_effect = usb.USBError("Pipe error")
        source = WMR100Source(max_tries=2)
        with self.assertRaises(wmrlog.RetriesExceeded):
            source.read()
        self.assertEqual(self.devh.interruptRead.call_count, 3)

    def test_send_ready(self):
        source = WMR100Source()
        source.send_ready()
        self.assertEqual(self.sent_packets()[-1], READY_PACKET)
        self.assertEqual(source.acks, 1)
        self.devh.controlMsg.side_effect = usb.USBError("No device")
        with self.assertRaises(wmrlog.WmrIOError):
            source.send_ready()

    def test_device_not_found(self):
        self.busses.return_value = []
        with self.assertRaises(wmrlog.RetriesExceeded):
            WMR100Source(max_tries=3, wait_before_retry=1.0)
        # No wait after the last try
        self.assertEqual(self.sleep.call_args_list, [mock.call(1.0), mock.call(1.0)])

    def test_claim_failure_then_success(self):
        self.devh.claimInterface.side_effect = [usb.USBError("Busy"), None]
        WMR100Source(max_tries=3)
        self.assertEqual(self.devh.claimInterface.call_count, 2)
        self.assertEqual(self.sleep.call_count, 1)

    def test_wakeup_failure(self):
        self.devh.controlMsg.side_effect = usb.USBError("Broken pipe")
        with self.assertRaises(wmrlog.WakeupError):
            WMR100Source()
        self.devh.releaseInterface.assert_called_once_with()

    def test_close(self):
        source = WMR100Source()
        source.close()
        source.close()
        self.devh.releaseInterface.assert_called_once_with()

    def test_loader(self):
        source = wmrlog.drivers.wmr100.loader({'WMR100': {'model': 'WMRS200'}}, None)
        self.assertEqual(source.hardware_name, 'WMRS200')


class ReplayTest(unittest.TestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()
        with open(os.path.join(self.root, 'reports.txt'), 'w') as fd:
            fd.write("# Captured from a WMR100\n"
                     "\n"
                     "07 ff ff d2 42 10 32 00\n"
                     "05 41 28 00 78 78 00 00  # end of a temperature record\n")

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_parse_report(self):
        self.assertEqual(parse_report("02 FF 0a"), b'\x02\xff\x0a')
        self.assertIsNone(parse_report("   "))
        with self.assertRaises(wmrlog.ConfigError):
            parse_report("02 zz")

    def test_replay(self):
        source = ReplaySource(root=self.root)
        self.assertEqual(source.read(), bytes([7, 0xff, 0xff, 0xd2, 0x42, 0x10, 0x32, 0x00]))
        self.assertEqual(source.read()[:3], b'\x05\x41\x28')
        with self.assertRaises(wmrlog.StopNow):
            source.read()
        source.send_ready()
        self.assertEqual(source.acks, 1)

    def test_loop(self):
        source = ReplaySource(filename='reports.txt', loop='True', root=self.root)
        first = source.read()
        source.read()
        self.assertEqual(source.read(), first)

    def test_loader(self):
        config_dict = {'WMRLOG_ROOT': self.root, 'Replay': {'filename': 'reports.txt'}}
        source = wmrlog.drivers.replay.loader(config_dict, None)
        self.assertEqual(len(source.reports), 2)


if __name__ == '__main__':
    unittest.main()
