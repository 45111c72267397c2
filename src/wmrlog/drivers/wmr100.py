#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Report source for an Oregon Scientific WMR100 console on the USB bus.

The console shows up as a HID device. Reports are fetched with interrupt
reads on the IN endpoint; the console is woken up, and told that the host is
ready for the next record, with HID SET_REPORT control messages.

Unfortunately, there is no documentation for the PyUSB legacy API, so you have
to back it out of the source code, available at:
  https://github.com/pyusb/pyusb/blob/master/usb/legacy.py
"""

import logging
import time

import usb

import wmrlog
import wmrlog.drivers
from wmrutil.wmrutil import to_int, to_float, fmt_bytes

log = logging.getLogger(__name__)

DRIVER_NAME = 'WMR100'
DRIVER_VERSION = "1.0.0"

# Sent once, to wake the console up after a reset or power failure
INIT_PACKET = (0x20, 0x00, 0x08, 0x01, 0x00, 0x00, 0x00, 0x00)
# Sent after every record, to say the host is ready for the next one
READY_PACKET = (0x01, 0xd0, 0x08, 0x01, 0x00, 0x00, 0x00, 0x00)

# HID SET_REPORT, output report 0
SET_REPORT = 0x09
REPORT_VALUE = 0x0200
CONTROL_TIMEOUT_MS = 1000


def loader(config_dict, engine):  # @UnusedVariable
    return WMR100Source(**config_dict[DRIVER_NAME])


class WMR100Source(wmrlog.drivers.AbstractSource):
    """Report source for the WMR100 station."""

    def __init__(self, **stn_dict):
        """Initialize an object of type WMR100Source.

        NAMED ARGUMENTS:

        model: Which station model is this?
        [Optional. Default is 'WMR100']

        timeout: How long to wait, in seconds, for a USB report. Zero waits forever.
        [Optional. Default is 0]

        wait_before_retry: How long to wait before retrying.
        [Optional. Default is 5 seconds]

        max_tries: How many times to try before giving up.
        [Optional. Default is 5]

        vendor_id: The USB vendor ID for the WMR
        [Optional. Default is 0x0fde]

        product_id: The USB product ID for the WMR
        [Optional. Default is 0xca01]

        interface: The USB interface
        [Optional. Default is 0]

        IN_endpoint: The IN USB endpoint used by the WMR.
        [Optional. Default is usb.ENDPOINT_IN + 1]
        """

        log.info('Driver version is %s', DRIVER_VERSION)
        self.model = stn_dict.get('model', 'WMR100')
        self.timeout = to_float(stn_dict.get('timeout', 0))
        self.wait_before_retry = to_float(stn_dict.get('wait_before_retry', 5.0))
        self.max_tries = to_int(stn_dict.get('max_tries', 5))
        self.vendor_id = to_int(stn_dict.get('vendor_id', 0x0fde))
        self.product_id = to_int(stn_dict.get('product_id', 0xca01))
        self.interface = to_int(stn_dict.get('interface', 0))
        self.IN_endpoint = to_int(stn_dict.get('IN_endpoint', usb.ENDPOINT_IN + 1))
        self.devh = None
        self.acks = 0
        self.open()

    @property
    def hardware_name(self):
        return self.model

    def open(self):
        """Open the console, trying up to max_tries times, then wake it up."""
        for count in range(self.max_tries):
            try:
                self._open_port()
                break
            except wmrlog.WakeupError as e:
                log.error("Open attempt %d of %d failed: %s", count + 1, self.max_tries, e)
                if count + 1 < self.max_tries:
                    time.sleep(self.wait_before_retry)
        else:
            raise wmrlog.RetriesExceeded("Unable to open USB device (0x%04x, 0x%04x) after %d tries"
                                         % (self.vendor_id, self.product_id, self.max_tries))

        log.debug("Sending init packet")
        try:
            self._send(INIT_PACKET)
            self._send(READY_PACKET)
        except usb.USBError as e:
            log.error("Unable to send USB control message: %s", e)
            self.close()
            # Convert to a wmrlog error:
            raise wmrlog.WakeupError(e)
        log.info("Opened %s (0x%04x, 0x%04x)", self.model, self.vendor_id, self.product_id)

    def _open_port(self):
        dev = self._find_device()
        if not dev:
            raise wmrlog.WakeupError("Unable to find USB device (0x%04x, 0x%04x)"
                                     % (self.vendor_id, self.product_id))
        try:
            self.devh = dev.open()
        except usb.USBError as e:
            raise wmrlog.WakeupError("Unable to open USB device: %s" % e)
        # Detach any old claimed interfaces
        try:
            self.devh.detachKernelDriver(self.interface)
        except usb.USBError:
            pass
        try:
            self.devh.claimInterface(self.interface)
        except usb.USBError as e:
            self.close()
            raise wmrlog.WakeupError("Unable to claim USB interface: %s" % e)

    def close(self):
        if self.devh is None:
            return
        try:
            self.devh.releaseInterface()
        except usb.USBError:
            pass
        try:
            self.devh.detachKernelDriver(self.interface)
        except usb.USBError:
            pass
        self.devh = None

    def read(self):
        """Return the next 8 byte report. Transient USB errors are retried max_tries times."""
        nerrors = 0
        while True:
            try:
                report = self.devh.interruptRead(self.IN_endpoint,
                                                 8,  # bytes to read
                                                 int(self.timeout * 1000))
                report = bytes(report)
                if not report:
                    raise IndexError("Empty USB report")
                if wmrlog.debug:
                    log.debug("Report: %s", fmt_bytes(report))
                return report
            except (IndexError, usb.USBError) as e:
                log.debug("Bad USB report received: %s", e)
                nerrors += 1
                if nerrors > self.max_tries:
                    log.error("Max retries exceeded while fetching USB reports")
                    raise wmrlog.RetriesExceeded("Max retries exceeded while fetching USB reports")
                time.sleep(self.wait_before_retry)

    def send_ready(self):
        try:
            self._send(READY_PACKET)
        except usb.USBError as e:
            raise wmrlog.WmrIOError("Unable to send ready packet: %s" % e)
        self.acks += 1

    def _send(self, packet):
        self.devh.controlMsg(usb.TYPE_CLASS + usb.RECIP_INTERFACE,  # requestType
                             SET_REPORT,                            # request
                             list(packet),                          # buffer
                             REPORT_VALUE,                          # value
                             0x0000000,                             # index
                             CONTROL_TIMEOUT_MS)                    # timeout

    def _find_device(self):
        """Find the given vendor and product IDs on the USB bus"""
        for bus in usb.busses():
            for dev in bus.devices:
                if dev.idVendor == self.vendor_id and dev.idProduct == self.product_id:
                    return dev
        return None


# define a main entry point for basic testing of the station without wmrlog
# engine and service overhead.  invoke this as follows from the wmrlog root dir:
#
# PYTHONPATH=src python -m wmrlog.drivers.wmr100

if __name__ == '__main__':
    import optparse

    usage = """%prog [options] [--help]"""

    parser = optparse.OptionParser(usage=usage)
    parser.add_option('--version', dest='version', action='store_true',
                      help='display driver version')
    parser.add_option('--count', dest='count', type=int, default=10,
                      help='number of reports to dump')
    (options, args) = parser.parse_args()

    if options.version:
        print("wmr100 driver version %s" % DRIVER_VERSION)
        exit(0)

    logging.basicConfig(level=logging.DEBUG)
    source = WMR100Source()
    try:
        for _ in range(options.count):
            print(fmt_bytes(source.read()))
            source.send_ready()
    finally:
        source.close()
