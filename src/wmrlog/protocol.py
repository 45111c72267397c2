#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Framing layer of the Oregon Scientific WMR100 protocol.

The console sends 8 byte USB reports. Byte zero of each report is the number
of bytes of the report that carry data (at most 7). The data bytes of
successive reports form one continuous stream, in which records are separated
by runs of 0xff. Each record looks like

    [flags, type, payload..., checksum-low, checksum-high]

where the total length is fixed by the record type, and the checksum is the
plain sum of all bytes before it.

For a pretty good summary of what's in these records see
    https://github.com/ejeklint/WLoggerDaemon/blob/master/Station_protocol.md
"""

import logging
import types
from collections import namedtuple

from wmrutil.wmrutil import fmt_bytes

log = logging.getLogger(__name__)

# Length of a USB report, including the length byte
REPORT_LENGTH = 8
# The most data bytes a single report can carry
MAX_PAYLOAD = REPORT_LENGTH - 1
# Records are separated by one or more of these
SYNC_MARKER = 0xff

# Record type codes
RAIN = 0x41
TEMPERATURE = 0x42
WATER = 0x44
PRESSURE = 0x46
UV = 0x47
WIND = 0x48
CLOCK = 0x60

RecordType = namedtuple('RecordType', 'name code length')

# Total length of each record type, counting the flags and type bytes, as
# well as the two checksum bytes.
RECORD_TYPES = types.MappingProxyType({
    RAIN: RecordType('rain', RAIN, 17),
    TEMPERATURE: RecordType('temp', TEMPERATURE, 12),
    WATER: RecordType('water', WATER, 7),
    PRESSURE: RecordType('pressure', PRESSURE, 8),
    UV: RecordType('uv', UV, 5),
    WIND: RecordType('wind', WIND, 11),
    CLOCK: RecordType('clock', CLOCK, 12),
})

# Possible results of reading one record
OK = 'ok'
BAD_CHECKSUM = 'bad_checksum'
UNKNOWN = 'unknown'


def calc_checksum(record):
    """Sum every byte that precedes the two checksum bytes."""
    return sum(record[:-2])


def extract_checksum(record):
    """Return the checksum stored little-endian in the last two bytes."""
    return record[-2] | (record[-1] << 8)


def verify_checksum(record):
    """Return True if the record carries a correct checksum.

    Example:
        >>> verify_checksum(bytearray([0x00, 0x47, 0x00, 0x47, 0x00]))
        True
        >>> verify_checksum(bytearray([0x00, 0x47, 0x01, 0x47, 0x00]))
        False
    """
    if len(record) < 3:
        return False
    return calc_checksum(record) == extract_checksum(record)


class ByteStream(object):
    """Presents the data bytes of a sequence of reports as a stream of single bytes."""

    def __init__(self, source):
        """Initialize an instance of ByteStream.

        source: A report source. Its method read() must return the next raw
        report, blocking if necessary.
        """
        self.source = source
        self.report = None
        self.pos = 0
        self.remain = 0
        self.reports_read = 0

    def next_byte(self):
        """Return the next data byte, reading a new report when the current one is used up."""
        while self.remain == 0:
            self._next_report()
        self.remain -= 1
        ibyte = self.report[self.pos]
        self.pos += 1
        return ibyte

    def _next_report(self):
        report = self.source.read()
        self.reports_read += 1
        self.report = report
        # Byte zero is the length; the data starts at byte one
        self.pos = 1
        if not report:
            self.remain = 0
            return
        # Never trust the declared length to stay inside the report
        self.remain = min(report[0], MAX_PAYLOAD, len(report) - 1)


class FrameSynchronizer(object):
    """Finds the start of the next record in an unframed byte stream."""

    def __init__(self, stream, marker=SYNC_MARKER):
        self.stream = stream
        self.marker = marker

    def synchronize(self):
        """Skip to the end of the next run of marker bytes.

        Returns:
            int: The first byte after the run. It is the flags byte of the next record.
        """
        skipped = 0
        ibyte = self.stream.next_byte()
        while ibyte != self.marker:
            skipped += 1
            ibyte = self.stream.next_byte()

        ibyte = self.stream.next_byte()
        while ibyte == self.marker:
            ibyte = self.stream.next_byte()

        if skipped:
            log.debug("Skipped %d bytes while looking for a record", skipped)
        return ibyte


class RecordReader(object):
    """Reads checksummed records from a byte stream.

    Corrupted records and records of an unknown type are ordinary events on a
    noisy line. They are reported through the outcome of read_record(), never
    by raising an exception.
    """

    def __init__(self, stream):
        self.stream = stream
        self.synchronizer = FrameSynchronizer(stream)
        self.good_records = 0
        self.bad_checksums = 0
        self.unknown_types = 0

    def read_record(self):
        """Read the next record.

        Returns:
            tuple: (outcome, record). The outcome is one of OK, BAD_CHECKSUM, or UNKNOWN.
            The record is a bytearray, or None if the type was unknown.
        """
        flags = self.synchronizer.synchronize()
        code = self.stream.next_byte()

        record_type = RECORD_TYPES.get(code)
        if record_type is None:
            self.unknown_types += 1
            log.info("Unknown record type: %02x, skipping", code)
            return UNKNOWN, None

        record = bytearray(record_type.length)
        record[0] = flags
        record[1] = code
        for i in range(2, record_type.length):
            record[i] = self.stream.next_byte()

        log.debug("Received %s record: %s", record_type.name, fmt_bytes(record))

        if not verify_checksum(record):
            self.bad_checksums += 1
            log.info("Bad checksum on %s record: %d / calc: %d",
                     record_type.name, extract_checksum(record), calc_checksum(record))
            return BAD_CHECKSUM, record

        self.good_records += 1
        return OK, record

    def gen_records(self):
        """Generator function that continuously returns (outcome, record) pairs."""
        while True:
            yield self.read_record()
