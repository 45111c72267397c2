#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""The latest reading of every sensor, shared between the decode loop and the
archive thread."""

import logging
import threading
import time
from collections import namedtuple

from wmrlog.decoders import sensor_of
from wmrlog.protocol import RECORD_TYPES

log = logging.getLogger(__name__)

# The channel is a 4-bit nibble
DEFAULT_MAX_SENSORS = 16

Slot = namedtuple('Slot', 'reading observed')

EMPTY_SLOT = Slot(None, False)


class AggregateState(object):
    """Holds one slot per (record type, sensor channel).

    A single lock guards the whole table. Readings are immutable, and a slot is
    replaced as a whole, so a snapshot can never see half of an update.
    """

    def __init__(self, max_sensors=DEFAULT_MAX_SENSORS):
        self.max_sensors = max_sensors
        self._lock = threading.Lock()
        self._slots = dict((record_type.name, [EMPTY_SLOT] * max_sensors)
                           for record_type in RECORD_TYPES.values())

    def update(self, reading):
        """Store a reading as the latest one for its record type and sensor.

        Returns:
            bool: False if the sensor channel is out of range, in which case nothing
            is stored.
        """
        sensor = sensor_of(reading)
        if not 0 <= sensor < self.max_sensors:
            log.error("Sensor %d of %s reading is out of range; ignored",
                      sensor, reading.record_type)
            return False
        slot = Slot(reading, True)
        with self._lock:
            self._slots[reading.record_type][sensor] = slot
        return True

    def snapshot(self):
        """Return an independent copy of the whole table."""
        with self._lock:
            slots = dict((name, list(row)) for name, row in self._slots.items())
        return Snapshot(slots, time.time())


class Snapshot(object):
    """A frozen copy of the aggregate state, taken at time 'timestamp'."""

    def __init__(self, slots, timestamp):
        self._slots = slots
        self.timestamp = timestamp

    def get(self, record_type, sensor=0):
        """Return the latest reading for a record type and sensor, or None if never seen."""
        return self._slots[record_type][sensor].reading

    def observed(self, record_type, sensor=0):
        return self._slots[record_type][sensor].observed

    def sensors(self, record_type):
        """Return the sensor channels of a record type that have been observed."""
        return [sensor for sensor, slot in enumerate(self._slots[record_type])
                if slot.observed]

    def __iter__(self):
        """Generate (record_type, sensor, reading) for every observed slot."""
        for record_type, row in self._slots.items():
            for sensor, slot in enumerate(row):
                if slot.observed:
                    yield record_type, sensor, slot.reading

    def __len__(self):
        return sum(1 for _ in self)
