#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Decoders that turn a raw WMR100 record into a reading.

There is one reading type per record type. A reading is an immutable
namedtuple, tagged with the name of its record type in the class attribute
'record_type'. Readings from records that carry a sensor channel have a field
'sensor'.

Every decoder is a pure function of the record. None of them raise for an odd
value: the checksum is the only test of validity, so whatever a good record
holds is passed through as decoded.
"""

import types
from collections import namedtuple

from wmrlog.protocol import RAIN, TEMPERATURE, WATER, PRESSURE, UV, WIND, CLOCK

# Names of the 16 compass points, indexed by the wind direction nibble
COMPASS_POINTS = ('N', 'NNE', 'NE', 'ENE', 'E', 'ESE', 'SE', 'SSE',
                  'S', 'SSW', 'SW', 'WSW', 'W', 'WNW', 'NW', 'NNW')

# Trend code as sent by the console, mapped to flat (0), rising (+1) and falling (-1)
TREND_CODES = types.MappingProxyType({0: 0, 1: 1, 2: -1})

# Rain gauge totals are in hundredths of an inch
RAIN_MM_PER_COUNT = 25.4 / 100.0


class RainReading(namedtuple('RainReading',
                             'sensor power rate hour_total day_total all_total since')):
    __slots__ = ()
    record_type = 'rain'


class TemperatureReading(namedtuple('TemperatureReading',
                                    'sensor comfort trend temp humidity dewpoint')):
    __slots__ = ()
    record_type = 'temp'


class WaterReading(namedtuple('WaterReading', 'sensor temp')):
    __slots__ = ()
    record_type = 'water'


class PressureReading(namedtuple('PressureReading',
                                 'pressure forecast altpressure altforecast')):
    __slots__ = ()
    record_type = 'pressure'


class UVReading(namedtuple('UVReading', '')):
    """The UV record has no known layout in this protocol revision. Its arrival is
    all that is reported."""
    __slots__ = ()
    record_type = 'uv'


class WindReading(namedtuple('WindReading', 'power direction dir degrees speed avgspeed')):
    __slots__ = ()
    record_type = 'wind'


class ClockReading(namedtuple('ClockReading', 'powered battery rf level at')):
    __slots__ = ()
    record_type = 'clock'


def sensor_of(reading):
    """Return the sensor channel of a reading. Readings without one are channel 0."""
    return getattr(reading, 'sensor', 0)


def decode_word(low, high, mask=0xffff):
    """Combine two bytes into a little-endian 16 bit value, optionally masked."""
    return (low | (high << 8)) & mask


def decode_temperature(low, high):
    """Decode a temperature in degrees C.

    The magnitude is 12 bits in tenths of a degree. A high nibble of 0x8 in the
    second byte means the value is negative.

    Example:
        >>> decode_temperature(0x32, 0x00)
        5.0
        >>> decode_temperature(0x32, 0x80)
        -5.0
        >>> decode_temperature(0xe7, 0x03)
        99.9
    """
    value = decode_word(low, high, 0x0fff) / 10.0
    if high >> 4 == 0x8:
        value = -value
    return value


def format_date(minute, hour, day, month, year):
    """Format the date fields of a record. The year is an offset from 2000.

    The values are not validated.

    Example:
        >>> format_date(5, 13, 24, 12, 9)
        '2009-12-24T13:05'
    """
    return "%04d-%02d-%02dT%02d:%02d" % (2000 + year, month, day, hour, minute)


def decode_rain(record):
    return RainReading(
        sensor=record[2] & 0x0f,
        power=record[2] >> 4,
        rate=record[3],
        hour_total=round(decode_word(record[4], record[5]) * RAIN_MM_PER_COUNT, 2),
        day_total=round(decode_word(record[6], record[7]) * RAIN_MM_PER_COUNT, 2),
        all_total=round(decode_word(record[8], record[9]) * RAIN_MM_PER_COUNT, 2),
        since=format_date(record[10], record[11], record[12], record[13], record[14]))


def decode_temp(record):
    status = record[2] >> 4
    return TemperatureReading(
        sensor=record[2] & 0x0f,
        comfort=status >> 2,
        trend=TREND_CODES.get(status & 0x03),
        temp=decode_temperature(record[3], record[4]),
        humidity=record[5],
        dewpoint=decode_temperature(record[6], record[7]))


def decode_water(record):
    return WaterReading(
        sensor=record[2] & 0x0f,
        temp=decode_temperature(record[3], record[4]))


def decode_pressure(record):
    return PressureReading(
        pressure=decode_word(record[2], record[3], 0x0fff),
        forecast=record[3] >> 4,
        altpressure=decode_word(record[4], record[5], 0x0fff),
        altforecast=record[5] >> 4)


def decode_uv(record):  # @UnusedVariable
    return UVReading()


def decode_wind(record):
    direction = record[2] & 0x0f
    return WindReading(
        power=record[2] >> 4,
        direction=direction,
        dir=COMPASS_POINTS[direction],
        degrees=direction * 360.0 / 16.0,
        speed=record[4] / 10.0,
        # The average is packed across a nibble boundary: byte 6 holds the high
        # bits, the high nibble of byte 5 the low ones.
        avgspeed=((record[6] << 4) + (record[5] >> 4)) / 10.0)


def decode_clock(record):
    flags = record[0] >> 4
    return ClockReading(
        powered=flags >> 3,
        battery=(flags & 0x4) >> 2,
        rf=(flags & 0x2) >> 1,
        level=flags & 0x1,
        at=format_date(record[4], record[5], record[6], record[7], record[8]))


# Dictionary that maps a record type code to the function that can decode it
DECODERS = types.MappingProxyType({
    RAIN: decode_rain,
    TEMPERATURE: decode_temp,
    WATER: decode_water,
    PRESSURE: decode_pressure,
    UV: decode_uv,
    WIND: decode_wind,
    CLOCK: decode_clock,
})


def decode(record):
    """Decode a checksummed record.

    Returns:
        The reading, or None if the record type has no decoder.
    """
    decoder = DECODERS.get(record[1])
    if decoder is None:
        return None
    return decoder(record)


if __name__ == '__main__':
    import doctest

    if not doctest.testmod().failed:
        print("PASSED")
