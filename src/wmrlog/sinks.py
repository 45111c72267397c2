#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Sinks: the consumers of decoded readings.

Every decoded reading is wrapped in an Envelope, which is handed, unchanged,
to each enabled sink by a SinkFanout. A sink that fails is logged and skipped;
it never keeps the other sinks, or the decode loop, from running.
"""

import json
import logging
import os
import os.path
import sys
import time
from collections import OrderedDict

import paho.mqtt.client as mqtt

import wmrlog
import wmrutil.logger
from wmrlog.decoders import sensor_of
from wmrutil.wmrutil import to_float, to_int, utcnow, to_iso_utc

log = logging.getLogger(__name__)


class SinkError(IOError):
    """Exception thrown when a sink is unable to deliver an envelope."""


# ==============================================================================
#                    Class Envelope
# ==============================================================================

class Envelope(object):
    """A decoded reading, as it is seen by the sinks."""

    def __init__(self, topic, timestamp, fields, source):
        self.topic = topic
        self.timestamp = timestamp
        self.fields = fields
        self.source = source

    @classmethod
    def from_reading(cls, reading, station_id, timestamp=None):
        """Wrap a reading.

        reading: A reading, as returned by wmrlog.decoders.decode().

        station_id: Identifier of the station. The sensor channel, if the reading
        has one, is appended to it to form the source.

        timestamp: An aware datetime. Default is now.
        """
        if timestamp is None:
            timestamp = utcnow()
        if hasattr(reading, 'sensor'):
            source = "%s.%d" % (station_id, sensor_of(reading))
        else:
            source = station_id
        return cls(reading.record_type, timestamp, reading._asdict(), source)

    def to_dict(self):
        """Return the wire shape: topic, timestamp, the fields, then source."""
        body = OrderedDict()
        body['topic'] = self.topic
        body['timestamp'] = to_iso_utc(self.timestamp)
        for key, value in self.fields.items():
            body[key] = value
        body['source'] = self.source
        return body

    def to_json(self):
        return json.dumps(self.to_dict())

    def to_text(self):
        """Return the classic log line, for example
        DATA[20091224130500]:type=WATER,sensor=1,temp=12.5"""
        parts = ["type=%s" % self.topic.upper()]
        parts.extend("%s=%s" % (key, value) for key, value in self.fields.items())
        return "DATA[%s]:%s" % (self.timestamp.strftime("%Y%m%d%H%M%S"), ','.join(parts))

    def __str__(self):
        return self.to_text()


LINE_FORMATS = {
    'json': Envelope.to_json,
    'text': Envelope.to_text,
}


# ==============================================================================
#                    Class AbstractSink
# ==============================================================================

class AbstractSink(object):
    """Sinks should inherit from this class."""

    def __init__(self, name=None, line_format='text', **_unused):
        self.name = name or self.__class__.__name__
        try:
            self.formatter = LINE_FORMATS[line_format]
        except KeyError:
            raise wmrlog.ConfigError("Unknown line format '%s' for sink %s"
                                     % (line_format, self.name))

    def format(self, envelope):
        return self.formatter(envelope)

    def write(self, envelope):
        raise NotImplementedError("Method 'write' not implemented")

    def close(self):
        pass


class ConsoleSink(AbstractSink):
    """Print each envelope on the console."""

    def __init__(self, stream=None, **sink_dict):
        super().__init__(**sink_dict)
        self.stream = stream

    def write(self, envelope):
        # Look up sys.stdout at every write, so redirection is honored
        print(self.format(envelope), file=self.stream or sys.stdout, flush=True)


class FileSink(AbstractSink):
    """Append each envelope to a file.

    The file is checked before every write. If it has gone missing (typically
    because it was rotated away), it is opened anew.
    """

    def __init__(self, filename='data.log', root=None, **sink_dict):
        super().__init__(**sink_dict)
        if root is not None:
            filename = os.path.join(root, filename)
        self.filename = filename
        self.fd = None

    def write(self, envelope):
        if self.fd is None or not os.path.exists(self.filename):
            self._reopen()
        self.fd.write(self.format(envelope) + '\n')
        self.fd.flush()

    def _reopen(self):
        self.close()
        log.debug("%s: opening %s", self.name, self.filename)
        directory = os.path.dirname(self.filename)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.fd = open(self.filename, 'a', encoding='utf-8')

    def close(self):
        if self.fd is not None:
            self.fd.close()
            self.fd = None


class MQTTSink(AbstractSink):
    """Publish each envelope to an MQTT broker.

    The message is the topic, a NUL, then the JSON body. Subscribers can match
    on the prefix of the message. The broker topic is topic_prefix/topic.

    After a failed connect, no new attempt is made for retry_wait seconds.
    Writes in the meantime fail at once, without touching the network.
    """

    def __init__(self, host='localhost', port=1883, topic_prefix='wmr', client_id='',
                 qos=0, keepalive=60, retry_wait=30, username=None, password=None, client=None,
                 **sink_dict):
        super().__init__(**sink_dict)
        self.host = host
        self.port = to_int(port)
        self.topic_prefix = topic_prefix
        self.qos = to_int(qos)
        self.keepalive = to_int(keepalive)
        self.retry_wait = to_float(retry_wait)
        if client is None:
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
            if username:
                client.username_pw_set(username, password)
        self.client = client
        self.connected = False
        self.next_attempt = 0

    def write(self, envelope):
        message = envelope.topic.encode('utf-8') + b'\x00' + envelope.to_json().encode('utf-8')
        self.publish(envelope.topic, message)

    def publish(self, topic, message):
        self._ensure()
        if self.topic_prefix:
            topic = "%s/%s" % (self.topic_prefix, topic)
        info = self.client.publish(topic, message, qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise SinkError("Publish to %s failed: %s" % (topic, mqtt.error_string(info.rc)))

    def _ensure(self):
        if self.connected:
            return
        now = time.time()
        if now < self.next_attempt:
            raise SinkError("Broker %s:%s unavailable; next attempt in %.0f seconds"
                            % (self.host, self.port, self.next_attempt - now))
        try:
            self.client.connect(self.host, self.port, self.keepalive)
        except OSError as e:
            self.next_attempt = now + self.retry_wait
            raise SinkError("Unable to connect to broker %s:%s: %s" % (self.host, self.port, e))
        self.client.loop_start()
        self.connected = True
        log.info("%s: connected to MQTT broker %s:%s", self.name, self.host, self.port)

    def close(self):
        if self.connected:
            self.client.loop_stop()
            self.client.disconnect()
            self.connected = False


# ==============================================================================
#                    Class SinkFanout
# ==============================================================================

class SinkFanout(object):
    """Delivers each envelope to every sink, isolating the sinks from each other."""

    def __init__(self, sinks, log_failure=True):
        self.sinks = list(sinks)
        if not self.sinks:
            raise wmrlog.ConfigError("At least one sink must be enabled")
        self.log_failure = log_failure
        self.failures = dict((sink.name, 0) for sink in self.sinks)

    def dispatch(self, envelope):
        """Write the envelope to every sink.

        Returns:
            int: The number of sinks that took the envelope.
        """
        delivered = 0
        for sink in self.sinks:
            try:
                sink.write(envelope)
            except Exception as e:
                self.failures[sink.name] += 1
                if self.log_failure:
                    log.error("%s: unable to write %s record: %s", sink.name, envelope.topic, e)
                    wmrutil.logger.log_traceback(log.debug, '    ****  ')
            else:
                delivered += 1
        return delivered

    def close(self):
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                log.error("%s: error while closing: %s", sink.name, e)
