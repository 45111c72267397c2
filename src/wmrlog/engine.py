#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Main engine for the wmrlog logging system."""

import logging
import os.path
import sys

import wmrlog
import wmrlog.archive
import wmrutil.logger
from wmrlog.decoders import decode
from wmrlog.protocol import ByteStream, RecordReader, OK
from wmrlog.sinks import Envelope, SinkFanout
from wmrlog.state import AggregateState, DEFAULT_MAX_SENSORS
from wmrutil.wmrutil import get_object, to_bool, to_int

log = logging.getLogger(__name__)


class InitializationError(wmrlog.WmrIOError):
    """Exception raised when unable to initialize the console."""


# ==============================================================================
#                    Class DecodeEngine
# ==============================================================================

class DecodeEngine(object):
    """Runs the decode loop: reports in, readings out.

    Every decoded reading updates the aggregate state and is dispatched to the
    sinks. If archiving is enabled, a separate thread saves the aggregate state
    to a database every archive interval."""

    def __init__(self, config_dict, source=None, sinks=None):
        """Initialize an instance of DecodeEngine.

        config_dict: The configuration dictionary.

        source: A report source. If not given, the driver named in section
        [Station] is loaded.

        sinks: A list of sinks. If not given, the enabled sinks of section
        [Sinks] are instantiated.
        """
        self.station_id = config_dict.get('station_id', 'wmr100')
        self.root = os.path.expanduser(config_dict.get('WMRLOG_ROOT', '.'))

        # This will hold an instance of the report source
        self.source = source
        if self.source is None:
            self.setupStation(config_dict)

        try:
            stn_dict = config_dict.get('Station', {})
            self.state = AggregateState(to_int(stn_dict.get('max_sensors', DEFAULT_MAX_SENSORS)))

            if sinks is None:
                sinks = self.loadSinks(config_dict)
            self.fanout = SinkFanout(sinks, to_bool(config_dict.get('log_failure', True)))

            self.archive_thread = self.setupArchive(config_dict)
        except Exception:
            # Release the console before giving up
            self.source.close()
            raise

        self.stream = ByteStream(self.source)
        self.reader = RecordReader(self.stream)

    def setupStation(self, config_dict):
        """Load the report source."""

        # Get the driver from the configuration dictionary. This will be a
        # module name such as "wmrlog.drivers.wmr100"
        driver = config_dict['Station']['driver']

        log.info("Loading driver %s", driver)

        # Open up the source, wrapping it in a try block in case of failure.
        try:
            __import__(driver)
            driver_module = sys.modules[driver]
            # Find the function 'loader' within the module:
            loader_function = getattr(driver_module, 'loader')
            self.source = loader_function(config_dict, self)
        except Exception as ex:
            log.error("Import of driver failed: %s (%s)", ex, type(ex))
            wmrutil.logger.log_traceback(log.critical, "    ****  ")
            # Signal that we have an initialization error:
            raise InitializationError(ex)

    def loadSinks(self, config_dict):
        """Instantiate the sinks that are enabled in section [Sinks]."""
        sinks = []
        sinks_dict = config_dict.get('Sinks', {})
        for name in sinks_dict:
            sink_dict = dict(sinks_dict[name])
            if not to_bool(sink_dict.pop('enable', True)):
                log.debug("Sink %s is not enabled", name)
                continue
            try:
                sink_class = get_object(sink_dict.pop('sink'))
            except (KeyError, ImportError, AttributeError, ValueError) as e:
                raise wmrlog.ConfigError("Unable to load sink %s: %s" % (name, e))
            sinks.append(sink_class(name=name, root=self.root, **sink_dict))
            log.info("Loaded sink %s (%s)", name, sink_class.__name__)
        return sinks

    def setupArchive(self, config_dict):
        """Create, but do not start, the archive thread."""
        archive_dict = config_dict.get('Archive', {})
        if not to_bool(archive_dict.get('enable', False)):
            log.info("Archiving is not enabled")
            return None
        return wmrlog.archive.ArchiveThread(
            self.state,
            lambda: wmrlog.archive.open_manager(config_dict),
            archive_interval=archive_dict.get('archive_interval', 60),
            log_success=config_dict.get('log_success', True))

    def process_record(self):
        """Read one record and act on it. The console is told it can send the
        next record whatever the outcome.

        Returns:
            The reading, or None if the record was bad or of an unknown type.
        """
        outcome, record = self.reader.read_record()
        try:
            if outcome != OK:
                return None
            reading = decode(record)
            if reading is None:
                return None
            self.state.update(reading)
            self.fanout.dispatch(Envelope.from_reading(reading, self.station_id))
            return reading
        finally:
            self.source.send_ready()

    def run(self):
        """Main execution entry point."""

        # Wrap the loop in a try block so we can do an orderly shutdown
        # should an exception occur:
        try:
            if self.archive_thread is not None:
                self.archive_thread.start()

            log.info("Starting main record loop.")

            while True:
                self.process_record()

        finally:
            # The main loop has exited. Shut the engine down.
            log.info("Main loop exiting. Shutting engine down.")
            self.shutDown()

    def shutDown(self):
        """Run when an engine shutdown is requested."""

        if self.archive_thread is not None:
            try:
                self.archive_thread.shutDown()
            except Exception as e:
                log.error("Error while stopping archive thread: %s", e)
            self.archive_thread = None

        self.fanout.close()

        if self.source is not None:
            try:
                # Close the console:
                self.source.close()
            except Exception as e:
                log.error("Error while closing report source: %s", e)

        log.info("Records: %d good, %d bad checksum, %d unknown type",
                 self.reader.good_records, self.reader.bad_checksums, self.reader.unknown_types)
