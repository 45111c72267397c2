#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Package wmrlog, containing modules specific to the WMR100 logging engine."""
__version__ = "1.0.0"

# Set to true for extra debug information:
debug = False

# Exit return codes
CMD_ERROR = 2
CONFIG_ERROR = 3
IO_ERROR = 4
DB_ERROR = 5


# =============================================================================
#           Define possible exceptions that could get thrown.
# =============================================================================

class WmrIOError(IOError):
    """Base class of exceptions thrown when encountering an input/output error
    with the hardware."""


class WakeupError(WmrIOError):
    """Exception thrown when unable to wake up or initially connect with the
    hardware."""


class RetriesExceeded(WmrIOError):
    """Exception thrown when max retries exceeded."""


class ConfigError(Exception):
    """Exception thrown when the configuration cannot be used."""


class StopNow(Exception):
    """Exception thrown to stop the engine."""
