#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Report sources for the wmrlog engine."""


class AbstractSource(object):
    """Report sources should inherit from this class.

    A source delivers raw 8 byte reports from the console, and passes the
    acknowledgment the console expects after every record back to it.
    """

    @property
    def hardware_name(self):
        raise NotImplementedError("Property 'hardware_name' not implemented")

    def read(self):
        """Return the next raw report, blocking until one is available."""
        raise NotImplementedError("Method 'read' not implemented")

    def send_ready(self):
        raise NotImplementedError("Method 'send_ready' not implemented")

    def close(self):
        pass
