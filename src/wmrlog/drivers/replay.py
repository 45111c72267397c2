#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Report source that replays reports saved in a text file.

Each line holds one report, as hex bytes separated by white space, for example

    07 ff ff d2 42 10 32 00

Everything after a '#' is a comment. Blank lines are ignored.
"""

import logging
import os.path

import wmrlog
import wmrlog.drivers
from wmrutil.wmrutil import to_bool

log = logging.getLogger(__name__)

DRIVER_NAME = 'Replay'


def loader(config_dict, engine):  # @UnusedVariable
    root = os.path.expanduser(config_dict.get('WMRLOG_ROOT', '.'))
    return ReplaySource(root=root, **config_dict[DRIVER_NAME])


def parse_report(line):
    """Convert one line of hex into a report.

    Example:
        >>> parse_report("02 ff ff  # a comment")
        b'\\x02\\xff\\xff'
        >>> parse_report("# nothing but a comment")
    """
    text = line.split('#', 1)[0].strip()
    if not text:
        return None
    try:
        return bytes(int(token, 16) for token in text.split())
    except ValueError:
        raise wmrlog.ConfigError("Not a hex report: '%s'" % line.strip())


class ReplaySource(wmrlog.drivers.AbstractSource):
    """Returns the reports of a file, one at a time."""

    def __init__(self, filename='reports.txt', loop=False, root=None, **_unused):
        if root is not None:
            filename = os.path.join(root, filename)
        self.filename = filename
        self.loop = to_bool(loop)
        with open(filename, 'r', encoding='utf-8') as fd:
            self.reports = [report for report in (parse_report(line) for line in fd)
                            if report is not None]
        self.position = 0
        self.acks = 0
        log.info("Replaying %d reports from %s", len(self.reports), filename)

    @property
    def hardware_name(self):
        return 'Replay'

    def read(self):
        if self.position >= len(self.reports):
            if not self.loop or not self.reports:
                raise wmrlog.StopNow("End of replay file %s" % self.filename)
            log.debug("Rewinding %s", self.filename)
            self.position = 0
        report = self.reports[self.position]
        self.position += 1
        return report

    def send_ready(self):
        self.acks += 1
