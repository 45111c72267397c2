# coding: utf-8
#
#    Copyright (c) 2019-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your rights.
#

"""Backstop defaults used in the absence of any other values."""

import wmrutil.config

DEFAULT_STR = """# Backstop configuration for wmrlog

# Set to 1 for extra debug info, otherwise comment it out or set to zero
debug = 0

# Root directory of the wmrlog data file hierarchy for this station
WMRLOG_ROOT = ~/wmrlog-data

# Identifier used as the 'source' of every published envelope
station_id = wmr100

# How long to wait before restarting after an I/O error, in seconds
retry_wait = 60

# Whether to log a successful database write
log_success = True

# Whether to log an unsuccessful sink write
log_failure = True

[Station]

    # The report source to use
    driver = wmrlog.drivers.wmr100

    # Number of sensor channels tracked per record type
    max_sensors = 16

[WMR100]

    # USB identifiers of the console
    vendor_id = 0x0fde
    product_id = 0xca01
    interface = 0

    # How long to wait for a USB report, in seconds. Zero waits forever.
    timeout = 0

    # How many times to try opening the console, and how long to wait between tries
    max_tries = 5
    wait_before_retry = 5.0

[Replay]

    # A text file with one hex report per line
    filename = reports.txt

    # Start over at the top of the file when it is exhausted
    loop = False

[Sinks]

    [[console]]
        enable = True
        sink = wmrlog.sinks.ConsoleSink
        # Either 'json' or 'text'
        line_format = text

    [[file]]
        enable = True
        sink = wmrlog.sinks.FileSink
        # Relative to WMRLOG_ROOT
        filename = data.log
        line_format = text

    [[mqtt]]
        enable = False
        sink = wmrlog.sinks.MQTTSink
        host = localhost
        port = 1883
        topic_prefix = wmr
        qos = 0
        keepalive = 60
        # After a failed connect, wait this long before trying again, in seconds
        retry_wait = 30

[Archive]

    enable = True

    # How often to save the aggregate state, in seconds
    archive_interval = 60

    # The database to use, from section [Databases]
    database = archive_sqlite

[Databases]

    [[archive_sqlite]]
        database_name = wmrlog.sdb
        driver = wmrdb.sqlite
        # Relative to WMRLOG_ROOT
        SQLITE_ROOT = archive
"""

defaults = wmrutil.config.config_from_str(DEFAULT_STR)
