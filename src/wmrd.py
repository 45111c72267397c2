#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your rights.
#
"""Entry point to the wmrlog logging system."""

import argparse
import logging
import os
import platform
import signal
import sys
import time

import configobj

import wmrdb
import wmrlog
import wmrlog.defaults
import wmrlog.engine
import wmrutil.config
import wmrutil.logger
from wmrutil.wmrutil import bcolors, to_bool, to_float, to_int

description = """The main entry point for wmrlog. This program will read records from
your WMR100 console, decode them, pass them on to the configured sinks, then
archive the latest readings."""

usagestr = """%(prog)s --help
       %(prog)s --version
       %(prog)s [FILENAME|--config=FILENAME]
                 [--exit]
                 [--loop-on-init]
                 [--log-label=LABEL]
"""

epilog = "Specify either the positional argument FILENAME, " \
         "or the optional argument using --config, but not both."


# ===============================================================================
#                       Main entry point
# ===============================================================================

def main():
    parser = argparse.ArgumentParser(description=description, usage=usagestr, epilog=epilog)
    parser.add_argument("--config", dest="config_option", metavar="FILENAME",
                        help="Use configuration file FILENAME")
    parser.add_argument("-v", "--version", action="store_true", dest="version",
                        help="Display version number then exit")
    parser.add_argument("-x", "--exit", action="store_true", dest="exit",
                        help="Exit on I/O and database errors instead of restarting")
    parser.add_argument("-r", "--loop-on-init", action="store_true", dest="loop_on_init",
                        help="Retry forever if device is not ready on startup")
    parser.add_argument("-n", "--log-label", dest="log_label", metavar="LABEL", default="wmrd",
                        help="Label to use in syslog entries")
    parser.add_argument("config_arg", nargs='?', metavar="FILENAME")

    # Get the command line options and arguments:
    namespace = parser.parse_args()

    if namespace.version:
        print(wmrlog.__version__)
        sys.exit(0)

    # User can specify the config file as either a positional argument, or as
    # an option argument, but not both.
    if namespace.config_option and namespace.config_arg:
        print(epilog, file=sys.stderr)
        sys.exit(wmrlog.CMD_ERROR)

    config_path, config_dict, log = start_app(namespace.log_label,
                                              __name__,
                                              namespace.config_option,
                                              namespace.config_arg)
    # If no command line --loop-on-init was specified, look in the config file.
    if not namespace.loop_on_init:
        loop_on_init = to_bool(config_dict.get('loop_on_init', False))
    else:
        loop_on_init = True
    log.debug("loop_on_init: %s", loop_on_init)

    wait_time = to_float(config_dict.get('retry_wait', 60.0))

    # Set up a handler for a termination signal
    signal.signal(signal.SIGTERM, sigTERMhandler)

    # Main restart loop
    while True:

        try:
            log.debug("Initializing engine")

            # Create and initialize the engine
            engine = wmrlog.engine.DecodeEngine(config_dict)

            log.info("Starting up wmrlog version %s", wmrlog.__version__)

            # Start the engine. It should run forever unless an exception
            # occurs. Log it if the function returns.
            engine.run()
            log.critical("Unexpected exit from main loop. Program exiting.")

        # Catch any console initialization error:
        except wmrlog.engine.InitializationError as e:
            # Log it:
            log.critical("Unable to load driver: %s", e)
            # See if we should loop, waiting for the console to be ready.
            # Otherwise, just exit.
            if loop_on_init:
                log.critical(f"    ****  Waiting {wait_time:.1f} seconds then retrying...")
                time.sleep(wait_time)
                log.info("retrying...")
            else:
                log.critical("    ****  Exiting...")
                sys.exit(wmrlog.IO_ERROR)

        except wmrlog.ConfigError as e:
            log.critical("Configuration error: %s", e)
            log.critical("    ****  Exiting...")
            sys.exit(wmrlog.CONFIG_ERROR)

        # Catch any recoverable wmrlog I/O errors:
        except wmrlog.WmrIOError as e:
            # Caught an I/O error. Log it, wait, then try again
            log.critical("Caught WmrIOError: %s", e)
            if namespace.exit:
                log.critical("    ****  Exiting...")
                sys.exit(wmrlog.IO_ERROR)
            log.critical(f"    ****  Waiting {wait_time:.1f} seconds then retrying...")
            time.sleep(wait_time)
            log.info("retrying...")

        # Catch any database connection errors:
        except wmrdb.CannotConnectError as e:
            # No connection to the database. Log it, wait 60 seconds, then try again
            log.critical("Database connection exception: %s", e)
            if namespace.exit:
                log.critical("    ****  Exiting...")
                sys.exit(wmrlog.DB_ERROR)
            log.critical("    ****  Waiting 60 seconds then retrying...")
            time.sleep(60)
            log.info("retrying...")

        except wmrlog.StopNow as e:
            # The source has run dry
            log.info("Stopping: %s", e)
            break

        except Terminate:
            log.info("Terminating wmrlog version %s", wmrlog.__version__)
            wmrutil.logger.log_traceback(log.debug, "    ****  ")
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
            os.kill(0, signal.SIGTERM)

        # Catch any keyboard interrupts and log them
        except KeyboardInterrupt:
            log.critical("Keyboard interrupt.")
            # Reraise the exception (this should cause the program to exit)
            raise

        # Catch any non-recoverable errors. Log them, exit
        except Exception as ex:
            # Caught unrecoverable error. Log it, exit
            log.critical("Caught unrecoverable exception:")
            log.critical("    ****  %s" % ex)
            # Include a stack traceback in the log:
            wmrutil.logger.log_traceback(log.critical, "    ****  ")
            log.critical("    ****  Exiting.")
            # Reraise the exception (this should cause the program to exit)
            raise


def start_app(log_label, log_name, config_option, config_arg):
    """Read the config file and log various bits of information"""

    try:
        config_path, config_dict = wmrutil.config.read_config(config_option, [config_arg],
                                                              defaults=wmrlog.defaults.defaults)
    except (IOError, configobj.ConfigObjError) as e:
        print(f"Error parsing config file: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc(file=sys.stderr)
        sys.exit(wmrlog.CONFIG_ERROR)

    print(f"Using configuration file {bcolors.BOLD}{config_path}{bcolors.ENDC}")

    wmrlog.debug = to_int(config_dict.get('debug', 0))

    # Customize the logging with user settings.
    try:
        wmrutil.logger.setup(log_label, config_dict)
    except Exception as e:
        print(f"Unable to set up logger: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc(file=sys.stderr)
        sys.exit(wmrlog.CONFIG_ERROR)

    # Get a logger. This one will be customized with user settings
    logger = logging.getLogger(log_name)
    # Announce the startup
    logger.info("Initializing %s version %s", log_label, wmrlog.__version__)
    logger.info("Command line: %s", ' '.join(sys.argv))

    # Log key bits of information.
    logger.info("Using Python: %s", sys.version)
    logger.info("Platform:     %s", platform.platform())
    logger.info("WMRLOG_ROOT:  %s", os.path.expanduser(config_dict['WMRLOG_ROOT']))
    logger.info("Config file:  %s", config_path)
    logger.info("Debug:        %s", wmrlog.debug)

    return config_path, config_dict, logger


# ==============================================================================
#                       Signal handlers
# ==============================================================================

class Terminate(Exception):
    """Exception raised when terminating the engine."""


def sigTERMhandler(signum, _frame):
    log = logging.getLogger(__name__)
    log.info("Received signal TERM (%s).", signum)
    raise Terminate


if __name__ == "__main__":
    # Start up the program
    main()
