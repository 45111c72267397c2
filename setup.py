#!/usr/bin/env python
#
#    wmrlog --- A logger for the Oregon Scientific WMR100 weather station
#
#    Copyright (c) 2009-2024 Tom Keffer <tkeffer@gmail.com>
#
#    See the file LICENSE.txt for your full rights.
#
"""Setup file for wmrlog."""

import sys

from setuptools import setup

VERSION = "1.0.0"

if sys.version_info < (3, 7):
    sys.exit("wmrlog requires Python V3.7 or greater.")


# ==============================================================================
# main entry point
# ==============================================================================

if __name__ == "__main__":
    setup(name='wmrlog',
          version=VERSION,
          description='Logger for the Oregon Scientific WMR100 weather station',
          long_description="wmrlog reads the record stream of an Oregon Scientific WMR100 "
                           "console over USB, decodes it, and passes the readings on to the "
                           "console, a log file, an MQTT broker, and a SQLite archive.",
          author='Tom Keffer',
          author_email='tkeffer@gmail.com',
          license='GPLv3',
          python_requires='>=3.7',
          py_modules=['wmrd'],
          package_dir={'': 'src'},
          packages=['wmrdb',
                    'wmrlog',
                    'wmrlog.drivers',
                    'wmrutil'],
          install_requires=['configobj',
                            'pyusb',
                            'paho-mqtt>=2.0'],
          extras_require={
              'test': ['pytest'],
          },
          entry_points={
              'console_scripts': ['wmrd=wmrd:main'],
          },
          data_files=[('', ['wmrlog.conf'])],
          )
