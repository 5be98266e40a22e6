"""
Shared pytest configuration for SCPI DAQ System unit tests.

No hardware is needed: tests talk to FakeInstrument (tests/fake_instrument.py),
a threaded TCP server on 127.0.0.1 that answers SCPI commands from a script.
The tests directory is put on sys.path so test modules can import it.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
