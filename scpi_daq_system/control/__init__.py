"""
Control module for the SCPI DAQ System.

This module provides:
- Poll runner: one background sampling thread per running experiment
- Instrument registry: instrument records, ping and startup discovery
- Experiment controller: FUNC:RUN / FUNC:STOP around the poll loop
"""

from .poll_runner import PollJob, PollRunner
from .instrument_registry import InstrumentRegistry, UnknownInstrumentError
from .experiment_controller import ExperimentController, ExperimentStateError

__all__ = [
    'PollJob',
    'PollRunner',
    'InstrumentRegistry',
    'UnknownInstrumentError',
    'ExperimentController',
    'ExperimentStateError',
]
