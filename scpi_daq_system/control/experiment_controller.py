"""
Experiment start/stop orchestration.

Starting an experiment puts every instrument into measuring mode with
FUNC:RUN before polling begins; stopping ends polling first and then sends
FUNC:STOP. Experiment records are kept in memory for the life of the process.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, Optional, Set

from scpi_daq_system.data.models import Experiment, ExperimentStatus
from scpi_daq_system.hardware import scpi_instrument
from scpi_daq_system.hardware.errors import InstrumentError
from .poll_runner import DEFAULT_POLL_INTERVAL

logger = logging.getLogger(__name__)


class ExperimentStateError(RuntimeError):
    """Raised when an experiment is started twice or stopped while not running."""


class ExperimentController:
    """
    Ties the instrument registry, the poll runner and the sample sink together.

    Args:
        registry: InstrumentRegistry used to resolve instrument ids
        runner: PollRunner that owns the polling threads
        sink: SampleSink the runner writes to (used for sample counts)
    """

    def __init__(self, registry, runner, sink=None):
        self.registry = registry
        self.runner = runner
        self.sink = sink if sink is not None else runner.sink
        self._experiments: Dict[int, Experiment] = {}
        self._starting: Set[int] = set()
        self._lock = threading.Lock()

    def get_experiment(self, experiment_id) -> Optional[Experiment]:
        with self._lock:
            return self._experiments.get(experiment_id)

    def start_experiment(self, experiment_id, instrument_ids, name="", notes="",
                         interval: float = DEFAULT_POLL_INTERVAL) -> Experiment:
        """
        Send FUNC:RUN to each instrument, then start polling.

        Args:
            experiment_id: Id of the experiment record
            instrument_ids: List of ids or a comma-separated string ('1,2')
            name: Human-readable experiment name
            notes: Free-form notes
            interval: Seconds between poll ticks

        Returns:
            The running Experiment

        Raises:
            ValueError: If instrument_ids is malformed or empty, or interval
                        is not positive
            UnknownInstrumentError: If an id is not registered
            ExperimentStateError: If the experiment is already starting or polling
            ConnectivityError: If an instrument rejects FUNC:RUN; no job is started
        """
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive: {interval}")
        instruments = self.registry.resolve(instrument_ids)
        if not instruments:
            raise ValueError("no instruments given")

        with self._lock:
            if experiment_id in self._starting or self.runner.is_running(experiment_id):
                raise ExperimentStateError(f"experiment {experiment_id} is already running")
            self._starting.add(experiment_id)

        try:
            timeout = self.registry.timeout
            for inst in instruments:
                try:
                    scpi_instrument.run(inst.address, timeout)
                except InstrumentError as e:
                    logger.error("Failed to start instrument %s (%s): %s", inst.id, inst.name, e)
                    raise

            experiment = Experiment(
                id=experiment_id,
                name=name,
                status=ExperimentStatus.RUNNING,
                instrument_ids=[inst.id for inst in instruments],
                notes=notes,
                start_time=datetime.now(),
            )
            if not self.runner.start(experiment_id, self.registry.poll_targets(instruments),
                                     interval):
                raise ExperimentStateError(f"experiment {experiment_id} is already running")

            with self._lock:
                self._experiments[experiment_id] = experiment
        finally:
            with self._lock:
                self._starting.discard(experiment_id)
        return experiment

    def stop_experiment(self, experiment_id, timeout: Optional[float] = None) -> Experiment:
        """
        Stop polling, then send FUNC:STOP to each instrument.

        Instrument stop failures are logged and ignored: the experiment is
        considered complete once polling has ended.

        Args:
            experiment_id: Experiment to stop
            timeout: Optional wait for the poll thread to exit (seconds)

        Raises:
            ExperimentStateError: If the experiment is unknown or not running
        """
        experiment = self.get_experiment(experiment_id)
        if experiment is None or experiment.status != ExperimentStatus.RUNNING:
            raise ExperimentStateError(f"experiment {experiment_id} is not running")

        self.runner.stop(experiment_id, timeout=timeout)

        for instrument_id in experiment.instrument_ids:
            try:
                inst = self.registry.get(instrument_id)
                scpi_instrument.stop(inst.address, self.registry.timeout)
            except (LookupError, InstrumentError) as e:
                logger.warning("experiment=%s instrument=%s stop failed: %s",
                               experiment_id, instrument_id, e)

        with self._lock:
            experiment.status = ExperimentStatus.COMPLETED
            experiment.end_time = datetime.now()
        return experiment

    def status(self, experiment_id) -> dict:
        """
        Report whether an experiment is polling and how many samples it has.

        Raises:
            ExperimentStateError: If the experiment is unknown
        """
        experiment = self.get_experiment(experiment_id)
        if experiment is None:
            raise ExperimentStateError(f"experiment {experiment_id} not found")
        return {
            "experiment": experiment.to_dict(),
            "polling_active": self.runner.is_running(experiment_id),
            "measurement_count": self.sink.count(experiment_id),
        }

    def stop_all(self, timeout: Optional[float] = 5.0) -> None:
        """Stop every running experiment (used on shutdown)."""
        with self._lock:
            running = [e.id for e in self._experiments.values()
                       if e.status == ExperimentStatus.RUNNING]
        for experiment_id in running:
            self.stop_experiment(experiment_id, timeout=timeout)
