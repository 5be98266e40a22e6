"""
Poll Runner for experiment sampling.

Owns one background thread per running experiment. Each thread samples all
of the experiment's instruments once per tick with FETCH:ALL_S? and hands
every decoded reply to the sample sink.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from scpi_daq_system.data.models import Sample
from scpi_daq_system.hardware.errors import InstrumentError
from scpi_daq_system.hardware.scpi_instrument import fetch_all
from scpi_daq_system.hardware.scpi_transport import DEFAULT_TIMEOUT, InstrumentAddress

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.2


@dataclass
class PollJob:
    """Runtime state of one experiment's polling loop."""
    experiment_id: int
    instruments: Tuple[Tuple[int, InstrumentAddress], ...]
    interval: float
    cancel: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None
    ticks: int = 0


class PollRunner:
    """
    Starts, stops and reports per-experiment polling loops.

    The experiment_id -> PollJob registry is guarded by a single lock that
    is held only while the mapping is edited or read. Network exchanges and
    sink writes always happen outside it, in the job's own thread.

    Ticks within a job are serialised: the next tick fires on the fixed
    schedule start + k * interval, and ticks missed while an instrument pass
    overran are dropped rather than run late or concurrently.
    """

    def __init__(self, sink, exchange_timeout: float = DEFAULT_TIMEOUT,
                 fetch: Callable = fetch_all):
        """
        Initialize the runner.

        Args:
            sink: SampleSink that receives every decoded sample
            exchange_timeout: Per-instrument FETCH:ALL_S? deadline in seconds
            fetch: Callable(address, timeout) -> SampleReply used for each exchange
        """
        self.sink = sink
        self.exchange_timeout = exchange_timeout
        self._fetch = fetch
        self._jobs: Dict[int, PollJob] = {}
        self._lock = threading.Lock()

    def is_running(self, experiment_id) -> bool:
        """Check whether a polling loop is registered for the experiment."""
        with self._lock:
            return experiment_id in self._jobs

    def active_experiments(self) -> List[int]:
        """Ids of all experiments currently polling."""
        with self._lock:
            return list(self._jobs)

    def start(self, experiment_id, instruments: Sequence[Tuple[int, InstrumentAddress]],
              interval: float = DEFAULT_POLL_INTERVAL) -> bool:
        """
        Begin polling instruments for an experiment.

        Args:
            experiment_id: Experiment the samples are attributed to
            instruments: Ordered (instrument_id, InstrumentAddress) pairs
            interval: Seconds between ticks (default 0.2 s, i.e. 5 Hz)

        Returns:
            True if a loop was launched, False if one was already running
            for this experiment (the call is then a no-op)

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive: {interval}")

        job = PollJob(experiment_id=experiment_id,
                      instruments=tuple(instruments),
                      interval=interval)
        job.thread = threading.Thread(target=self._run_loop, args=(job,), daemon=True,
                                      name=f"poll-exp{experiment_id}")

        with self._lock:
            if experiment_id in self._jobs:
                return False
            self._jobs[experiment_id] = job
            # Started under the lock so stop() never joins an unstarted thread
            try:
                job.thread.start()
            except RuntimeError:
                del self._jobs[experiment_id]
                raise

        logger.info("Polling started: experiment=%s instruments=%d interval=%.3fs",
                    experiment_id, len(job.instruments), interval)
        return True

    def stop(self, experiment_id, timeout: Optional[float] = None) -> bool:
        """
        Stop polling for an experiment.

        The loop exits at its next cancellation check; an exchange already
        in flight finishes but its sample is discarded.

        Args:
            experiment_id: Experiment to stop
            timeout: If given, also wait up to this many seconds for the
                     loop thread to exit

        Returns:
            True if a job was stopped, False if none was registered
        """
        with self._lock:
            job = self._jobs.pop(experiment_id, None)
            if job is not None:
                job.cancel.set()

        if job is None:
            return False

        logger.info("Polling stopped: experiment=%s after %d ticks", experiment_id, job.ticks)
        if timeout is not None and job.thread is not threading.current_thread():
            job.thread.join(timeout=timeout)
        return True

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Stop every running job, waiting up to timeout seconds for each."""
        for experiment_id in self.active_experiments():
            self.stop(experiment_id, timeout=timeout)

    def _run_loop(self, job: PollJob) -> None:
        """Tick loop running in the job's background thread."""
        next_tick = time.monotonic() + job.interval

        while not job.cancel.wait(max(0.0, next_tick - time.monotonic())):
            self._poll_once(job)
            job.ticks += 1

            next_tick += job.interval
            now = time.monotonic()
            if next_tick <= now:
                missed = int((now - next_tick) // job.interval) + 1
                next_tick += missed * job.interval
                logger.debug("experiment=%s pass overran, skipped %d tick(s)",
                             job.experiment_id, missed)

    def _poll_once(self, job: PollJob) -> None:
        """Sample each instrument once. Failures are logged and skipped."""
        for instrument_id, address in job.instruments:
            if job.cancel.is_set():
                return

            try:
                reply = self._fetch(address, self.exchange_timeout)
            except InstrumentError as e:
                logger.warning("experiment=%s instrument=%s fetch error: %s",
                               job.experiment_id, instrument_id, e)
                continue
            except Exception:
                logger.exception("experiment=%s instrument=%s unexpected fetch failure",
                                 job.experiment_id, instrument_id)
                continue

            if job.cancel.is_set():
                return

            sample = Sample.from_reply(job.experiment_id, instrument_id, reply,
                                       recorded_at=datetime.now())
            try:
                self.sink.save(sample)
            except Exception as e:
                logger.error("experiment=%s instrument=%s save error: %s",
                             job.experiment_id, instrument_id, e)

    def __repr__(self) -> str:
        return f"PollRunner(active={self.active_experiments()})"
