"""
sample_sink.py
PURPOSE: Append-only destinations for samples produced by the poll loops
KEY CONCEPT: save() is called from every running poll thread, so every sink
             serialises its own writes. A failing save raises; the caller
             decides whether that is fatal.
"""

import csv
import logging
import os
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List

from .models import Sample
from scpi_daq_system.utils.helpers import format_timestamp_filename

logger = logging.getLogger(__name__)


class SampleSink(ABC):
    """Interface the poll runner writes samples to."""

    @abstractmethod
    def save(self, sample: Sample) -> None:
        """Persist one sample. Raises on failure."""

    def count(self, experiment_id) -> int:
        """Number of samples stored for an experiment."""
        return 0

    def close(self) -> None:
        """Release any resources held by the sink."""


class MemorySampleSink(SampleSink):
    """Keeps samples in memory, grouped by experiment."""

    def __init__(self):
        self._samples: Dict[int, List[Sample]] = defaultdict(list)
        self._lock = threading.Lock()

    def save(self, sample: Sample) -> None:
        with self._lock:
            self._samples[sample.experiment_id].append(sample)

    def count(self, experiment_id) -> int:
        with self._lock:
            return len(self._samples.get(experiment_id, ()))

    def samples(self, experiment_id, instrument_id=None) -> List[Sample]:
        """Copy of the stored samples, optionally for one instrument only."""
        with self._lock:
            stored = list(self._samples.get(experiment_id, ()))
        if instrument_id is None:
            return stored
        return [s for s in stored if s.instrument_id == instrument_id]

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()


class CsvSampleLogger(SampleSink):
    """
    Writes samples to CSV, one file per experiment.

    Files are named '{prefix}_exp{experiment_id}_{YYYYmmdd_HHMMSS}.csv' and
    start with a header row of Sample.FIELDS. Each row is flushed as soon as
    it is written so a crash loses at most the row in progress.
    """

    def __init__(self, log_folder="logs", file_prefix="samples"):
        """
        Args:
            log_folder: Directory the CSV files are created in
            file_prefix: Leading part of every file name
        """
        self.log_folder = log_folder
        self.file_prefix = file_prefix
        self._files = {}
        self._writers = {}
        self._paths = {}
        self._counts = defaultdict(int)
        self._lock = threading.Lock()

    def _open(self, experiment_id):
        os.makedirs(self.log_folder, exist_ok=True)
        stem = f"{self.file_prefix}_exp{experiment_id}_{format_timestamp_filename()}"
        path = os.path.join(self.log_folder, stem + ".csv")
        suffix = 1
        while os.path.exists(path):
            path = os.path.join(self.log_folder, f"{stem}_{suffix}.csv")
            suffix += 1
        f = open(path, "w", newline="")
        writer = csv.writer(f)
        writer.writerow(Sample.FIELDS)
        f.flush()

        self._files[experiment_id] = f
        self._writers[experiment_id] = writer
        self._paths[experiment_id] = path
        logger.info("Logging experiment %s samples to %s", experiment_id, path)
        return writer

    def save(self, sample: Sample) -> None:
        with self._lock:
            writer = self._writers.get(sample.experiment_id)
            if writer is None:
                writer = self._open(sample.experiment_id)
            writer.writerow(sample.to_row())
            self._files[sample.experiment_id].flush()
            self._counts[sample.experiment_id] += 1

    def count(self, experiment_id) -> int:
        with self._lock:
            return self._counts.get(experiment_id, 0)

    def get_file_path(self, experiment_id):
        """Path of the CSV file for an experiment, or None if nothing was written."""
        with self._lock:
            return self._paths.get(experiment_id)

    def close_experiment(self, experiment_id) -> None:
        """Close the file of one experiment; a later sample opens a new file."""
        with self._lock:
            f = self._files.pop(experiment_id, None)
            self._writers.pop(experiment_id, None)
        if f is not None:
            f.close()

    def close(self) -> None:
        with self._lock:
            files = list(self._files.values())
            self._files.clear()
            self._writers.clear()
        for f in files:
            f.close()

    def get_log_files(self):
        """List CSV files in the log folder created by this logger, sorted by name."""
        if not os.path.isdir(self.log_folder):
            return []
        return sorted(
            os.path.join(self.log_folder, name)
            for name in os.listdir(self.log_folder)
            if name.startswith(self.file_prefix + "_") and name.endswith(".csv")
        )
