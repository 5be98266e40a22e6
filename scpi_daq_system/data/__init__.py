"""Data records and sample persistence."""
from .models import Experiment, ExperimentStatus, Instrument, Sample
from .sample_sink import CsvSampleLogger, MemorySampleSink, SampleSink
