"""
main.py
PURPOSE: Headless entry point - discover instruments, run one experiment, log samples to CSV
"""

import argparse
import logging
import os
import shutil
import sys
import threading

from scpi_daq_system.control import (
    ExperimentController, ExperimentStateError, InstrumentRegistry, PollRunner,
    UnknownInstrumentError,
)
from scpi_daq_system.data.sample_sink import CsvSampleLogger
from scpi_daq_system.hardware.errors import InstrumentError
from scpi_daq_system.utils.config import load_config
from scpi_daq_system.utils.log_setup import setup_logging

logger = logging.getLogger("scpi_daq_system")


def get_base_dir():
    """Get the base directory for config and logs (next to the EXE, else the working directory)."""
    if getattr(sys, "frozen", False):
        return os.path.dirname(sys.executable)
    return os.getcwd()


def get_bundle_dir():
    """Get the directory where bundled files are extracted (PyInstaller _MEIPASS)."""
    if getattr(sys, 'frozen', False):
        return sys._MEIPASS
    return os.path.dirname(os.path.abspath(__file__))


def setup_external_config(base_dir):
    """Copy the bundled config folder next to the application if it isn't there yet."""
    external_config = os.path.join(base_dir, "config")
    bundle_config = os.path.join(get_bundle_dir(), "config")

    if not os.path.exists(external_config) and os.path.exists(bundle_config):
        try:
            shutil.copytree(bundle_config, external_config)
        except OSError as e:
            print(f"Could not create {external_config}: {e}", file=sys.stderr)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="scpi-daq",
        description="Poll SCPI instruments over TCP and log every sample to CSV.")
    parser.add_argument("--config", help="Path to instrument_config.json")
    parser.add_argument("--experiment-id", type=int, default=1,
                        help="Experiment id the samples are recorded under (default 1)")
    parser.add_argument("--name", default="", help="Experiment name")
    parser.add_argument("--instruments",
                        help="Comma-separated instrument ids (default: all active)")
    parser.add_argument("--interval-ms", type=int,
                        help="Poll interval in milliseconds (overrides config)")
    parser.add_argument("--duration", type=float,
                        help="Seconds to run before stopping (default: until Ctrl+C)")
    parser.add_argument("--ping", type=int, metavar="ID",
                        help="Print the *IDN? reply of one instrument and exit")
    parser.add_argument("--log-folder", help="Folder for sample CSVs and the log file")
    return parser


def main(argv=None):
    """Run the acquisition controller. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    base_dir = get_base_dir()

    setup_external_config(base_dir)
    config_path = args.config or os.path.join(base_dir, "config", "instrument_config.json")

    log_folder = args.log_folder or os.path.join(base_dir, "logs")
    os.makedirs(log_folder, exist_ok=True)

    try:
        config = load_config(config_path)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    log_cfg = config["logging"]
    setup_logging(log_cfg["level"], log_folder if log_cfg["log_to_file"] else None)

    registry = InstrumentRegistry.from_config(config)

    if args.ping is not None:
        try:
            print(registry.ping(args.ping))
        except (UnknownInstrumentError, InstrumentError) as e:
            logger.error("Instrument unreachable: %s", e)
            return 1
        return 0

    registry.discover()

    sink = CsvSampleLogger(log_folder=log_folder, file_prefix=log_cfg["file_prefix"])
    runner = PollRunner(sink, exchange_timeout=config["scpi"]["timeout_s"])
    controller = ExperimentController(registry, runner, sink)

    if args.instruments:
        instrument_ids = args.instruments
    else:
        instrument_ids = [inst.id for inst in registry.list_instruments(active_only=True)]

    interval_ms = args.interval_ms or config["polling"]["interval_ms"]

    try:
        controller.start_experiment(args.experiment_id, instrument_ids, name=args.name,
                                    interval=interval_ms / 1000.0)
    except (ValueError, UnknownInstrumentError, ExperimentStateError, InstrumentError) as e:
        logger.error("Could not start experiment %s: %s", args.experiment_id, e)
        sink.close()
        return 1

    done = threading.Event()
    try:
        done.wait(args.duration)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        controller.stop_all()
        status = controller.status(args.experiment_id)
        logger.info("Experiment %s finished with %d samples",
                    args.experiment_id, status["measurement_count"])
        sink.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
