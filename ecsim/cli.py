import argparse
import logging
import sys
import time

from . import export
from .config import load_config
from .errors import ConfigError, TrialFailed
from .simulator import run_trials
from .stats import analyze_sim, run_sweep, summarize_trial

logger = logging.getLogger(__name__)


def setup_logging(level="INFO"):
    """Sends log records of the package to stderr"""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    root = logging.getLogger("ecsim")
    root.handlers = [handler]
    root.setLevel(str(level).upper())


def build_parser():
    parser = argparse.ArgumentParser(prog="ec-sim",
                                     description="Expected Consensus simulation with rational miners")
    parser.add_argument('--config', type=str, default=None, help=".yaml file with simulation parameters")
    parser.add_argument('--lbp', dest="lookback_parameter", type=int, default=None, help="sim lookback")
    parser.add_argument('--rounds', dest="round_count", type=int, default=None, help="number of rounds to sim")
    parser.add_argument('--miners', dest="miner_count", type=int, default=None, help="number of miners to sim")
    parser.add_argument('--trials', dest="trial_count", type=int, default=None, help="number of trials to run")
    parser.add_argument('--output', dest="output_directory", type=str, default=None, help="output folder")
    parser.add_argument('--seed', type=int, default=None, help="root seed, OS entropy when omitted")
    parser.add_argument('--workers', type=int, default=None, help="size of the worker pool")
    parser.add_argument('--threads', dest="use_processes", action="store_const", const=False, default=None,
                        help="run trials in threads instead of processes")
    parser.add_argument('--json', dest="write_json", action="store_const", const=True, default=None,
                        help="write a json snapshot of every trial")
    parser.add_argument('--no-draw', dest="draw", action="store_const", const=False, default=None,
                        help="do not draw the chain of a single trial")
    parser.add_argument('--show_plots', action="store_const", const=True, default=None)
    parser.add_argument('--sweep', action="store_true", help="sweep the lookback parameter and miner counts")
    parser.add_argument('--log-level', dest="log_level", type=str, default=None)
    return parser


def export_trial(cfg, tracker, trial_number, draw, timestamp):
    """Writes the requested files for one trial. Failures are logged and do not affect other trials"""
    name = export.chain_name(cfg["round_count"], cfg["lookback_parameter"], cfg["miner_count"], trial_number, timestamp)
    try:
        if cfg["write_json"]:
            export.write_chain(tracker, name, cfg["output_directory"])
        if draw:
            export.write_dot(tracker, name, cfg["output_directory"])
            export.draw_chain(tracker, name, cfg["output_directory"], cfg["show_plots"])
    except OSError as err:
        logger.error("Could not export trial %d to %s: %s", trial_number, cfg["output_directory"], err)


def run(cfg):
    """Runs the trials described by a validated configuration

    Args:
        cfg (dict of str to any): Configuration from load_config

    Returns:
        List of ChainTracker

    """
    trials = cfg["trial_count"]
    trackers = run_trials(cfg["lookback_parameter"], cfg["round_count"], cfg["miner_count"], trials,
                          root_seed=cfg["seed"], max_workers=cfg["workers"], use_processes=cfg["use_processes"])
    timestamp = int(time.time())
    for trial_number, tracker in enumerate(trackers, start=1):
        export_trial(cfg, tracker, trial_number, cfg["draw"] and trials == 1, timestamp)

    if trials == 1:
        summary = summarize_trial(trackers[0])
        logger.info("Sim produced %d blocks (%d null), head %s with weight %d",
                    summary.published_blocks, summary.null_blocks, summary.head_name, summary.head_weight)
    else:
        logger.info("%d trials run", len(trackers))
        logger.info("%.2f average forks per round across %d chains with lbp %d",
                    analyze_sim(trackers), len(trackers), cfg["lookback_parameter"])
    return trackers


def sweep(cfg):
    results = run_sweep(cfg["sweep_lbps"], cfg["sweep_miner_counts"], cfg["round_count"], cfg["trial_count"],
                        root_seed=cfg["seed"], max_workers=cfg["workers"], use_processes=cfg["use_processes"])
    try:
        export.plot_sweep(results, cfg["output_directory"], cfg["show_plots"])
    except OSError as err:
        logger.error("Could not plot the sweep to %s: %s", cfg["output_directory"], err)
    return results


def main(argv=None):
    args = build_parser().parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if k not in ("config", "sweep")}
    try:
        cfg = load_config(args.config, overrides)
    except ConfigError as err:
        print("Invalid configuration: {}".format(err), file=sys.stderr)
        return 2
    setup_logging(cfg["log_level"])
    try:
        if args.sweep:
            sweep(cfg)
        else:
            run(cfg)
    except TrialFailed as err:
        logger.error("%s", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
