import logging
from dataclasses import dataclass, field

import numpy as np

from .chain import GENESIS_OWNER
from .simulator import run_trials

logger = logging.getLogger(__name__)


@dataclass
class TrialSummary:
    """Minimal per trial summary

    Attributes:
        seed (int): Seed that replays the trial
        max_height (int): Last simulated height
        published_blocks (int): Blocks broadcast by miners
        null_blocks (int): Null blocks chained onto private forks
        head_name (str): Name of the final head
        head_weight (int): Weight of the final head
        average_live_forks (float): Published blocks per round
        head_weights (list of int): Head weight after every round

    """
    seed: int
    max_height: int
    published_blocks: int
    null_blocks: int
    head_name: str
    head_weight: int
    average_live_forks: float
    head_weights: list = field(default_factory=list)


def average_live_forks_per_round(tracker):
    """Average number of published blocks per height, empty heights counted as 0

    Args:
        tracker (ChainTracker): A finished trial

    Returns:
        float

    """
    total = sum(len(blocks) for height, blocks in tracker.live_blocks_by_height.items() if height <= tracker.max_height)
    return total / (tracker.max_height + 1)


def analyze_sim(trackers):
    """Average live forks per round across several trials"""
    if len(trackers) == 0:
        return 0.0
    return float(np.mean([average_live_forks_per_round(ct) for ct in trackers]))


def summarize_trial(tracker):
    """Builds the TrialSummary of a finished trial"""
    blocks = list(tracker.all_blocks.values())
    return TrialSummary(
        seed=tracker.seed,
        max_height=tracker.max_height,
        published_blocks=sum(1 for blk in blocks if not blk.null and blk.owner != GENESIS_OWNER),
        null_blocks=sum(1 for blk in blocks if blk.null),
        head_name=tracker.head.name,
        head_weight=tracker.head.weight,
        average_live_forks=average_live_forks_per_round(tracker),
        head_weights=[weight for _, weight in tracker.head_history],
    )


def run_sweep(lbps, miner_counts, round_count, trial_count, root_seed=None, max_workers=None, use_processes=True):
    """Runs trial_count trials for every (miner count, lbp) pair and averages the live forks

    Args:
        lbps (list of int): Lookback parameters to try
        miner_counts (list of int): Miner populations to try
        round_count (int): Rounds per trial
        trial_count (int): Trials per pair
        root_seed (int): Root seed, each pair derives its own from it
        max_workers (int): Worker pool size
        use_processes (boolean): Run trials in worker processes

    Returns:
        dict of int to dict of int to float, {miner_count : {lbp : average forks per round}}

    """
    logger.info("Starting %d different sims run %d times each", len(lbps) * len(miner_counts), trial_count)
    results = {}
    pair_seeds = None
    if root_seed is not None:
        pair_seeds = iter(np.random.SeedSequence(root_seed).generate_state(len(lbps) * len(miner_counts), dtype=np.uint64))
    for miner_count in miner_counts:
        results[miner_count] = {}
        for lbp in lbps:
            seed = int(next(pair_seeds)) if pair_seeds is not None else None
            trackers = run_trials(lbp, round_count, miner_count, trial_count, root_seed=seed,
                                  max_workers=max_workers, use_processes=use_processes)
            results[miner_count][lbp] = analyze_sim(trackers)
            logger.info("%d miners, lbp %d: %.2f average forks per round across %d chains",
                        miner_count, lbp, results[miner_count][lbp], trial_count)
    return results
