import functools
import itertools
import logging
import queue
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor

import numpy as np

from .chain import Block, GENESIS_OWNER, Tipset, all_tipsets, forks_from_tipset
from .config import check_run_params
from .errors import InvariantViolation, TrialFailed
from .miner import RationalMiner
from .tickets import TICKET_SPACE, TicketGenerator
from .tracker import ChainTracker

logger = logging.getLogger(__name__)


class Simulator:
    """Runs one trial: a population of rational miners mining round by round on top of a
    genesis chain. Each Simulator owns all of its state, nothing is shared between trials

    Args:
        lbp (int): Lookback parameter, number of tipsets walked back to sample election randomness
        round_count (int): Number of rounds to simulate
        miner_count (int): Number of miners, each gets 1 / miner_count of the power
        seed (int): Seed of the trial. A fresh one is drawn from the OS when None

    Attributes:
        lbp (int): Lookback parameter
        round_count (int): Number of rounds
        seed (int): Seed of the trial, enough to replay it
        rng (numpy.random.Generator): Source of the genesis tickets
        tickets (TicketGenerator): Ticket source shared by the miners of this trial
        id_alloc (iterator of int): Allocates block nonces, starting at 0 for every trial
        miners (list of RationalMiner): Miners of the trial
        tracker (ChainTracker): State of the chain
        genesis (Block): Innermost genesis block, the one the first round mines on

    """

    def __init__(self, lbp, round_count, miner_count, seed=None):
        check_run_params(lbp, round_count, miner_count)
        if seed is None:
            seed = int(np.random.SeedSequence().generate_state(1, dtype=np.uint64)[0])
        self.lbp = lbp
        self.round_count = round_count
        self.seed = seed
        genesis_seq, ticket_seq = np.random.SeedSequence(seed).spawn(2)
        self.rng = np.random.default_rng(genesis_seq)
        self.tickets = TicketGenerator.from_seed_sequence(ticket_seq)
        self.id_alloc = itertools.count()
        self.miners = [RationalMiner(m, 1.0 / miner_count, self.tickets) for m in range(miner_count)]
        self.tracker = ChainTracker(self.miners, seed)
        self.genesis = None

    def make_genesis(self):
        """Makes the genesis block. With lbp > 1 it also makes lbp - 1 genesis ancestors so the
        lookback of the first lbp - 1 rounds has something to sample

        Args:
            None

        Returns:
            The innermost genesis Block

        """
        gen = None
        for _ in range(self.lbp):
            blk = Block(next(self.id_alloc), gen, GENESIS_OWNER, 0, False, 0,
                        int(self.rng.integers(TICKET_SPACE * len(self.miners))), in_head=True)
            self.tracker.record_blocks([blk])
            gen = Tipset([blk])
        self.genesis = gen.blocks[0]
        self.tracker.init_head(gen)
        return self.genesis

    def run_round(self, round_idx, blocks):
        """Runs one round: records the published blocks, offers their forks to every miner and
        moves the head to the heaviest tipset among the new blocks

        Args:
            round_idx (int): Index of the round
            blocks (list of Block): Blocks published in the previous round, all at one height

        Returns:
            List of Block published this round

        """
        if len(blocks) > 0:
            height = blocks[0].height
            wrong = [(blk.nonce, blk.height) for blk in blocks if blk.height != height]
            if wrong:
                raise InvariantViolation(
                    "Round {}: all block heights from a round are not equal, expected {} got (nonce, height) {}".format(
                        round_idx, height, wrong))
            self.tracker.record_live(height, blocks)

        logger.debug("Round %d -- %d new blocks: %s", round_idx, len(blocks),
                     " ".join("b{} (m{})".format(blk.nonce, blk.owner) for blk in blocks))

        forks_by_tipset = [forks_from_tipset(ts) for ts in all_tipsets(blocks)]
        new_blocks = []
        for miner in self.miners:
            blk = miner.mine(self.tracker, forks_by_tipset, self.lbp, self.id_alloc)
            if blk is not None:
                new_blocks.append(blk)

        self.tracker.set_head(new_blocks)
        return new_blocks

    def run(self):
        """Runs the whole trial

        Args:
            None

        Returns:
            ChainTracker of the finished trial

        """
        blocks = [self.make_genesis()]
        for round_idx in range(self.round_count):
            blocks = self.run_round(round_idx, blocks)
        # the last round's blocks are never mined on but the head may point at them
        self.tracker.record_live(self.round_count, blocks)
        # height is 0 indexed
        self.tracker.max_height = self.round_count - 1
        return self.tracker


def run_trial(lbp, round_count, miner_count, seed=None):
    """Runs a single isolated trial. Module level so worker processes can import it"""
    return Simulator(lbp, round_count, miner_count, seed).run()


def trial_seeds(trial_count, root_seed=None):
    """Draws one seed per trial from a root seed, or from OS entropy when root_seed is None

    Args:
        trial_count (int): Number of trials
        root_seed (int): Root seed of the batch

    Returns:
        List of int

    """
    root = np.random.SeedSequence(root_seed)
    return [int(s) for s in root.generate_state(trial_count, dtype=np.uint64)]


def _collect(results, trial_idx, future):
    err = future.exception()
    if err is not None:
        results.put((trial_idx, None, err))
    else:
        results.put((trial_idx, future.result(), None))


def run_trials(lbp, round_count, miner_count, trial_count, root_seed=None, max_workers=None, use_processes=True):
    """Runs trial_count independent trials in parallel and waits for all of them.
    A failing trial does not stop the others, its error is raised once every trial is done

    Args:
        lbp (int): Lookback parameter
        round_count (int): Rounds per trial
        miner_count (int): Miners per trial
        trial_count (int): Number of trials
        root_seed (int): Seed the trial seeds are drawn from, OS entropy when None
        max_workers (int): Size of the worker pool, executor default when None
        use_processes (boolean): Run trials in worker processes rather than threads

    Returns:
        List of ChainTracker ordered by trial index

    """
    check_run_params(lbp, round_count, miner_count, trial_count)
    seeds = trial_seeds(trial_count, root_seed)
    results = queue.Queue(maxsize=trial_count)
    executor_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor

    trackers = [None] * trial_count
    failures = []
    with executor_cls(max_workers=max_workers) as executor:
        for trial_idx, seed in enumerate(seeds):
            logger.info("Trial %d dispatched (seed %d)", trial_idx, seed)
            future = executor.submit(run_trial, lbp, round_count, miner_count, seed)
            future.add_done_callback(functools.partial(_collect, results, trial_idx))
        for _ in range(trial_count):
            trial_idx, tracker, err = results.get()
            if err is not None:
                logger.error("Trial %d failed: %s", trial_idx, err)
                failures.append((trial_idx, err))
            else:
                logger.info("Trial %d finished with %d blocks", trial_idx, len(tracker.all_blocks))
                trackers[trial_idx] = tracker

    if failures:
        failures.sort(key=lambda f: f[0])
        trial_idx, err = failures[0]
        raise TrialFailed(trial_idx, err, len(failures)) from err
    return trackers
