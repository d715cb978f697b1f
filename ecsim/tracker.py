import logging

from .chain import Block, Tipset, all_tipsets
from .errors import InvariantViolation
from .miner import RationalMiner

logger = logging.getLogger(__name__)


class ChainTracker:
    """Keeps the state of one trial: every block produced, the blocks published at each height
    and the heaviest tipset seen by the network

    Args:
        miners (list of RationalMiner): Miners of the trial

    Attributes:
        all_blocks (dict of int to Block): Every block of the trial, null blocks included, by nonce
        live_blocks_by_height (dict of int to list of Block): Blocks published at each height
        head (Tipset): Current heaviest tipset
        head_history (list of tuple): (name, weight) of the head after every round
        max_height (int): Last simulated height, -1 until the trial is over
        miners (list of RationalMiner): Miners of the trial
        seed (int): Entropy of the trial seed, None if unknown

    """

    def __init__(self, miners=None, seed=None):
        self.all_blocks = {}
        self.live_blocks_by_height = {}
        self.head = None
        self.head_history = []
        self.max_height = -1
        self.miners = miners if miners is not None else []
        self.seed = seed

    def record_blocks(self, blocks):
        """Adds blocks to the table of every block of the trial, keyed by nonce

        Args:
            blocks (list of Block): Blocks to record

        Returns:
            None

        """
        for blk in blocks:
            self.all_blocks[blk.nonce] = blk

    def record_live(self, height, blocks):
        """Indexes the blocks published at a height. Empty rounds leave no entry

        Args:
            height (int): Height shared by all the blocks
            blocks (list of Block): Published blocks

        Returns:
            None

        """
        if len(blocks) == 0:
            return
        self.record_blocks(blocks)
        self.live_blocks_by_height[height] = list(blocks)

    def init_head(self, tipset):
        """Starts the head at the genesis tipset

        Args:
            tipset (Tipset): Innermost genesis tipset

        Returns:
            None

        """
        self.head = tipset
        self.mark_head(tipset)
        self.head_history.append((tipset.name, tipset.weight))

    def mark_head(self, tipset):
        """Flags a tipset and its blocks as having been the head

        Args:
            tipset (Tipset): New head

        Returns:
            None

        """
        tipset.was_head = True
        for blk in tipset.blocks:
            blk.in_head = True

    def set_head(self, blocks):
        """Updates the heaviest tipset seen by the network with the blocks published in a round.
        Heavier tipsets win, equal weights go to the smaller min ticket

        Args:
            blocks (list of Block): Blocks published in the round

        Returns:
            True if the head changed

        """
        if self.head is None:
            raise InvariantViolation("Head set before genesis")
        candidate = self.head
        for ts in all_tipsets(blocks):
            if ts.weight > candidate.weight:
                candidate = ts
            elif ts.weight == candidate.weight and ts.min_ticket < candidate.min_ticket:
                candidate = ts

        changed = candidate is not self.head
        if changed:
            logger.debug("setting head to %s (weight %d)", candidate.name, candidate.weight)
            self.head = candidate
            self.mark_head(candidate)
        self.head_history.append((self.head.name, self.head.weight))
        return changed

    def live_blocks(self):
        """All published blocks, by increasing height

        Args:
            None

        Returns:
            List of Block, the final round included

        """
        return [blk for height in sorted(self.live_blocks_by_height) for blk in self.live_blocks_by_height[height]]

    def to_records(self):
        """Flattens the block table into records that refer to parent tipsets by their key

        Args:
            None

        Returns:
            List of dict, one per block, sorted by nonce

        """
        records = []
        for nonce in sorted(self.all_blocks):
            blk = self.all_blocks[nonce]
            rec = blk.to_dict()
            rec["parents"] = list(blk.parents.key) if blk.parents is not None else None
            records.append(rec)
        return records

    @classmethod
    def from_records(cls, records):
        """Rebuilds the block table from to_records output. Parent tipsets are relinked by key,
        which works because a parent is always created before its children

        Args:
            records (list of dict): Block records

        Returns:
            ChainTracker holding the rebuilt blocks in all_blocks

        """
        tracker = cls()
        tipsets = {}
        for rec in sorted(records, key=lambda r: r["nonce"]):
            parents = None
            if rec["parents"] is not None:
                key = tuple(rec["parents"])
                if key not in tipsets:
                    try:
                        tipsets[key] = Tipset([tracker.all_blocks[n] for n in key])
                    except KeyError as err:
                        raise InvariantViolation("Block b{} references unknown parent b{}".format(rec["nonce"], err.args[0]))
                parents = tipsets[key]
            blk = Block(rec["nonce"], parents, rec["owner"], rec["height"], rec["null"],
                        rec["parentWeight"], rec["seed"], rec["inHead"])
            tracker.all_blocks[blk.nonce] = blk
        return tracker

    def __getstate__(self):
        # Blocks link to each other through their parents, pickling them directly recurses
        # once per height
        return {
            "records": self.to_records(),
            "live": {height: [blk.nonce for blk in blocks] for height, blocks in self.live_blocks_by_height.items()},
            "head": list(self.head.key) if self.head is not None else None,
            "head_history": self.head_history,
            "max_height": self.max_height,
            "miners": [dict(m.to_dict(), total_blocks=m.total_blocks, total_null_blocks=m.total_null_blocks)
                       for m in self.miners],
            "seed": self.seed,
        }

    def __setstate__(self, state):
        rebuilt = ChainTracker.from_records(state["records"])
        self.all_blocks = rebuilt.all_blocks
        self.live_blocks_by_height = {height: [self.all_blocks[n] for n in nonces]
                                      for height, nonces in state["live"].items()}
        self.head = None
        if state["head"] is not None:
            self.head = Tipset([self.all_blocks[n] for n in state["head"]])
            self.head.was_head = True
        self.head_history = [tuple(entry) for entry in state["head_history"]]
        self.max_height = state["max_height"]
        self.miners = []
        for rec in state["miners"]:
            miner = RationalMiner(rec["id"], rec["power"], None)
            miner.total_blocks = rec["total_blocks"]
            miner.total_null_blocks = rec["total_null_blocks"]
            self.miners.append(miner)
        self.seed = state["seed"]
