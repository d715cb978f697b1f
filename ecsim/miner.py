import logging

from .chain import Block, Tipset, lookback_tipset
from .tickets import is_winning_ticket

logger = logging.getLogger(__name__)


class RationalMiner:
    """A rational miner privately tracks every non-slashable fork available to it and tries to
    extend all of them each round, publishing at most one block

    Args:
        idx (int): ID of the miner
        power (float): Fraction of the total mining power, in (0, 1]
        tickets (TicketGenerator): Ticket source of the trial the miner belongs to

    Attributes:
        idx (int): Miner ID
        power (float): Fraction of the total mining power
        tickets (TicketGenerator): Ticket source of the trial
        private_forks (dict of tuple to Tipset): Every fork tip this miner is mining on, keyed by
            tipset key. Never shown to other miners
        total_blocks (int): Number of blocks published by this miner
        total_null_blocks (int): Number of null blocks chained onto private forks

    """

    def __init__(self, idx, power, tickets):
        self.idx = idx
        self.power = power
        self.tickets = tickets
        self.private_forks = {}
        self.total_blocks = 0
        self.total_null_blocks = 0

    def __repr__(self):
        return "RationalMiner(m{} power={})".format(self.idx, self.power)

    def consider_all_forks(self, forks_by_tipset):
        """Adds every fork offered this round to the private forks

        Args:
            forks_by_tipset (list of list of Tipset): For every tipset published this round, its forks

        Returns:
            None

        """
        for forks in forks_by_tipset:
            for ts in forks:
                self.private_forks[ts.key] = ts

    def generate_block(self, parents, lbp, nonce):
        """Makes a candidate block on the given parents. The election proof is drawn from the
        lookback tipset and the new ticket from the parents, so they come from separate inputs

        Args:
            parents (Tipset): Tipset to mine on
            lbp (int): Lookback parameter
            nonce (int): ID for the new block

        Returns:
            Block, null if the election was lost

        """
        lottery_ticket = lookback_tipset(parents, lbp).min_ticket
        last_ticket = parents.min_ticket

        live_parents = parents
        if parents.null:
            live_parents = parents.blocks[0].live_parents()

        seed = self.tickets.ticket(last_ticket, self.idx)
        election_proof = self.tickets.election_proof(lottery_ticket, self.idx)
        return Block(nonce, parents, self.idx, parents.height + 1,
                     not is_winning_ticket(election_proof, self.power), live_parents.weight, seed)

    def mine(self, tracker, forks_by_tipset, lbp, id_alloc):
        """Mines on every private fork and returns the block to publish this round. A miner only
        ever publishes one block a round, publishing two gets it slashed

        Args:
            tracker (ChainTracker): Chain tracker of the trial, null blocks are recorded in it
            forks_by_tipset (list of list of Tipset): Forks of the tipsets published this round
            lbp (int): Lookback parameter
            id_alloc (iterator of int): ID allocator of the trial

        Returns:
            The winning Block with the greatest parent weight, or None

        """
        self.consider_all_forks(forks_by_tipset)
        logger.debug("miner %d. number of priv forks: %d", self.idx, len(self.private_forks))

        best_block = None
        null_blocks = []
        for key in sorted(self.private_forks):
            blk = self.generate_block(self.private_forks[key], lbp, next(id_alloc))
            if blk.null:
                null_blocks.append(blk)
            elif best_block is None or blk.parent_weight > best_block.parent_weight:
                best_block = blk

        if best_block is not None:
            # secret forks are superseded by the published block
            self.private_forks = {}
            self.total_blocks += 1
            return best_block

        # keep mining on the null blocks without revealing anything
        for nblk in null_blocks:
            del self.private_forks[nblk.parents.key]
            null_tipset = Tipset([nblk])
            self.private_forks[null_tipset.key] = null_tipset
            tracker.record_blocks([nblk])
        self.total_null_blocks += len(null_blocks)
        return None

    def to_dict(self):
        """Public fields of the miner. Private forks are not exported"""
        return {"id": self.idx, "power": self.power}
