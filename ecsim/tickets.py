import hashlib
import hmac

import numpy as np

## Tickets are drawn uniformly from [0, TICKET_SPACE)
TICKET_SPACE = 100000

_TICKET_DOMAIN = b"ticket"
_ELECTION_DOMAIN = b"election"


def is_winning_ticket(ticket, power):
    """Simulates ticket checking: a ticket wins if it is smaller than TICKET_SPACE scaled by
    the miner's share of the total power

    Args:
        ticket (int): Ticket drawn in [0, TICKET_SPACE)
        power (float): Fraction of total mining power, in (0, 1]

    Returns:
        True if the ticket wins the election

    """
    return float(ticket) < float(TICKET_SPACE) * power


class TicketGenerator:
    """Stand-in for a verifiable random function. Draws are a keyed hash of the
    input seed and the miner's ID, so the same (seed, miner) pair always gives the same
    ticket under one key while different trials (different keys) are independent

    Args:
        key (bytes): Secret key for this trial

    Attributes:
        key (bytes): Secret key all draws of this trial are made under

    """

    def __init__(self, key):
        self.key = bytes(key)

    @classmethod
    def from_seed_sequence(cls, seed_seq):
        """Derives the trial key from a numpy SeedSequence

        Args:
            seed_seq (numpy.random.SeedSequence): Trial level seed

        Returns:
            A TicketGenerator keyed by 256 bits of the sequence's state

        """
        state = seed_seq.generate_state(4, dtype=np.uint64)
        return cls(state.tobytes())

    def _draw(self, domain, seed, miner_id):
        msg = domain + int(seed).to_bytes(16, "big", signed=True) + int(miner_id).to_bytes(8, "big", signed=True)
        digest = hmac.new(self.key, msg, hashlib.sha256).digest()
        return int.from_bytes(digest[:8], "big") % TICKET_SPACE

    def ticket(self, seed, miner_id):
        """Draws the ticket that goes into a new block and seeds the next tickets on its chain

        Args:
            seed (int): Min ticket of the parent tipset
            miner_id (int): ID of the miner drawing

        Returns:
            int in [0, TICKET_SPACE)

        """
        return self._draw(_TICKET_DOMAIN, seed, miner_id)

    def election_proof(self, seed, miner_id):
        """Draws the value checked against the miner's power to decide if a block can be published

        Args:
            seed (int): Min ticket of the lookback tipset
            miner_id (int): ID of the miner drawing

        Returns:
            int in [0, TICKET_SPACE)

        """
        return self._draw(_ELECTION_DOMAIN, seed, miner_id)
