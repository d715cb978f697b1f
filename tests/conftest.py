import itertools

import pytest

from ecsim.chain import Block, GENESIS_OWNER, Tipset
from ecsim.tickets import TICKET_SPACE


class StubTickets:
    """Ticket source with a fixed election outcome"""

    def __init__(self, election=0):
        self.election = election

    def ticket(self, seed, miner_id):
        return (seed * 31 + miner_id + 1) % TICKET_SPACE

    def election_proof(self, seed, miner_id):
        return self.election


@pytest.fixture
def genesis():
    return Tipset([Block(0, None, GENESIS_OWNER, 0, False, 0, 42, in_head=True)])


@pytest.fixture
def make_block():
    nonces = itertools.count(1)

    def make(parents, seed, owner=0, null=False):
        return Block(next(nonces), parents, owner, parents.height + 1, null, parents.weight, seed)

    return make


@pytest.fixture
def id_alloc():
    return itertools.count(1000)


@pytest.fixture
def winning_tickets():
    return StubTickets(election=0)


@pytest.fixture
def losing_tickets():
    return StubTickets(election=TICKET_SPACE - 1)
