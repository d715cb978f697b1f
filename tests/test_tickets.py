import numpy as np

from ecsim.tickets import TICKET_SPACE, TicketGenerator, is_winning_ticket


def test_tickets_are_deterministic_per_key():
    gen = TicketGenerator(b"trial-key")
    again = TicketGenerator(b"trial-key")
    for seed in range(50):
        assert gen.ticket(seed, 3) == again.ticket(seed, 3)
        assert gen.election_proof(seed, 3) == again.election_proof(seed, 3)


def test_tickets_fall_in_ticket_space():
    gen = TicketGenerator(b"k")
    draws = [gen.ticket(seed, m) for seed in range(200) for m in range(5)]
    assert min(draws) >= 0
    assert max(draws) < TICKET_SPACE


def test_seed_and_miner_are_separate_inputs():
    gen = TicketGenerator(b"k")
    # a plain sum of seed and miner id would collide here
    assert gen.ticket(5, 1) != gen.ticket(4, 2)


def test_election_proof_differs_from_ticket():
    gen = TicketGenerator(b"k")
    assert any(gen.ticket(seed, 0) != gen.election_proof(seed, 0) for seed in range(20))


def test_trials_with_different_keys_are_independent():
    first = TicketGenerator(b"first")
    second = TicketGenerator(b"second")
    assert [first.ticket(s, 0) for s in range(20)] != [second.ticket(s, 0) for s in range(20)]


def test_key_from_seed_sequence():
    a = TicketGenerator.from_seed_sequence(np.random.SeedSequence(1234))
    b = TicketGenerator.from_seed_sequence(np.random.SeedSequence(1234))
    c = TicketGenerator.from_seed_sequence(np.random.SeedSequence(4321))
    assert a.key == b.key
    assert a.key != c.key
    assert len(a.key) == 32


def test_winning_ticket_threshold():
    assert is_winning_ticket(TICKET_SPACE - 1, 1.0)
    assert is_winning_ticket(0, 0.1)
    assert is_winning_ticket(TICKET_SPACE // 2 - 1, 0.5)
    assert not is_winning_ticket(TICKET_SPACE // 2, 0.5)
