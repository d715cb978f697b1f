import collections

import pytest

from ecsim import simulator as sim_module
from ecsim.chain import Block, GENESIS_OWNER
from ecsim.errors import ConfigError, InvariantViolation, TrialFailed
from ecsim.simulator import Simulator, run_trial, run_trials, trial_seeds


def published(tracker):
    return [blk for blk in tracker.all_blocks.values() if not blk.null and blk.owner != GENESIS_OWNER]


def test_genesis_chain_covers_lookback():
    sim = Simulator(3, 1, 2, seed=1)
    gen = sim.make_genesis()
    assert len(sim.tracker.all_blocks) == 3
    assert gen.nonce == 2
    assert gen.parents.blocks[0].parents.blocks[0].parents is None
    for blk in sim.tracker.all_blocks.values():
        assert blk.owner == GENESIS_OWNER
        assert blk.height == 0
        assert blk.in_head
    assert sim.tracker.head.key == (gen.nonce,)
    assert sim.tracker.head.weight == 1


def test_single_miner_always_mines_on_genesis():
    tracker = run_trial(1, 1, 1, seed=3)
    blocks = published(tracker)
    assert len(blocks) == 1
    blk = blocks[0]
    assert blk.height == 1
    assert blk.parents.key == (0,)
    assert blk.parent_weight == 1
    assert blk.in_head
    assert tracker.head.key == (blk.nonce,)
    assert tracker.head.weight == 2
    assert tracker.max_height == 0
    assert tracker.live_blocks_by_height == {0: [tracker.all_blocks[0]], 1: [blk]}


def test_round_heights_and_head_monotonic():
    for seed in range(5):
        tracker = run_trial(1, 5, 10, seed=seed)
        assert tracker.max_height == 4
        for height, blocks in tracker.live_blocks_by_height.items():
            # the last round is indexed one past max_height
            assert 0 <= height <= tracker.max_height + 1
            assert all(blk.height == height for blk in blocks)
            assert all(not blk.null for blk in blocks)

        weights = [weight for _, weight in tracker.head_history]
        assert len(weights) == 6
        assert weights == sorted(weights)

        by_height = collections.defaultdict(list)
        for blk in published(tracker):
            by_height[blk.height].append(blk)
        for round_idx in range(5):
            if not by_height[round_idx + 1]:
                # an empty round leaves the head where it was
                assert tracker.head_history[round_idx + 1] == tracker.head_history[round_idx]


def test_miners_publish_at_most_one_block_per_round():
    tracker = run_trial(2, 30, 6, seed=8)
    by_height = collections.defaultdict(list)
    for blk in published(tracker):
        by_height[blk.height].append(blk.owner)
    for owners in by_height.values():
        assert len(owners) == len(set(owners))


def test_null_blocks_never_published():
    tracker = run_trial(1, 40, 5, seed=21)
    live = {blk.nonce for blk in tracker.live_blocks()}
    nulls = [blk for blk in tracker.all_blocks.values() if blk.null]
    assert all(blk.nonce not in live for blk in nulls)
    for blk in published(tracker):
        assert not blk.live_parents().null


def test_final_head_is_marked():
    tracker = run_trial(1, 30, 10, seed=4)
    assert tracker.head.was_head
    assert all(blk.in_head for blk in tracker.head.blocks)
    assert tracker.head_history[-1] == (tracker.head.name, tracker.head.weight)
    for blk in tracker.head.blocks:
        assert tracker.all_blocks[blk.nonce] is blk


def test_trial_is_reproducible_from_its_seed():
    first = run_trial(2, 25, 8, seed=99)
    second = run_trial(2, 25, 8, seed=99)
    assert first.to_records() == second.to_records()
    assert first.head_history == second.head_history
    other = run_trial(2, 25, 8, seed=100)
    assert other.to_records() != first.to_records()


def test_ids_restart_for_every_trial():
    first = Simulator(1, 3, 2, seed=1)
    second = Simulator(1, 3, 2, seed=1)
    first.run()
    second.run()
    assert min(first.tracker.all_blocks) == min(second.tracker.all_blocks) == 0


def test_long_lookback_does_not_underflow():
    tracker = run_trial(6, 30, 4, seed=2)
    assert tracker.max_height == 29


def test_mixed_heights_in_a_round_are_fatal():
    sim = Simulator(1, 2, 2, seed=1)
    gen = sim.make_genesis()
    bad = [gen, Block(99, sim.tracker.head, 0, 1, False, 1, 7)]
    with pytest.raises(InvariantViolation) as err:
        sim.run_round(0, bad)
    assert "99" in str(err.value)


def test_invalid_parameters_rejected_before_running():
    with pytest.raises(ConfigError):
        Simulator(0, 5, 5)
    with pytest.raises(ConfigError):
        Simulator(1, 0, 5)
    with pytest.raises(ConfigError):
        run_trials(1, 5, 5, 0)


def test_unseeded_trials_draw_fresh_seeds():
    assert Simulator(1, 1, 1).seed != Simulator(1, 1, 1).seed


def test_trial_seeds_follow_root_seed():
    assert trial_seeds(4, 17) == trial_seeds(4, 17)
    assert len(set(trial_seeds(4, 17))) == 4


def test_run_trials_in_threads():
    trackers = run_trials(1, 10, 4, 3, root_seed=17, use_processes=False)
    assert len(trackers) == 3
    assert [ct.seed for ct in trackers] == trial_seeds(3, 17)
    for ct, seed in zip(trackers, trial_seeds(3, 17)):
        assert ct.max_height == 9
        assert ct.to_records() == run_trial(1, 10, 4, seed).to_records()


def test_run_trials_in_processes():
    trackers = run_trials(2, 12, 3, 2, root_seed=5, max_workers=2)
    expected = [run_trial(2, 12, 3, seed) for seed in trial_seeds(2, 5)]
    assert [ct.head_history for ct in trackers] == [ct.head_history for ct in expected]
    assert [sorted(ct.all_blocks) for ct in trackers] == [sorted(ct.all_blocks) for ct in expected]


def test_failed_trial_does_not_stop_the_others(monkeypatch):
    seeds = trial_seeds(3, 23)
    finished = []
    real_run_trial = sim_module.run_trial

    def flaky_run_trial(lbp, round_count, miner_count, seed=None):
        if seed == seeds[1]:
            raise InvariantViolation("broken trial")
        tracker = real_run_trial(lbp, round_count, miner_count, seed)
        finished.append(seed)
        return tracker

    monkeypatch.setattr(sim_module, "run_trial", flaky_run_trial)
    with pytest.raises(TrialFailed) as err:
        run_trials(1, 5, 3, 3, root_seed=23, use_processes=False)
    assert err.value.trial_idx == 1
    assert isinstance(err.value.cause, InvariantViolation)
    assert err.value.failed == 1
    assert sorted(finished) == sorted([seeds[0], seeds[2]])
