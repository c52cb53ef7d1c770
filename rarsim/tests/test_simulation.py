"""
Tests for trial simulation.
"""

import pytest
import numpy as np
import pandas as pd

from rarsim import (
    ConfigurationError, BinaryDesign, ContinuousDesign, IndexTable,
    PopulationAccrual, NoDelay, FixedDelay, NormalDelay, ExponentialDelay,
    IndexBlockRule, FLGIPosteriorMean, Phase, TrialOutcome,
    simulate_index_block_trial, simulate_optimal_design_trial, simulate_trials,
    null_stop_bound
)


@pytest.fixture(scope="module")
def table():
    return IndexTable.myopic(1100)


@pytest.fixture
def small_binary(table):
    return BinaryDesign(ptrue=[0.6, 0.7], tsize=100, block=20,
                        index_table=table, stopbound=1.96)


@pytest.fixture
def small_continuous():
    return ContinuousDesign(mean=[0.091, 0.0847, 0.0847], sd=[0.009, 0.009, 0.009],
                            n1=9, n2=60, side='lower')


@pytest.fixture
def record_proposals(monkeypatch):
    """Record (patients assigned, outcomes observable) at each recomputation."""
    calls = []

    def propose(self, statistics, rng):
        calls.append((statistics.patients.n_assigned, statistics.total_observed,
                      statistics.clock))
        return IndexBlockRule.propose(self, statistics, rng)

    monkeypatch.setattr(FLGIPosteriorMean, 'propose', propose)
    return calls


class TestIndexBlockTrial:
    """Tests for binary trials allocated in blocks."""

    def test_delayed_two_arm_trial(self, table):
        """A full-size two-arm trial with delayed responses."""
        design = BinaryDesign(ptrue=[0.6, 0.7], tsize=992, block=20,
                              index_table=table, stopbound=1.9991,
                              delay=NormalDelay(60, 3))

        outcome = simulate_index_block_trial(design, seed=2023)

        assert isinstance(outcome, TrialOutcome)
        assert outcome.decision.shape == (1,)
        assert outcome.decision[0] in (0, 1)
        assert np.all(np.isfinite(outcome.statistics))
        assert outcome.n_per_arm.sum() == 992
        assert outcome.index_winner in (1, 2)
        assert "Final Decision" in str(outcome)

    def test_counts_match_data(self, small_binary):
        """Per-arm counts match the returned dataset."""
        outcome = simulate_index_block_trial(small_binary, seed=1)
        data = outcome.data

        assert len(data) == 100
        assert data['arm'].notna().all()
        counts = data['arm'].value_counts().reindex([1, 2], fill_value=0).to_numpy(dtype=int)
        np.testing.assert_array_equal(counts, outcome.n_per_arm)
        assert set(data['outcome'].unique()) <= {0.0, 1.0}
        assert np.all(data['outcome_time'] >= data['enroll_time'])

    def test_final_block_reuses_probabilities(self, small_binary, monkeypatch):
        """A short final block does not recompute the allocation."""
        calls = []
        original = FLGIPosteriorMean.probabilities

        def probabilities(self, alpha, beta, rng):
            calls.append(1)
            return original(self, alpha, beta, rng)

        monkeypatch.setattr(FLGIPosteriorMean, 'probabilities', probabilities)
        small_binary.tsize = 50
        simulate_index_block_trial(small_binary, seed=3)

        assert len(calls) == 2

    def test_recomputed_at_block_start(self, small_binary, record_proposals):
        """Probabilities are recomputed when each block's first patient enrolls."""
        outcome = simulate_index_block_trial(small_binary, seed=4)
        enroll = outcome.data['enroll_time'].to_numpy()

        assert [c[0] for c in record_proposals] == [0, 20, 40, 60, 80]
        for start, _, clock in record_proposals:
            assert clock == enroll[start]

    def test_no_delay_sees_every_outcome(self, small_binary, record_proposals):
        """Without delay every earlier outcome is observable."""
        small_binary.delay = NoDelay()
        simulate_index_block_trial(small_binary, seed=5)

        for start, observed, _ in record_proposals:
            assert observed == start

    def test_long_delay_sees_nothing(self, small_binary, record_proposals):
        """With a delay beyond the trial nothing is observable."""
        small_binary.delay = FixedDelay(1e6)
        simulate_index_block_trial(small_binary, seed=6)

        assert all(observed == 0 for _, observed, _ in record_proposals)

    def test_observed_outcomes_match_rescan(self, small_binary, monkeypatch):
        """The statistics used equal a rescan of the outcomes observable."""
        checked = []

        def propose(self, statistics, rng):
            patients = statistics.patients
            visible = patients.outcome_time[:patients.n_assigned] <= statistics.clock
            arms = patients.arm[:patients.n_assigned][visible]
            np.testing.assert_array_equal(statistics.n_observed,
                                          np.bincount(arms, minlength=2))
            checked.append(1)
            return IndexBlockRule.propose(self, statistics, rng)

        monkeypatch.setattr(FLGIPosteriorMean, 'propose', propose)
        small_binary.delay = ExponentialDelay(5)
        simulate_index_block_trial(small_binary, seed=7)

        assert len(checked) == 5

    def test_reproducible(self, small_binary):
        """The same seed reproduces the same trial."""
        first = simulate_index_block_trial(small_binary, seed=11)
        second = simulate_index_block_trial(small_binary, rng=np.random.default_rng(11))

        pd.testing.assert_frame_equal(first.data, second.data)
        np.testing.assert_array_equal(first.statistics, second.statistics)

    @pytest.mark.parametrize("rule", ['FLGI PD', 'CFLGI'])
    def test_three_arm_variants(self, table, rule):
        """Other rule variants run with three arms."""
        design = BinaryDesign(ptrue=[0.3, 0.5, 0.6], tsize=90, block=15,
                              index_table=table, stopbound=2.2, rule=rule,
                              ztype='pooled', delay=NormalDelay(3, 1))

        outcome = simulate_index_block_trial(design, seed=8)

        assert outcome.decision.shape == (2,)
        assert outcome.n_per_arm.sum() == 90
        assert 1 <= outcome.index_winner <= 3

    def test_clear_winner(self, table):
        """A much better arm receives most patients and is selected."""
        design = BinaryDesign(ptrue=[0.2, 0.8], tsize=200, block=20,
                              index_table=table, stopbound=1.96)

        outcome = simulate_index_block_trial(design, seed=12)

        assert outcome.n_per_arm[1] > outcome.n_per_arm[0]
        assert outcome.decision[0] == 1
        assert outcome.index_winner == 2

    def test_accrual_shortfall(self, table):
        """An accrual that enrolls too few patients is reported."""
        design = BinaryDesign(ptrue=[0.6, 0.7], tsize=100, block=10,
                              index_table=table, stopbound=1.96,
                              accrual=PopulationAccrual(pats=10, n_max=120, enroll_rate=0.5))

        with pytest.raises(ConfigurationError, match="enrollments"):
            simulate_index_block_trial(design, seed=9)


class TestOptimalDesignTrial:
    """Tests for Normal-endpoint trials."""

    def test_three_arm_null_trial(self):
        """The three-arm trial with equal means."""
        design = ContinuousDesign(mean=[0.091] * 3, sd=[0.009] * 3, n1=9, n2=132,
                                  side='lower', delay=NormalDelay(30, 3))

        outcome = simulate_optimal_design_trial(design, seed=2023)

        assert outcome.decision.shape == (2,)
        assert np.all(np.isfinite(outcome.statistics))
        assert outcome.n_per_arm.sum() == 132
        assert outcome.index_winner is None
        assert "Arm With Maximal Index" not in str(outcome)

    def test_burn_in_balanced(self, small_continuous):
        """The burn-in allocates one patient per arm in each block."""
        outcome = simulate_optimal_design_trial(small_continuous, seed=13)
        burn_in = outcome.data['arm'].iloc[:9]

        np.testing.assert_array_equal(burn_in.value_counts().sort_index().to_numpy(dtype=int),
                                      [3, 3, 3])
        for start in (0, 3, 6):
            assert set(burn_in.iloc[start:start + 3]) == {1, 2, 3}

    def test_first_patient_uniform(self):
        """Every arm is equally likely for the first patient."""
        design = ContinuousDesign(mean=[0.0, 0.0, 0.0], sd=[1.0, 1.0, 1.0], n1=3, n2=3)
        first = [simulate_optimal_design_trial(design, seed=s).data['arm'].iloc[0]
                 for s in range(300)]

        freq = np.bincount(np.array(first, dtype=int), minlength=4)[1:] / 300
        np.testing.assert_allclose(freq, 1 / 3, atol=0.08)

    def test_fallback_while_nothing_observed(self, small_continuous):
        """Every adaptive patient falls back when no outcome is observable."""
        small_continuous.delay = FixedDelay(1e6)
        outcome = simulate_optimal_design_trial(small_continuous, seed=14)

        assert outcome.fallbacks == 60 - 9

    def test_no_fallback_without_delay(self, small_continuous):
        """After a complete burn-in every arm has an observed mean."""
        outcome = simulate_optimal_design_trial(small_continuous, seed=15)

        assert outcome.fallbacks == 0

    def test_clear_effect_detected(self):
        """Arms with clearly lower means are selected on a lower-sided test."""
        design = ContinuousDesign(mean=[0.091, 0.07, 0.07], sd=[0.009] * 3, n1=9,
                                  n2=132, side='lower')

        outcome = simulate_optimal_design_trial(design, seed=16)

        np.testing.assert_array_equal(outcome.decision, [1, 1])
        assert np.all(outcome.statistics < 0)

    def test_reproducible(self, small_continuous):
        """The same seed reproduces the same trial."""
        first = simulate_optimal_design_trial(small_continuous, seed=17)
        second = simulate_optimal_design_trial(small_continuous, seed=17)

        pd.testing.assert_frame_equal(first.data, second.data)


class TestOperatingCharacteristics:
    """Tests for repeated simulation."""

    def test_continuous_summary(self, small_continuous):
        """Repeated continuous trials keep one row of statistics per trial."""
        oc = simulate_trials(simulate_optimal_design_trial, small_continuous,
                             n_sim=20, seed=18)

        assert oc.n_sim == 20
        assert oc.statistics.shape == (20, 2)
        assert oc.mean_n_per_arm.sum() == pytest.approx(60)
        assert oc.winner_frequency is None

    def test_type_one_error(self):
        """Under equal means the family-wise selection rate is close to alpha."""
        design = ContinuousDesign(mean=[0.091] * 3, sd=[0.009] * 3, n1=9, n2=132,
                                  side='lower')
        oc = simulate_trials(simulate_optimal_design_trial, design, n_sim=1000, seed=21)

        assert 0.008 <= oc.any_rejection_rate <= 0.045
        assert np.all(oc.rejection_rate > 0)
        assert oc.mean_n_per_arm.sum() == pytest.approx(132)

    def test_binary_summary(self, small_binary):
        """Binary summaries report how often each arm had the maximal index."""
        oc = simulate_trials(simulate_index_block_trial, small_binary, n_sim=20, seed=19)
        table = oc.summary_table()

        assert list(table['arm']) == [1, 2]
        assert np.isnan(table['rejection_rate'].iloc[0])
        assert oc.winner_frequency.sum() == pytest.approx(1.0)

    def test_invalid_n_sim(self, small_binary):
        """Test that a non-positive n_sim raises error."""
        with pytest.raises(ValueError, match="n_sim"):
            simulate_trials(simulate_index_block_trial, small_binary, n_sim=0)

    def test_null_stop_bound(self, table):
        """The simulated boundary is a finite upper cut-off."""
        design = BinaryDesign(ptrue=[0.5, 0.7], tsize=40, block=10,
                              index_table=table, stopbound=1.96)

        bound = null_stop_bound(design, n_sim=50, seed=20)

        assert np.isfinite(bound)
        assert bound > 0


def test_phases():
    assert [p.value for p in Phase] == ['burn-in', 'adaptive', 'complete']


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
