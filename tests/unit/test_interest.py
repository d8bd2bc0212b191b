"""Unit and property tests for the interest-rate and accrual functions."""
from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from moneymarket.interest import (
    borrow_rate,
    calculate_accrued_interest,
    round_div,
    supply_rate,
    utilization_rate,
)
from moneymarket.models import RATE_DECIMALS, AccruedInterest, InterestRateModel

RD = RATE_DECIMALS

amounts = st.integers(min_value=0, max_value=10**30)
rates = st.integers(min_value=0, max_value=RD)
heights = st.integers(min_value=0, max_value=10**9)


class TestUtilization:
    def test_half_lent(self) -> None:
        assert utilization_rate(cash=50, borrows=50, reserves=0) == RD // 2

    def test_reserves_shrink_denominator(self) -> None:
        # 50 / (60 + 50 - 10)
        assert utilization_rate(cash=60, borrows=50, reserves=10) == RD // 2

    def test_empty_pool_is_zero(self) -> None:
        assert utilization_rate(0, 0, 0) == 0

    def test_over_reserved_pool_is_zero(self) -> None:
        assert utilization_rate(cash=10, borrows=0, reserves=20) == 0

    def test_negative_input_rejected(self) -> None:
        with pytest.raises(ValueError, match="cash"):
            utilization_rate(-1, 0, 0)


class TestBorrowRate:
    def test_below_kink(self, sample_model: InterestRateModel) -> None:
        # 50% utilization: 1% + 0.5 * 5%
        rate = borrow_rate(sample_model, cash=50, borrows=50, reserves=0)
        assert rate == 10**22 + 25 * 10**21

    def test_at_kink_uses_normal_slope(self, sample_model: InterestRateModel) -> None:
        rate = borrow_rate(sample_model, cash=20, borrows=80, reserves=0)
        assert rate == 10**22 + 4 * 10**22

    def test_above_kink_adds_jump(self, sample_model: InterestRateModel) -> None:
        # 90%: 1% + 0.8 * 5% + 0.1 * 50%
        rate = borrow_rate(sample_model, cash=10, borrows=90, reserves=0)
        assert rate == 10**22 + 4 * 10**22 + 5 * 10**22

    def test_zero_denominator_is_zero_rate(self, sample_model: InterestRateModel) -> None:
        assert borrow_rate(sample_model, 0, 0, 0) == 0
        assert borrow_rate(sample_model, 5, 0, 10) == 0

    @given(cash=amounts, borrows=amounts)
    @settings(max_examples=100)
    def test_rate_never_below_base(self, cash: int, borrows: int) -> None:
        model = InterestRateModel(
            kink=8 * 10**23,
            multiplier_per_block=5 * 10**22,
            base_rate_per_block=10**22,
            jump_multiplier_per_block=5 * 10**23,
        )
        rate = borrow_rate(model, cash, borrows, 0)
        if cash + borrows > 0:
            assert rate >= model.base_rate_per_block
        else:
            assert rate == 0


class TestSupplyRate:
    def test_scaled_by_utilization_and_reserve_factor(
        self, sample_model: InterestRateModel
    ) -> None:
        b_rate = borrow_rate(sample_model, 50, 50, 0)
        expected = b_rate * (RD // 2) // RD * (RD - sample_model.reserve_factor) // RD
        assert supply_rate(sample_model, 50, 50, 0) == expected

    def test_no_borrows_no_supply_rate(self, sample_model: InterestRateModel) -> None:
        assert supply_rate(sample_model, cash=100, borrows=0, reserves=0) == 0

    @given(cash=amounts, borrows=amounts)
    @settings(max_examples=100)
    def test_supply_rate_never_exceeds_borrow_rate(self, cash: int, borrows: int) -> None:
        model = InterestRateModel(reserve_factor=10**23)
        assert supply_rate(model, cash, borrows, 0) <= borrow_rate(model, cash, borrows, 0)


class TestCalculateAccruedInterest:
    def test_no_elapsed_blocks_adds_nothing(self) -> None:
        prior = AccruedInterest(accumulated_interest=3, last_recalculation_block=100)
        accrued = calculate_accrued_interest(RD, 5, prior, 100)
        assert accrued == AccruedInterest(3, 100)

    def test_linear_in_elapsed_blocks(self) -> None:
        # 1% per block on 1000 for 10 blocks
        accrued = calculate_accrued_interest(10**22, 1000, AccruedInterest(0, 0), 10)
        assert accrued == AccruedInterest(100, 10)

    def test_floors_fractional_interest(self) -> None:
        accrued = calculate_accrued_interest(10**22, 99, AccruedInterest(0, 0), 1)
        assert accrued.accumulated_interest == 0

    def test_height_behind_checkpoint_rejected(self) -> None:
        with pytest.raises(ValueError, match="behind"):
            calculate_accrued_interest(RD, 5, AccruedInterest(0, 50), 49)

    def test_negative_principal_rejected(self) -> None:
        with pytest.raises(ValueError, match="principal"):
            calculate_accrued_interest(RD, -1, AccruedInterest(), 1)

    @given(
        rate=rates,
        principal=amounts,
        start=heights,
        steps=st.lists(st.integers(min_value=0, max_value=10**6), min_size=1, max_size=10),
    )
    @settings(max_examples=200)
    def test_accumulation_is_monotone(
        self, rate: int, principal: int, start: int, steps: list[int]
    ) -> None:
        """Non-decreasing heights never reduce accumulated interest."""
        checkpoint = AccruedInterest(0, start)
        height = start
        for step in steps:
            height += step
            nxt = calculate_accrued_interest(rate, principal, checkpoint, height)
            assert nxt.accumulated_interest >= checkpoint.accumulated_interest
            assert nxt.last_recalculation_block >= checkpoint.last_recalculation_block
            checkpoint = nxt


class TestRoundDiv:
    def test_rounds_half_up(self) -> None:
        assert round_div(5, 2) == 3
        assert round_div(4, 3) == 1
        assert round_div(5, 3) == 2

    def test_exact(self) -> None:
        assert round_div(10, 5) == 2

    def test_non_positive_denominator_rejected(self) -> None:
        with pytest.raises(ValueError):
            round_div(1, 0)
