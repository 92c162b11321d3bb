import math

import pytest

from nethermind.flashpool.exceptions import InvalidTick, InvalidTickBounds, TickMathRevert
from nethermind.flashpool.math import MAX_SQRT_RATIO, MAX_TICK, MIN_SQRT_RATIO, MIN_TICK, CoreMath

from ..utils import encode_sqrt_price


class TestTickSpacingToMaxLiquidityPerTick:
    def test_returns_correct_value_for_low_fee(self):
        assert CoreMath.get_max_liquidity_per_tick(10) == 1917569901783203986719870431555990

    def test_returns_correct_value_for_medium_fee(self):
        assert CoreMath.get_max_liquidity_per_tick(60) == 11505743598341114571880798222544994

    def test_returns_correct_value_for_high_fee(self):
        assert CoreMath.get_max_liquidity_per_tick(200) == 38350317471085141830651933667504588

    def test_returns_correct_value_for_full_range(self):
        assert CoreMath.get_max_liquidity_per_tick(887272) == 113427455640312821154458202477256070485

    def test_returns_correct_value_for_2302(self):
        assert CoreMath.get_max_liquidity_per_tick(2302) == 441351967472034323558203122479595605


class TestGetSqrtRatioAtTick:
    def test_raises_for_low_ticks(self):
        with pytest.raises(TickMathRevert):
            CoreMath.tick_math.get_sqrt_ratio_at_tick(MIN_TICK - 1)

    def test_raises_for_high_ticks(self):
        with pytest.raises(TickMathRevert):
            CoreMath.tick_math.get_sqrt_ratio_at_tick(MAX_TICK + 1)

    def test_min_tick(self):
        assert CoreMath.tick_math.get_sqrt_ratio_at_tick(MIN_TICK) == MIN_SQRT_RATIO == 4295128739

    def test_min_tick_plus_1(self):
        assert CoreMath.tick_math.get_sqrt_ratio_at_tick(MIN_TICK + 1) == 4295343490

    def test_max_tick_minus_1(self):
        assert (
            CoreMath.tick_math.get_sqrt_ratio_at_tick(MAX_TICK - 1) == 1461373636630004318706518188784493106690254656249
        )

    def test_max_tick(self):
        assert CoreMath.tick_math.get_sqrt_ratio_at_tick(MAX_TICK) == MAX_SQRT_RATIO

    def test_tick_zero_is_exactly_one(self):
        assert CoreMath.tick_math.get_sqrt_ratio_at_tick(0) == 2**96

    def test_implementation(self):
        for tick in [50, 100, 250, 500, 1000, 2500, 3000, 4000, 5000, 50000, 150000, 250000, 500000, 738203]:
            lib_value = CoreMath.tick_math.get_sqrt_ratio_at_tick(tick)
            python_val = math.sqrt(1.0001**tick) * 2**96
            assert abs(lib_value - python_val) / lib_value < 0.000001  # 1/100th of a bip

    def test_is_strictly_increasing(self):
        ratios = [CoreMath.tick_math.get_sqrt_ratio_at_tick(tick) for tick in range(-500, 500, 7)]
        assert ratios == sorted(set(ratios))


class TestGetTickAtSqrtRatio:
    def test_raises_for_too_low(self):
        with pytest.raises(TickMathRevert):
            CoreMath.tick_math.get_tick_at_sqrt_ratio(MIN_SQRT_RATIO - 1)

    def test_raises_for_too_high(self):
        with pytest.raises(TickMathRevert):
            CoreMath.tick_math.get_tick_at_sqrt_ratio(MAX_SQRT_RATIO)

    def test_ratio_of_min_tick(self):
        assert CoreMath.tick_math.get_tick_at_sqrt_ratio(MIN_SQRT_RATIO) == MIN_TICK

    def test_ratio_of_min_tick_plus_1(self):
        assert CoreMath.tick_math.get_tick_at_sqrt_ratio(4295343490) == MIN_TICK + 1

    def test_ratio_of_max_tick_minus_1(self):
        assert (
            CoreMath.tick_math.get_tick_at_sqrt_ratio(1461373636630004318706518188784493106690254656249)
            == MAX_TICK - 1
        )

    def test_ratio_closest_to_max_tick(self):
        assert CoreMath.tick_math.get_tick_at_sqrt_ratio(MAX_SQRT_RATIO - 1) == MAX_TICK - 1

    def test_implementation(self):
        for ratio in [
            MIN_SQRT_RATIO,
            encode_sqrt_price(10**12, 1),
            encode_sqrt_price(10**6, 1),
            encode_sqrt_price(1, 64),
            encode_sqrt_price(1, 8),
            encode_sqrt_price(1, 2),
            encode_sqrt_price(1, 1),
            encode_sqrt_price(2, 1),
            encode_sqrt_price(8, 1),
            encode_sqrt_price(64, 1),
            encode_sqrt_price(1, 10**6),
            encode_sqrt_price(1, 10**12),
            MAX_SQRT_RATIO - 1,
        ]:
            tick = CoreMath.tick_math.get_tick_at_sqrt_ratio(ratio)
            python_result = math.log((ratio / 2**96) ** 2, 1.0001)
            assert abs(tick - python_result) < 1.1

            tick_ratio = CoreMath.tick_math.get_sqrt_ratio_at_tick(tick)
            tick_plus_one_ratio = CoreMath.tick_math.get_sqrt_ratio_at_tick(tick + 1)
            assert tick_ratio <= ratio < tick_plus_one_ratio

    @pytest.mark.parametrize("tick", [MIN_TICK, -200_000, -60, -1, 0, 1, 60, 200_000, MAX_TICK - 1])
    def test_round_trips_tick_boundaries(self, tick):
        assert CoreMath.tick_math.get_tick_at_sqrt_ratio(CoreMath.tick_math.get_sqrt_ratio_at_tick(tick)) == tick


class TestInputChecks:
    def test_check_tick_bounds(self):
        CoreMath.check_tick(MIN_TICK)
        CoreMath.check_tick(MAX_TICK)
        with pytest.raises(InvalidTick):
            CoreMath.check_tick(MAX_TICK + 1)

    @pytest.mark.parametrize(
        "tick_lower, tick_upper",
        [(60, 60), (120, 60), (MIN_TICK - 60, 0), (0, MAX_TICK + 60), (30, 60), (0, 90)],
    )
    def test_check_ticks_rejects_invalid_bounds(self, tick_lower, tick_upper):
        with pytest.raises(InvalidTickBounds):
            CoreMath.check_ticks(tick_lower, tick_upper, 60)

    def test_fee_and_spacing_defaults(self):
        assert CoreMath.get_fee_and_spacing({}) == (3000, 60)
        assert CoreMath.get_fee_and_spacing({"fee": 500}) == (500, 10)
        assert CoreMath.get_fee_and_spacing({"tick_spacing": 200}) == (10000, 200)
        assert CoreMath.get_fee_and_spacing({"fee": 2500, "tick_spacing": 50}) == (2500, 50)
