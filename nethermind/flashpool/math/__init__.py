import logging

from nethermind.flashpool.exceptions import CoreRevert, InvalidTickBounds

from .full_math import FullMathModule
from .shared import (
    FEE_DENOMINATOR,
    FEES_TO_TICK_SPACINGS,
    INT_128_MAX,
    INT_128_MIN,
    INT_256_MAX,
    INT_256_MIN,
    MAX_SQRT_RATIO,
    MAX_TICK,
    MAX_TICK_SPACING,
    MIN_SQRT_RATIO,
    MIN_TICK,
    Q128,
    SQRT_Q96,
    TICK_SPACINGS_TO_FEES,
    UINT_128_MAX,
    UINT_256_MAX,
    SwapComputation,
    check_sqrt_price,
    check_tick,
    get_max_liquidity_per_tick,
)
from .sqrt_price_math import SqrtPriceMathModule
from .swap_math import SwapMathModule
from .tick_math import TickMathModule

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("math")


class CoreMath:
    """
    Namespace bundling the math modules used by the core.  All methods are integer-exact.
    """

    MAX_SQRT_RATIO = MAX_SQRT_RATIO
    MIN_SQRT_RATIO = MIN_SQRT_RATIO

    MAX_TICK = MAX_TICK
    MIN_TICK = MIN_TICK

    UINT_128_MAX = UINT_128_MAX
    Q128 = Q128

    # Math Modules

    full_math = FullMathModule
    sqrt_price_math = SqrtPriceMathModule
    swap_math = SwapMathModule
    tick_math = TickMathModule

    get_amount_0_delta = SqrtPriceMathModule.get_amount_0_delta
    get_amount_1_delta = SqrtPriceMathModule.get_amount_1_delta
    compute_swap_step = SwapMathModule.compute_swap_step

    get_max_liquidity_per_tick = staticmethod(get_max_liquidity_per_tick)
    check_sqrt_price = staticmethod(check_sqrt_price)
    check_tick = staticmethod(check_tick)

    # -----------------------------------------------------------------------
    # Input Checks
    # -----------------------------------------------------------------------

    @classmethod
    def get_fee_and_spacing(cls, init_kwargs: dict) -> tuple[int, int]:
        """
        Returns the fee and tick spacing for a given pool.  If no fee or tick spacing is provided, the default values
        of 3000 and 60 are returned.

        :param init_kwargs:
        :return:
        """
        provided_fee = init_kwargs.get("fee")
        provided_spacing = init_kwargs.get("tick_spacing")

        if provided_fee is None and provided_spacing is None:
            return 3000, 60

        if provided_fee is None and TICK_SPACINGS_TO_FEES.get(provided_spacing) is not None:
            return TICK_SPACINGS_TO_FEES[provided_spacing], provided_spacing

        if provided_spacing is None and FEES_TO_TICK_SPACINGS.get(provided_fee) is not None:
            return provided_fee, FEES_TO_TICK_SPACINGS[provided_fee]

        if provided_fee is not None and provided_spacing is not None:
            if FEES_TO_TICK_SPACINGS.get(provided_fee) != provided_spacing:
                logger.warning(
                    f"Tick spacing & Fee were both specified, but do not match typical values"
                    f"\tFee: {provided_fee}, Tick Spacing: {provided_spacing}"
                )
            return provided_fee, provided_spacing

        raise CoreRevert(
            "Nonstandard tick spacing or fee provided. Please provide a standard value, "
            "or both tick_spacing and fee when using nonstandard values"
        )

    @classmethod
    def check_ticks(cls, tick_lower: int, tick_upper: int, tick_spacing: int):
        """
        Checks position bounds.  Raises InvalidTickBounds if ticks are unordered, out of range, or not
        aligned to the tick spacing.

        :param tick_lower:
        :param tick_upper:
        :param tick_spacing:
        """
        if tick_lower >= tick_upper:
            raise InvalidTickBounds(f"tick_lower ({tick_lower}) must be less than tick_upper ({tick_upper})")
        if tick_lower < MIN_TICK:
            raise InvalidTickBounds("tick_lower must be greater than MIN_TICK")
        if tick_upper > MAX_TICK:
            raise InvalidTickBounds("tick_upper must be less than MAX_TICK")
        if tick_lower % tick_spacing or tick_upper % tick_spacing:
            raise InvalidTickBounds(f"Ticks ({tick_lower}, {tick_upper}) are not multiples of spacing {tick_spacing}")

    # -----------------------------------------------------------------------
    # Liquidity <-> Amount Conversions
    # -----------------------------------------------------------------------

    @classmethod
    def get_amounts_for_liquidity(
        cls,
        sqrt_price: int,
        sqrt_price_lower: int,
        sqrt_price_upper: int,
        liquidity_delta: int,
    ) -> tuple[int, int]:
        """
        Returns the signed token amounts for a liquidity change over [sqrt_price_lower, sqrt_price_upper) given
        the current pool price.  Positive amounts are owed to the pool.

        :param sqrt_price: current pool price
        :param sqrt_price_lower: price at the lower bound
        :param sqrt_price_upper: price at the upper bound
        :param liquidity_delta: signed liquidity change
        :return: (amount_0, amount_1)
        """
        if sqrt_price < sqrt_price_lower:
            return cls.get_amount_0_delta(sqrt_price_lower, sqrt_price_upper, liquidity_delta), 0
        if sqrt_price < sqrt_price_upper:
            return (
                cls.get_amount_0_delta(sqrt_price, sqrt_price_upper, liquidity_delta),
                cls.get_amount_1_delta(sqrt_price_lower, sqrt_price, liquidity_delta),
            )
        return 0, cls.get_amount_1_delta(sqrt_price_lower, sqrt_price_upper, liquidity_delta)


__all__ = [
    "CoreMath",
    "FEE_DENOMINATOR",
    "INT_128_MAX",
    "INT_128_MIN",
    "INT_256_MAX",
    "INT_256_MIN",
    "MAX_SQRT_RATIO",
    "MAX_TICK",
    "MAX_TICK_SPACING",
    "MIN_SQRT_RATIO",
    "MIN_TICK",
    "Q128",
    "SQRT_Q96",
    "UINT_128_MAX",
    "UINT_256_MAX",
    "SwapComputation",
]
