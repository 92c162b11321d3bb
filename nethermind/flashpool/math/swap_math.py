from .full_math import FullMathModule
from .shared import FEE_DENOMINATOR, SwapComputation
from .sqrt_price_math import SqrtPriceMathModule


class SwapMathModule:
    """
    Computes a single step of a swap within one range of constant liquidity
    """

    full_math = FullMathModule
    sqrt_price_math = SqrtPriceMathModule

    # pylint: disable=too-many-branches
    @classmethod
    def compute_swap_step(
        cls,
        sqrt_price_current: int,
        sqrt_price_target: int,
        liquidity: int,
        amount_remaining: int,
        fee_pips: int,
    ) -> SwapComputation:
        """
        Computes the next step in a swap.  Returns the next sqrt price, amount in, amount out, and fee amount.

        The fee is taken from the input side.  The input amount and fee are rounded up and the output amount is
        rounded down, so every step leaves rounding dust inside the pool.

        :param sqrt_price_current: Current Q64.96 sqrt price
        :param sqrt_price_target: Price that cannot be passed.  Either the next tick price or the price limit
        :param liquidity: Active liquidity of the range
        :param amount_remaining: Positive for exact input, negative for exact output
        :param fee_pips: Swap fee in hundredths of a bip
        :return: :class:`SwapComputation`
        """
        zero_for_one = sqrt_price_current >= sqrt_price_target
        exact_input = amount_remaining >= 0
        sqrt_math = cls.sqrt_price_math

        if exact_input:
            amount_remaining_less_fee = cls.full_math.mul_div(
                amount_remaining,
                FEE_DENOMINATOR - fee_pips,
                FEE_DENOMINATOR,
            )
            if zero_for_one:
                amount_in = sqrt_math.amount_0_delta(sqrt_price_target, sqrt_price_current, liquidity, True)
            else:
                amount_in = sqrt_math.amount_1_delta(sqrt_price_current, sqrt_price_target, liquidity, True)

            if amount_remaining_less_fee >= amount_in:
                sqrt_price_next = sqrt_price_target
            else:
                sqrt_price_next = sqrt_math.get_next_sqrt_price_from_input(
                    sqrt_price_current,
                    liquidity,
                    amount_remaining_less_fee,
                    zero_for_one,
                )
        else:
            if zero_for_one:
                amount_out = sqrt_math.amount_1_delta(sqrt_price_target, sqrt_price_current, liquidity, False)
            else:
                amount_out = sqrt_math.amount_0_delta(sqrt_price_current, sqrt_price_target, liquidity, False)

            if -amount_remaining >= amount_out:
                sqrt_price_next = sqrt_price_target
            else:
                sqrt_price_next = sqrt_math.get_next_sqrt_price_from_output(
                    sqrt_price_current,
                    liquidity,
                    -amount_remaining,
                    zero_for_one,
                )

        max_price_reached = sqrt_price_target == sqrt_price_next

        if zero_for_one:
            if not (max_price_reached and exact_input):
                amount_in = sqrt_math.amount_0_delta(sqrt_price_next, sqrt_price_current, liquidity, True)
            if not (max_price_reached and not exact_input):
                amount_out = sqrt_math.amount_1_delta(sqrt_price_next, sqrt_price_current, liquidity, False)
        else:
            if not (max_price_reached and exact_input):
                amount_in = sqrt_math.amount_1_delta(sqrt_price_current, sqrt_price_next, liquidity, True)
            if not (max_price_reached and not exact_input):
                amount_out = sqrt_math.amount_0_delta(sqrt_price_current, sqrt_price_next, liquidity, False)

        if not exact_input and amount_out > -amount_remaining:
            amount_out = -amount_remaining

        if exact_input and sqrt_price_next != sqrt_price_target:
            # Price did not reach the target, so the rest of the input is kept as fee
            fee_amount = amount_remaining - amount_in
        else:
            fee_amount = cls.full_math.mul_div_rounding_up(amount_in, fee_pips, FEE_DENOMINATOR - fee_pips)

        return SwapComputation(
            sqrt_price_next=sqrt_price_next,
            amount_in=amount_in,
            amount_out=amount_out,
            fee_amount=fee_amount,
        )
