from nethermind.flashpool.exceptions import FullMathRevert, SqrtPriceMathRevert

from .full_math import FullMathModule
from .shared import (
    INT_256_MAX,
    SQRT_Q96,
    SQRT_RESOLUTION,
    UINT_160_MAX,
    UINT_256_MAX,
    overflow_check,
)


class SqrtPriceMathModule:
    """
    Math module for calculating sqrt prices & liquidity amounts.

    Rounding always favors the pool.  Amounts the pool receives are rounded up, amounts the pool pays out
    are rounded down, and price movements round in the direction that requires more input.
    """

    full_math = FullMathModule

    @classmethod
    def get_next_sqrt_price_from_amount_0_rounding_up(
        cls,
        sqrt_price: int,
        liquidity: int,
        amount: int,
        add: bool,
    ) -> int:
        """
        Returns the next sqrt price given a delta of token 0.  Always rounds up, since the price moves
        down when adding token 0 and up when removing it.

        :param sqrt_price: starting Q64.96 sqrt price
        :param liquidity: active liquidity
        :param amount: amount of token 0 to add or remove
        :param add: whether to add or remove the amount
        :return: next sqrt price
        """
        if amount == 0:
            return sqrt_price

        numerator_1 = liquidity << SQRT_RESOLUTION
        product = amount * sqrt_price

        try:
            if add:
                if product <= UINT_256_MAX:
                    denominator = numerator_1 + product
                    if denominator <= UINT_256_MAX:
                        return cls.full_math.mul_div_rounding_up(numerator_1, sqrt_price, denominator)

                return cls.full_math.div_rounding_up(numerator_1, (numerator_1 // sqrt_price) + amount)

            if product > UINT_256_MAX or numerator_1 <= product:
                raise SqrtPriceMathRevert("Removing token 0 would move the price past infinity")

            next_price = cls.full_math.mul_div_rounding_up(numerator_1, sqrt_price, numerator_1 - product)
        except FullMathRevert as exc:
            raise SqrtPriceMathRevert from exc

        if next_price > UINT_160_MAX:
            raise SqrtPriceMathRevert("UINT_160_MAX Overflow")
        return next_price

    @classmethod
    def get_next_sqrt_price_from_amount_1_rounding_down(
        cls,
        sqrt_price: int,
        liquidity: int,
        amount: int,
        add: bool,
    ) -> int:
        """
        Returns the next sqrt price given a delta of token 1.  Always rounds down.

        :param sqrt_price: starting Q64.96 sqrt price
        :param liquidity: active liquidity
        :param amount: amount of token 1 to add or remove
        :param add: whether to add or remove the amount
        :return: next sqrt price
        """
        try:
            if add:
                if amount <= UINT_160_MAX:
                    quotient = (amount << SQRT_RESOLUTION) // liquidity
                else:
                    quotient = cls.full_math.mul_div(amount, SQRT_Q96, liquidity)

                if sqrt_price + quotient > UINT_160_MAX:
                    raise SqrtPriceMathRevert("UINT_160_MAX Overflow")
                return sqrt_price + quotient

            if amount <= UINT_160_MAX:
                quotient = cls.full_math.div_rounding_up(amount << SQRT_RESOLUTION, liquidity)
            else:
                quotient = cls.full_math.mul_div_rounding_up(amount, SQRT_Q96, liquidity)
        except FullMathRevert as exc:
            raise SqrtPriceMathRevert from exc

        if sqrt_price <= quotient:
            raise SqrtPriceMathRevert("Sqrt Price cannot be less than quotient")
        return sqrt_price - quotient

    @classmethod
    def get_next_sqrt_price_from_input(
        cls,
        sqrt_price: int,
        liquidity: int,
        amount_in: int,
        zero_for_one: bool,
    ) -> int:
        """
        Returns the next sqrt price given an input amount of token 0 or token 1.  Rounds so that the
        target price is never passed.

        :param sqrt_price:
        :param liquidity:
        :param amount_in:
        :param zero_for_one:
        :return:
        """
        if sqrt_price <= 0 or liquidity <= 0:
            raise SqrtPriceMathRevert("sqrt_price and liquidity must be greater than 0")

        if zero_for_one:
            return cls.get_next_sqrt_price_from_amount_0_rounding_up(sqrt_price, liquidity, amount_in, True)
        return cls.get_next_sqrt_price_from_amount_1_rounding_down(sqrt_price, liquidity, amount_in, True)

    @classmethod
    def get_next_sqrt_price_from_output(
        cls,
        sqrt_price: int,
        liquidity: int,
        amount_out: int,
        zero_for_one: bool,
    ) -> int:
        """
        Returns the next sqrt price given an output amount of token 0 or token 1

        :param sqrt_price:
        :param liquidity:
        :param amount_out:
        :param zero_for_one:
        :return:
        """
        if sqrt_price <= 0 or liquidity <= 0:
            raise SqrtPriceMathRevert("sqrt_price and liquidity must be greater than 0")

        if zero_for_one:
            return cls.get_next_sqrt_price_from_amount_1_rounding_down(sqrt_price, liquidity, amount_out, False)
        return cls.get_next_sqrt_price_from_amount_0_rounding_up(sqrt_price, liquidity, amount_out, False)

    @classmethod
    def amount_0_delta(cls, sqrt_price_a: int, sqrt_price_b: int, liquidity: int, round_up: bool) -> int:
        """
        Unsigned amount of token 0 between two prices: liquidity * (sqrt_b - sqrt_a) / (sqrt_a * sqrt_b)
        """
        if sqrt_price_a > sqrt_price_b:
            sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a

        if sqrt_price_a <= 0:
            raise SqrtPriceMathRevert("sqrt_price_a must be greater than 0")

        numerator_1 = liquidity << SQRT_RESOLUTION
        numerator_2 = sqrt_price_b - sqrt_price_a

        try:
            if round_up:
                return cls.full_math.div_rounding_up(
                    cls.full_math.mul_div_rounding_up(numerator_1, numerator_2, sqrt_price_b),
                    sqrt_price_a,
                )
            return cls.full_math.mul_div(numerator_1, numerator_2, sqrt_price_b) // sqrt_price_a
        except FullMathRevert as exc:
            raise SqrtPriceMathRevert from exc

    @classmethod
    def amount_1_delta(cls, sqrt_price_a: int, sqrt_price_b: int, liquidity: int, round_up: bool) -> int:
        """
        Unsigned amount of token 1 between two prices: liquidity * (sqrt_b - sqrt_a)
        """
        if sqrt_price_a > sqrt_price_b:
            sqrt_price_a, sqrt_price_b = sqrt_price_b, sqrt_price_a

        try:
            if round_up:
                return cls.full_math.mul_div_rounding_up(liquidity, sqrt_price_b - sqrt_price_a, SQRT_Q96)
            return cls.full_math.mul_div(liquidity, sqrt_price_b - sqrt_price_a, SQRT_Q96)
        except FullMathRevert as exc:
            raise SqrtPriceMathRevert from exc

    @classmethod
    def get_amount_0_delta(cls, sqrt_price_a: int, sqrt_price_b: int, liquidity: int) -> int:
        """
        Signed token 0 delta for a liquidity change.  Adding liquidity rounds up (the depositor pays more),
        removing liquidity rounds down (the withdrawer receives less).

        :param sqrt_price_a:
        :param sqrt_price_b:
        :param liquidity: signed liquidity delta
        :return: signed token 0 amount
        """
        if liquidity < 0:
            return -overflow_check(cls.amount_0_delta(sqrt_price_a, sqrt_price_b, -liquidity, False), INT_256_MAX)
        return overflow_check(cls.amount_0_delta(sqrt_price_a, sqrt_price_b, liquidity, True), INT_256_MAX)

    @classmethod
    def get_amount_1_delta(cls, sqrt_price_a: int, sqrt_price_b: int, liquidity: int) -> int:
        """
        Signed token 1 delta for a liquidity change.  Rounds in the same direction as get_amount_0_delta

        :param sqrt_price_a:
        :param sqrt_price_b:
        :param liquidity: signed liquidity delta
        :return: signed token 1 amount
        """
        if liquidity < 0:
            return -overflow_check(cls.amount_1_delta(sqrt_price_a, sqrt_price_b, -liquidity, False), INT_256_MAX)
        return overflow_check(cls.amount_1_delta(sqrt_price_a, sqrt_price_b, liquidity, True), INT_256_MAX)
