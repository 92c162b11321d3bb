from dataclasses import dataclass

from nethermind.flashpool.exceptions import InvalidTick, SqrtPriceMathRevert

MAX_TICK = 887272
MIN_TICK = -MAX_TICK
MAX_TICK_SPACING = 16384
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342
MIN_SQRT_RATIO = 4295128739
SQRT_RESOLUTION = 96
SQRT_Q96 = 0x1000000000000000000000000
Q128 = 0x100000000000000000000000000000000
FEE_DENOMINATOR = 1_000_000

UINT_128_MAX = 2**128 - 1
UINT_160_MAX = 2**160 - 1
UINT_256_MAX = 2**256 - 1
INT_128_MAX = 2**127 - 1
INT_128_MIN = -(2**127)
INT_256_MAX = 2**255 - 1
INT_256_MIN = -(2**255)

FEES_TO_TICK_SPACINGS = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}

TICK_SPACINGS_TO_FEES = {v: k for k, v in FEES_TO_TICK_SPACINGS.items()}


@dataclass(slots=True)
class SwapComputation:
    """Model to store the results of a swap computation"""

    sqrt_price_next: int
    amount_in: int
    amount_out: int
    fee_amount: int


def check_tick(tick: int):
    """
    Checks that a tick is within MIN_TICK and MAX_TICK.  Raises InvalidTick otherwise.

    :param tick:
    """
    if not MIN_TICK <= tick <= MAX_TICK:
        raise InvalidTick(f"Tick Index out of Bounds: {tick}")


def check_sqrt_price(sqrt_price: int):
    """
    Checks that sqrt_price is within MIN and MAX sqrt_price.

    :param sqrt_price:
    """
    if not MIN_SQRT_RATIO <= sqrt_price <= MAX_SQRT_RATIO:
        raise SqrtPriceMathRevert(f"Square Root Price Ratio out of Bounds: {sqrt_price}")


def get_max_liquidity_per_tick(tick_spacing: int) -> int:
    """
    Returns the maximum liquidity per tick.  This is calculated by dividing the UINT_128_MAX by the number of ticks
    that can exist in the range of ticks for a given tick spacing.

    :param tick_spacing:
    :return:
    """
    usable_ticks = MAX_TICK // tick_spacing
    number_of_ticks = 2 * usable_ticks + 1
    return UINT_128_MAX // number_of_ticks


def overflow_check(number: int, max_value: int) -> int:
    """
    Checks that a number is less than a max value.  Raises SqrtPriceMathRevert if it is not.

    :param number:
    :param max_value:
    :return: number
    """
    if number >= max_value:
        raise SqrtPriceMathRevert(f"{number} Overflowed Max Value of: {max_value}")

    return number
