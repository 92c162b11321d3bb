class CoreRevert(Exception):
    """
    Base class for every error raised by the core.  A CoreRevert is raised wherever the on-chain
    implementation would revert.  Every lock frame the error escapes restores the core
    storage and token balances it saw on entry before re-raising.
    """


# -----------------------------------------------------------------------------------------------------------
#  Ledger Integrity
# -----------------------------------------------------------------------------------------------------------


class LedgerIntegrityRevert(CoreRevert):
    """
    Raised when the sequence of ledger calls is invalid.  These errors are never retried, the caller must
    restructure its call sequence.
    """


class NotLocked(LedgerIntegrityRevert):
    """Raised when an operation that requires an active lock is called outside of one"""


class PayReentrance(LedgerIntegrityRevert):
    """
    Raised when pay() or pay_from() is called while a payment callback is already in flight.  Allowing the
    nested payment would let two frames claim the same balance increase.
    """


class UnsettledDebt(LedgerIntegrityRevert):
    """
    Raised when a lock frame unwinds while one or more tokens still carry a nonzero delta
    """

    def __init__(self, frame_id: int, debts: dict[str, int]):
        self.frame_id = frame_id
        self.debts = debts
        super().__init__(f"Lock {frame_id} has unsettled debts: {debts}")


class PaymentOverflow(LedgerIntegrityRevert):
    """Raised when a single payment exceeds the uint128 range"""


# -----------------------------------------------------------------------------------------------------------
#  Arithmetic Bounds
# -----------------------------------------------------------------------------------------------------------


class ArithmeticBoundsRevert(CoreRevert):
    """Raised when checked arithmetic leaves its representable range"""


class LiquidityOverflow(ArithmeticBoundsRevert):
    """
    Raised when position liquidity exceeds uint128, or when the gross liquidity referencing a tick exceeds
    the max liquidity per tick of the pool
    """


class LiquidityUnderflow(ArithmeticBoundsRevert):
    """Raised when removing more liquidity than a position owns"""


class DepositOverflow(ArithmeticBoundsRevert):
    """Raised when the token amounts of a liquidity update do not fit in an int128"""


class DeltaOverflow(ArithmeticBoundsRevert):
    """Raised when a frame delta leaves the int256 range, or a withdrawal amount is out of range"""


class InsufficientSavedBalance(ArithmeticBoundsRevert):
    """Raised when loading more than the saved balance"""


class SavedBalanceOverflow(ArithmeticBoundsRevert):
    """Raised when a save would push a saved balance past uint128"""


# -----------------------------------------------------------------------------------------------------------
#  Registration & State
# -----------------------------------------------------------------------------------------------------------


class RegistrationRevert(CoreRevert):
    """Raised when pools or extensions are registered out of order"""


class PoolAlreadyInitialized(RegistrationRevert):
    """Raised when initializing a pool key that already has state"""


class PoolNotInitialized(RegistrationRevert):
    """Raised when operating on a pool key that was never initialized"""


class ExtensionAlreadyRegistered(RegistrationRevert):
    """Raised when an extension address is registered twice"""


class FailedRegisterInvalidCallPoints(RegistrationRevert):
    """
    Raised when the call points declared at registration are empty, or do not match the call points encoded
    in the top byte of the extension address
    """


class ExtensionNotRegistered(RegistrationRevert):
    """Raised when a pool key references an extension that has not been registered"""


# -----------------------------------------------------------------------------------------------------------
#  Swaps
# -----------------------------------------------------------------------------------------------------------


class SwapRevert(CoreRevert):
    """Raised when a swap cannot be executed with the supplied parameters"""


class NotEnoughLiquidity(SwapRevert):
    """
    Raised when a swap stops before consuming the full specified amount and partial fills were not allowed.
    Can be retried with allow_partial_fill=True or a smaller amount.
    """


class InvalidSqrtRatioLimit(SwapRevert):
    """Raised when the sqrt ratio limit is out of bounds or on the wrong side of the current price"""


class InvalidSwapAmount(SwapRevert):
    """Raised when swapping a zero amount"""


# -----------------------------------------------------------------------------------------------------------
#  Input Validation
# -----------------------------------------------------------------------------------------------------------


class InvalidTokens(CoreRevert):
    """Raised when token0 is not strictly less than token1"""


class InvalidTick(CoreRevert):
    """Raised when a tick is outside of MIN_TICK and MAX_TICK"""


class InvalidTickBounds(CoreRevert):
    """
    Raised when position bounds are not ordered, are out of range, or are not multiples of the tick spacing
    """


class InvalidPositionOwner(CoreRevert):
    """Raised when a locker tries to modify a position owned by another address"""


class PositionNotFound(CoreRevert):
    """Raised when setting extra data on a position without liquidity"""


class NotExtension(CoreRevert):
    """Raised when an extension only method is called by something other than the pool extension"""


class InsufficientTokenBalance(CoreRevert):
    """Raised by the token ledger when a transfer exceeds the sender balance"""


class InsufficientAllowance(CoreRevert):
    """Raised by the token ledger when transfer_from exceeds the approved allowance"""


# -----------------------------------------------------------------------------------------------------------
#  Math
# -----------------------------------------------------------------------------------------------------------


class FullMathRevert(Exception):
    """
    Raised when the result of (a * b) / c overflows the maximum value of a uint256, or c is zero.
    """


class TickMathRevert(Exception):
    """
    Raised when a tick value is out of bounds, or a sqrt_price exceeds the maximum sqrt_price
    """


class SqrtPriceMathRevert(Exception):
    """
    Raised when a sqrt_price value is out of bounds, or the inputs to a price calculation are
    invalid, ie swapping with zero liquidity or moving the price past zero
    """
