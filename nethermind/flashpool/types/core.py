from dataclasses import dataclass, field
from typing import Any, Optional

from eth_abi import encode
from eth_typing import ChecksumAddress
from eth_utils import encode_hex, keccak, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from nethermind.flashpool.exceptions import InvalidTokens
from nethermind.flashpool.math import MAX_TICK_SPACING
from nethermind.flashpool.utils import ZERO_ADDRESS, address_to_int


class PoolKey(BaseModel):
    """
    Immutable identifier of a pool.  Two pool keys with the same fields always hash to the same pool id.
    """

    model_config = ConfigDict(frozen=True)

    token0: ChecksumAddress
    """ Token with the numerically smaller address """
    token1: ChecksumAddress
    """ Token with the numerically larger address """
    fee: int = Field(ge=0, lt=1_000_000)
    """
        The fee that is charged on the input amount of each swap, measured in hundredths of a bip (0.0001%).
        A 0.3% pool has a fee of 3000.
    """
    tick_spacing: int = Field(ge=1, le=MAX_TICK_SPACING)
    """ Positions can only be created on ticks that are multiples of the tick spacing """
    extension: ChecksumAddress = ZERO_ADDRESS
    """ Address of the extension observing this pool.  The zero address if the pool has no extension """

    @field_validator("token0", "token1", "extension", mode="before")
    @classmethod
    def _checksum(cls, value: str) -> ChecksumAddress:
        return to_checksum_address(value)

    @model_validator(mode="after")
    def _check_token_order(self) -> "PoolKey":
        if address_to_int(self.token0) >= address_to_int(self.token1):
            raise InvalidTokens(f"token0 {self.token0} must be less than token1 {self.token1}")
        return self

    @property
    def has_extension(self) -> bool:
        """True if an extension is attached to the pool"""
        return self.extension != ZERO_ADDRESS

    def to_id(self) -> str:
        """Returns the keccak hash of the abi encoded pool key as a 0x prefixed hex string"""
        return encode_hex(
            keccak(
                encode(
                    ["address", "address", "uint24", "int24", "address"],
                    [self.token0, self.token1, self.fee, self.tick_spacing, self.extension],
                )
            )
        )


class PositionKey(BaseModel):
    """
    Identifies a liquidity position inside a pool.  A position is owned exclusively by the (owner, salt) tuple,
    so one owner can hold several positions over the same bounds by using different salts.
    """

    model_config = ConfigDict(frozen=True)

    salt: int = Field(default=0, ge=0, lt=2**256)
    owner: Optional[ChecksumAddress] = None
    """ Filled with the current locker when omitted """
    tick_lower: int
    tick_upper: int

    @field_validator("owner", mode="before")
    @classmethod
    def _checksum(cls, value: str | None) -> ChecksumAddress | None:
        return to_checksum_address(value) if value is not None else None

    def with_owner(self, owner: ChecksumAddress) -> "PositionKey":
        """Returns a copy of the key owned by owner"""
        return self.model_copy(update={"owner": owner})

    def to_string(self) -> str:
        """Flat string encoding used when serializing positions to JSON"""
        return f"{self.owner}_{self.salt}_{self.tick_lower}_{self.tick_upper}"

    @classmethod
    def from_string(cls, value: str) -> "PositionKey":
        """Inverse of :meth:`to_string`"""
        owner, salt, tick_lower, tick_upper = value.split("_")
        return PositionKey(owner=owner, salt=int(salt), tick_lower=int(tick_lower), tick_upper=int(tick_upper))


class SwapParameters(BaseModel):
    """Parameters of a single swap against one pool"""

    model_config = ConfigDict(frozen=True)

    zero_for_one: bool
    """ If True, sell token 0 and buy token 1.  The price moves down """
    amount_specified: int
    """
        Raw token amount to swap.  If positive, this is the quantity of tokens to sell (exact input).  If negative,
        this is the quantity of tokens to buy (exact output).
    """
    sqrt_ratio_limit: Optional[int] = None
    """
        Price the swap cannot move past.  Defaults to the min/max sqrt ratio in the direction of the swap
    """
    skip_ahead: int = Field(default=0, ge=0)
    """
        Number of extra 256 tick bitmap words to scan in one step when searching for the next initialized tick.
        Higher values cost less loop iterations when the tick map is sparse.
    """
    allow_partial_fill: bool = False
    """
        If False, the swap raises NotEnoughLiquidity when it stops before the full amount was consumed
    """


# -----------------------------------------------------------------------------------------------------------
#  Mutable State
# -----------------------------------------------------------------------------------------------------------


@dataclass(slots=True)
class PoolState:
    """Stores the current price, tick, liquidity, and fee growths of an initialized pool"""

    sqrt_ratio: int
    """
        Current Exchange rate between token_0 and token_1.

        This value is represented as the square root of the ratio between token_1 and token_0, in a
        fixed point Q64.96 Number (64 bits of integer precision & 96 bits of fractional precision).
    """
    tick: int
    """ Greatest tick whose sqrt ratio is less than or equal to the current price """
    liquidity: int = 0
    """ Amount of active liquidity.  Changes when the price crosses an initialized tick """
    fee_growth_global_0: int = 0
    """ Token 0 fees earned per unit of liquidity since pool initialization, as a Q128.128 number """
    fee_growth_global_1: int = 0
    """ Token 1 fees earned per unit of liquidity since pool initialization, as a Q128.128 number """


@dataclass(slots=True)
class Tick:
    """Stores liquidity data and fee growth for each tick"""

    liquidity_gross: int = 0
    """
        Total liquidity owned by all positions that use this tick as an upper tick or a lower tick.
        Used to determine if it is okay to delete a tick when a position is removed.
    """
    liquidity_net: int = 0
    """
        Net liquidity to add/remove from the pool when a swap moves the price across tick boundaries.
        If price is moving up, add liquidity_net to current liquidity.
        If price is moving down, liquidity_net is subtracted from current liquidity.
    """
    fee_growth_outside_0: int = 0
    """ Token 0 fee growth on the other side of this tick, relative to the current tick """
    fee_growth_outside_1: int = 0
    """ Token 1 fee growth on the other side of this tick, relative to the current tick """


@dataclass(slots=True)
class Position:
    """
    Stores the current liquidity, fee growth snapshot, and fees owed for each position.
    """

    liquidity: int = 0
    fee_growth_inside_0_last: int = 0
    fee_growth_inside_1_last: int = 0
    tokens_owed_0: int = 0
    """ Token 0 fees accrued but not yet collected """
    tokens_owed_1: int = 0
    """ Token 1 fees accrued but not yet collected """
    extra_data: bytes = b""
    """ Opaque 32 byte field that extensions and periphery can attach to a position with liquidity """

    def is_empty(self) -> bool:
        """True when the position can be deleted from storage"""
        return self.liquidity == 0 and self.tokens_owed_0 == 0 and self.tokens_owed_1 == 0


@dataclass(slots=True)
class LockFrame:
    """
    A single frame of the lock stack.  Every frame tracks its own per token delta.  Positive deltas are owed
    to the core, negative deltas are owed to the locker.
    """

    id: int
    locker: ChecksumAddress
    debts: dict[ChecksumAddress, int] = field(default_factory=dict)
    handler: Any = field(default=None, repr=False, compare=False)
    """ Object receiving the locked, pay_callback and forwarded callbacks for this frame """

    def unsettled(self) -> dict[ChecksumAddress, int]:
        """Returns all tokens with a nonzero delta"""
        return {token: delta for token, delta in self.debts.items() if delta != 0}


@dataclass(slots=True)
class SwapState:
    """Model to store the pool state during swap execution"""

    amount_specified_remaining: int
    amount_calculated: int
    sqrt_price: int
    tick: int
    fee_growth_global: int
    protocol_fee: int
    liquidity: int


@dataclass(slots=True)
class SwapStep:
    """Model to store the results of a single swap step"""

    sqrt_price_start: int
    tick_next: int = 0
    initialized: bool = False
    sqrt_price_next: int = 0
    amount_in: int = 0
    amount_out: int = 0
    fee_amount: int = 0
