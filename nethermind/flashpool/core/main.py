import json
import logging
from dataclasses import asdict, replace
from typing import Any, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from nethermind.flashpool.accountant import FlashAccountant, atomic
from nethermind.flashpool.exceptions import (
    DepositOverflow,
    InvalidPositionOwner,
    InvalidSqrtRatioLimit,
    InvalidSwapAmount,
    LiquidityOverflow,
    LiquidityUnderflow,
    NotEnoughLiquidity,
    NotExtension,
    PoolAlreadyInitialized,
    PoolNotInitialized,
    PositionNotFound,
)
from nethermind.flashpool.math import (
    FEE_DENOMINATOR,
    INT_128_MAX,
    INT_128_MIN,
    UINT_128_MAX,
    CoreMath,
)
from nethermind.flashpool.tick_bitmap import TickBitmap
from nethermind.flashpool.tokens import ERC20Token
from nethermind.flashpool.types import (
    PoolKey,
    PoolState,
    Position,
    PositionKey,
    SwapParameters,
    SwapState,
    SwapStep,
    Tick,
)
from nethermind.flashpool.types.events import (
    ExtensionRegistered,
    FeesAccumulated,
    PoolInitialized,
    PositionFeesCollected,
    PositionUpdated,
    ProtocolFeesAccrued,
    Swapped,
)
from nethermind.flashpool.utils import (
    ZERO_ADDRESS,
    address_to_int,
    random_address,
    uint_over_under_flow,
)

from .extensions import CallPoint, CallPoints, ExtensionRegistry

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("core")


class Core(FlashAccountant):
    """
    Singleton concentrated liquidity core.  Every pool lives inside the core, and every token movement is settled
    through the flash accounting ledger of :class:`~nethermind.flashpool.accountant.FlashAccountant`.

    Pool, tick and position state can only be modified inside of a lock, with the exception of
    :meth:`initialize_pool`.

    .. code-block:: python

        core = Core(protocol_fee=100_000)
        pool_key = core.create_pool_key(usdc.address, weth.address, fee=3000)
        core.initialize_pool(pool_key, tick=0)

    """

    math = CoreMath

    owner: ChecksumAddress
    """ Recipient of protocol fees.  Protocol fees are saved under (owner, token, salt 0) """
    protocol_fee: int
    """ Share of every swap fee that is kept by the protocol, in hundredths of a bip """

    pools: dict[str, PoolState]
    pool_keys: dict[str, PoolKey]
    ticks: dict[str, dict[int, Tick]]
    tick_bitmaps: dict[str, TickBitmap]
    positions: dict[str, dict[PositionKey, Position]]
    extension_registry: ExtensionRegistry

    _storage_fields = FlashAccountant._storage_fields + (
        "pools",
        "pool_keys",
        "ticks",
        "tick_bitmaps",
        "positions",
        "extension_registry",
    )

    def __init__(self, **kwargs):
        """
        Initialize an empty core.

        :key address: address of the core.  Defaults to a random address
        :key owner: protocol fee recipient.  Defaults to a random address
        :key protocol_fee: share of swap fees paid to the protocol in hundredths of a bip.  Defaults to 0
        :key native_token: :class:`~nethermind.flashpool.tokens.ERC20Token` ledger of the native asset
        """
        super().__init__(**kwargs)

        self.owner = to_checksum_address(kwargs.get("owner") or random_address())
        self.protocol_fee = kwargs.get("protocol_fee", 0)
        if not 0 <= self.protocol_fee < FEE_DENOMINATOR:
            raise ValueError(f"Protocol fee must be between 0 and {FEE_DENOMINATOR}, got {self.protocol_fee}")

        self.pools = {}
        self.pool_keys = {}
        self.ticks = {}
        self.tick_bitmaps = {}
        self.positions = {}
        self.extension_registry = ExtensionRegistry()

    def __repr__(self):
        return f"Core({self.address}, pools={len(self.pools)}, protocol_fee={self.protocol_fee})"

    @classmethod
    def create_pool_key(
        cls,
        token_a: str,
        token_b: str,
        extension: str = ZERO_ADDRESS,
        **kwargs,
    ) -> PoolKey:
        """
        Sorts the tokens and builds a pool key.  If fee or tick_spacing are omitted, the standard pairing of fees
        and tick spacings is used.

        :param token_a: address of either token
        :param token_b: address of the other token
        :param extension: extension address.  Defaults to no extension
        :key fee: swap fee in hundredths of a bip
        :key tick_spacing: tick spacing of the pool
        """
        fee, tick_spacing = cls.math.get_fee_and_spacing(kwargs)
        token0, token1 = sorted((token_a, token_b), key=address_to_int)
        return PoolKey(token0=token0, token1=token1, fee=fee, tick_spacing=tick_spacing, extension=extension)

    # -----------------------------------------------------------------------------------------------------------
    #  Pool Registry
    # -----------------------------------------------------------------------------------------------------------

    def register_extension(self, extension: Any, call_points: CallPoints):
        """
        Registers an extension.  The call points must be non-empty and equal to the call points encoded in the
        top byte of the extension address.

        :param extension: object implementing the enabled hooks, with an ``address`` attribute
        :param call_points: :class:`~nethermind.flashpool.core.extensions.CallPoints`
        """
        address = self.extension_registry.register(extension, call_points)
        self._emit(ExtensionRegistered(extension=address, call_points=call_points.to_byte()))

    @atomic
    def initialize_pool(self, pool_key: PoolKey, tick: int) -> int:
        """
        Initializes a pool at the price of the given tick.

        :param pool_key: :class:`~nethermind.flashpool.types.PoolKey`
        :param tick: starting tick
        :return: starting sqrt ratio
        """
        if pool_key.has_extension:
            self.extension_registry.require_registered(pool_key.extension)
        self.math.check_tick(tick)

        caller = self.current_locker or ZERO_ADDRESS
        self.extension_registry.dispatch(pool_key, CallPoint.BEFORE_INITIALIZE_POOL, caller, tick)

        pool_id = pool_key.to_id()
        if pool_id in self.pools:
            raise PoolAlreadyInitialized(f"Pool {pool_id} is already initialized")

        sqrt_ratio = self.math.tick_math.get_sqrt_ratio_at_tick(tick)
        self.pools[pool_id] = PoolState(sqrt_ratio=sqrt_ratio, tick=tick)
        self.pool_keys[pool_id] = pool_key
        self.ticks[pool_id] = {}
        self.tick_bitmaps[pool_id] = TickBitmap(pool_key.tick_spacing)
        self.positions[pool_id] = {}

        logger.info(f"Initialized Pool {pool_id} at tick {tick}")
        self._emit(PoolInitialized(pool_id=pool_id, pool_key=pool_key, tick=tick, sqrt_ratio=sqrt_ratio))

        self.extension_registry.dispatch(pool_key, CallPoint.AFTER_INITIALIZE_POOL, caller, tick, sqrt_ratio)
        return sqrt_ratio

    def pool_state(self, pool: PoolKey | str) -> PoolState:
        """
        Returns a copy of the state of an initialized pool

        :param pool: pool key or pool id
        :raises PoolNotInitialized:
        """
        return replace(self._get_pool(pool.to_id() if isinstance(pool, PoolKey) else pool))

    def _get_pool(self, pool_id: str) -> PoolState:
        try:
            return self.pools[pool_id]
        except KeyError as exc:
            raise PoolNotInitialized(f"Pool {pool_id} is not initialized") from exc

    # -----------------------------------------------------------------------------------------------------------
    #  Positions
    # -----------------------------------------------------------------------------------------------------------

    @atomic
    def update_position(
        self,
        pool_key: PoolKey,
        position_key: PositionKey,
        liquidity_delta: int,
    ) -> tuple[int, int]:
        """
        Adds or removes liquidity from a position owned by the current locker.

        Adding liquidity rounds the token amounts up, removing liquidity rounds the token amounts down.  Fees earned
        since the last update are moved into the tokens owed of the position.

        :param pool_key: :class:`~nethermind.flashpool.types.PoolKey`
        :param position_key:
            :class:`~nethermind.flashpool.types.PositionKey`.  If the owner is omitted, the current locker is used
        :param liquidity_delta: signed liquidity change
        :return: (amount_0, amount_1).  Positive amounts are owed to the core, negative amounts to the locker
        """
        frame = self.current_frame()
        position_key = self._resolve_position_key(position_key, frame.locker)

        pool_id = pool_key.to_id()
        self._get_pool(pool_id)

        replaced = self.extension_registry.dispatch(
            pool_key, CallPoint.BEFORE_UPDATE_POSITION, frame.locker, position_key, liquidity_delta
        )
        if replaced is not None:
            logger.debug(f"Extension replaced liquidity delta {liquidity_delta} with {replaced}")
            liquidity_delta = replaced

        tick_lower, tick_upper = position_key.tick_lower, position_key.tick_upper
        self.math.check_ticks(tick_lower, tick_upper, pool_key.tick_spacing)

        state = self._get_pool(pool_id)
        ticks = self.ticks[pool_id]
        position = self.positions[pool_id].get(position_key, Position())

        liquidity_next = position.liquidity + liquidity_delta
        if liquidity_next < 0:
            raise LiquidityUnderflow(
                f"Cannot remove {-liquidity_delta} liquidity from position with {position.liquidity}"
            )
        if liquidity_next > UINT_128_MAX:
            raise LiquidityOverflow(f"Position liquidity {liquidity_next} overflows a uint128")

        max_liquidity = self.math.get_max_liquidity_per_tick(pool_key.tick_spacing)
        for tick in (tick_lower, tick_upper):
            gross_after = ticks.get(tick, Tick()).liquidity_gross + liquidity_delta
            if gross_after > max_liquidity:
                raise LiquidityOverflow(
                    f"Tick {tick} liquidity ({gross_after}) overflows max liquidity ({max_liquidity})"
                )

        amount_0, amount_1 = self._get_amounts_for_liquidity_delta(state, tick_lower, tick_upper, liquidity_delta)
        if not (INT_128_MIN <= amount_0 <= INT_128_MAX and INT_128_MIN <= amount_1 <= INT_128_MAX):
            raise DepositOverflow(f"Liquidity delta {liquidity_delta} requires amounts ({amount_0}, {amount_1})")

        self._checked_debt(frame, pool_key.token0, amount_0)
        self._checked_debt(frame, pool_key.token1, amount_1)

        # All checks passed, write state
        flipped_lower, flipped_upper = False, False
        if liquidity_delta != 0:
            flipped_lower = self._update_tick(pool_id, tick_lower, liquidity_delta, upper=False)
            flipped_upper = self._update_tick(pool_id, tick_upper, liquidity_delta, upper=True)

        fee_growth_inside_0, fee_growth_inside_1 = self._get_fee_growth_inside(pool_id, tick_lower, tick_upper)
        self._update_position_info(position, liquidity_delta, fee_growth_inside_0, fee_growth_inside_1)

        if tick_lower <= state.tick < tick_upper:
            state.liquidity += liquidity_delta

        if liquidity_delta < 0:
            if flipped_lower:
                self._clear_tick(pool_id, tick_lower)
            if flipped_upper:
                self._clear_tick(pool_id, tick_upper)

        self._set_position(pool_id, position_key, position)

        self.account_debt(pool_key.token0, amount_0)
        self.account_debt(pool_key.token1, amount_1)

        logger.debug(
            f"Updated Position {position_key.to_string()} in {pool_id}: liquidity delta {liquidity_delta}, "
            f"amount_0 {amount_0}, amount_1 {amount_1}"
        )
        self._emit(
            PositionUpdated(
                locker=frame.locker,
                pool_id=pool_id,
                position_key=position_key,
                liquidity_delta=liquidity_delta,
                delta_0=amount_0,
                delta_1=amount_1,
            )
        )

        self.extension_registry.dispatch(
            pool_key,
            CallPoint.AFTER_UPDATE_POSITION,
            frame.locker,
            position_key,
            liquidity_delta,
            amount_0,
            amount_1,
        )
        return amount_0, amount_1

    @atomic
    def collect_fees(self, pool_key: PoolKey, salt: int, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        """
        Pays out the fees owed to a position of the current locker.  The fees are owed to the locker by the frame,
        and can be withdrawn or saved.

        :return: (fees_0, fees_1)
        """
        frame = self.current_frame()
        position_key = PositionKey(salt=salt, owner=frame.locker, tick_lower=tick_lower, tick_upper=tick_upper)

        pool_id = pool_key.to_id()
        self._get_pool(pool_id)

        self.extension_registry.dispatch(pool_key, CallPoint.BEFORE_COLLECT_FEES, frame.locker, position_key)

        position = self.positions[pool_id].get(position_key)
        if position is None:
            amount_0, amount_1 = 0, 0
        else:
            if position.liquidity > 0:
                fee_growth_inside_0, fee_growth_inside_1 = self._get_fee_growth_inside(pool_id, tick_lower, tick_upper)
                self._update_position_info(position, 0, fee_growth_inside_0, fee_growth_inside_1)

            amount_0, amount_1 = position.tokens_owed_0, position.tokens_owed_1
            self._checked_debt(frame, pool_key.token0, -amount_0)
            self._checked_debt(frame, pool_key.token1, -amount_1)

            position.tokens_owed_0, position.tokens_owed_1 = 0, 0
            self._set_position(pool_id, position_key, position)

            self.account_debt(pool_key.token0, -amount_0)
            self.account_debt(pool_key.token1, -amount_1)

        self._emit(
            PositionFeesCollected(pool_id=pool_id, position_key=position_key, amount_0=amount_0, amount_1=amount_1)
        )

        self.extension_registry.dispatch(
            pool_key, CallPoint.AFTER_COLLECT_FEES, frame.locker, position_key, amount_0, amount_1
        )
        return amount_0, amount_1

    @atomic
    def set_position_extra_data(self, pool_id: str, position_key: PositionKey, data: bytes):
        """
        Attaches up to 32 bytes of data to a position of the current locker.  The position must have liquidity.

        :raises PositionNotFound: if the position has no liquidity
        """
        frame = self.current_frame()
        position_key = self._resolve_position_key(position_key, frame.locker)

        if len(data) > 32:
            raise ValueError(f"Position extra data is limited to 32 bytes, got {len(data)}")

        position = self.positions.get(pool_id, {}).get(position_key)
        if position is None or position.liquidity == 0:
            raise PositionNotFound(f"Position {position_key.to_string()} has no liquidity in pool {pool_id}")

        position.extra_data = bytes(data)

    @atomic
    def accumulate_as_fees(self, pool_key: PoolKey, amount_0: int, amount_1: int):
        """
        Distributes tokens to the in range liquidity of a pool as swap fees.  Only the extension of the pool can
        call this method, while it is the locker.  The amounts are owed to the core by the current frame.

        :raises NotExtension: if the current locker is not the pool extension
        """
        frame = self.current_frame()
        if not pool_key.has_extension or frame.locker != pool_key.extension:
            raise NotExtension(f"Only the extension of the pool can accumulate fees, locker is {frame.locker}")

        for amount in (amount_0, amount_1):
            if not 0 <= amount <= UINT_128_MAX:
                raise DepositOverflow(f"Fee amount {amount} is outside of the uint128 range")

        pool_id = pool_key.to_id()
        state = self._get_pool(pool_id)

        self._checked_debt(frame, pool_key.token0, amount_0)
        self._checked_debt(frame, pool_key.token1, amount_1)

        if state.liquidity > 0:
            state.fee_growth_global_0 = uint_over_under_flow(
                state.fee_growth_global_0 + self.math.full_math.mul_div(amount_0, self.math.Q128, state.liquidity),
                256,
            )
            state.fee_growth_global_1 = uint_over_under_flow(
                state.fee_growth_global_1 + self.math.full_math.mul_div(amount_1, self.math.Q128, state.liquidity),
                256,
            )

        self.account_debt(pool_key.token0, amount_0)
        self.account_debt(pool_key.token1, amount_1)
        self._emit(FeesAccumulated(pool_id=pool_id, amount_0=amount_0, amount_1=amount_1))

    # -----------------------------------------------------------------------------------------------------------
    #  Swaps
    # -----------------------------------------------------------------------------------------------------------

    # pylint: disable=too-many-locals,too-many-branches,too-many-statements
    @atomic
    def swap(self, pool_key: PoolKey, params: SwapParameters) -> tuple[int, int]:
        """
        Swaps tokens against a pool.

        :param pool_key: :class:`~nethermind.flashpool.types.PoolKey`
        :param params: :class:`~nethermind.flashpool.types.SwapParameters`
        :return: (amount_in, amount_out).  The amounts are applied to the debts of the current frame
        :raises NotEnoughLiquidity: if the swap stops before the full amount is consumed and partial fills are
            not allowed
        """
        frame = self.current_frame()
        pool_id = pool_key.to_id()
        self._get_pool(pool_id)

        replaced = self.extension_registry.dispatch(pool_key, CallPoint.BEFORE_SWAP, frame.locker, params)
        if replaced is not None:
            logger.debug(f"Extension replaced swap parameters {params} with {replaced}")
            params = replaced

        pool = self._get_pool(pool_id)
        zero_for_one, amount_specified = params.zero_for_one, params.amount_specified
        sqrt_ratio_limit = self._check_swap_parameters(pool, params)

        logger.debug(f"------ Swapping Token {0 if zero_for_one else 1} for Token {1 if zero_for_one else 0} -------")
        logger.debug(f"Swap Amount: {amount_specified}\tSqrt Ratio Limit: {sqrt_ratio_limit}")

        exact_input = amount_specified > 0
        bitmap = self.tick_bitmaps[pool_id]
        state = SwapState(
            amount_specified_remaining=amount_specified,
            amount_calculated=0,
            sqrt_price=pool.sqrt_ratio,
            tick=pool.tick,
            fee_growth_global=pool.fee_growth_global_0 if zero_for_one else pool.fee_growth_global_1,
            protocol_fee=0,
            liquidity=pool.liquidity,
        )
        crossed: list[tuple[int, int, int]] = []

        while state.amount_specified_remaining != 0 and state.sqrt_price != sqrt_ratio_limit:
            logger.debug(f"----- Swap Step -----\tActive Liquidity: {state.liquidity}\tCurrent Tick: {state.tick}")

            step = SwapStep(sqrt_price_start=state.sqrt_price)
            step.tick_next, step.initialized = bitmap.next_initialized_tick(state.tick, zero_for_one, params.skip_ahead)

            step.tick_next = max(step.tick_next, self.math.MIN_TICK)
            step.tick_next = min(step.tick_next, self.math.MAX_TICK)

            step.sqrt_price_next = self.math.tick_math.get_sqrt_ratio_at_tick(step.tick_next)
            sqrt_price_target = (
                sqrt_ratio_limit
                if (
                    step.sqrt_price_next < sqrt_ratio_limit if zero_for_one else step.sqrt_price_next > sqrt_ratio_limit
                )
                else step.sqrt_price_next
            )

            computed_swap_step = self.math.compute_swap_step(
                state.sqrt_price,
                sqrt_price_target,
                state.liquidity,
                state.amount_specified_remaining,
                pool_key.fee,
            )
            logger.debug(f"Computed Swap Step: {computed_swap_step}")

            state.sqrt_price, step.amount_in, step.amount_out, step.fee_amount = (
                computed_swap_step.sqrt_price_next,
                computed_swap_step.amount_in,
                computed_swap_step.amount_out,
                computed_swap_step.fee_amount,
            )

            if exact_input:
                state.amount_specified_remaining -= step.amount_in + step.fee_amount
                state.amount_calculated -= step.amount_out
            else:
                state.amount_specified_remaining += step.amount_out
                state.amount_calculated += step.amount_in + step.fee_amount

            if self.protocol_fee > 0:
                delta = step.fee_amount * self.protocol_fee // FEE_DENOMINATOR
                step.fee_amount -= delta
                state.protocol_fee += delta

            if state.liquidity > 0:
                state.fee_growth_global = uint_over_under_flow(
                    state.fee_growth_global
                    + self.math.full_math.mul_div(step.fee_amount, self.math.Q128, state.liquidity),
                    256,
                )

            if state.sqrt_price == step.sqrt_price_next:
                if step.initialized:
                    # Fee growth outside is flipped once the swap is known to succeed
                    liquidity_net = self.ticks[pool_id][step.tick_next].liquidity_net
                    crossed.append(
                        (
                            step.tick_next,
                            state.fee_growth_global if zero_for_one else pool.fee_growth_global_0,
                            pool.fee_growth_global_1 if zero_for_one else state.fee_growth_global,
                        )
                    )
                    logger.debug(
                        f"Crossing Tick {step.tick_next} & Adding Liquidity: "
                        f"{(-1 if zero_for_one else 1) * liquidity_net}"
                    )
                    state.liquidity += -liquidity_net if zero_for_one else liquidity_net

                state.tick = step.tick_next - 1 if zero_for_one else step.tick_next

            elif state.sqrt_price != step.sqrt_price_start:
                state.tick = self.math.tick_math.get_tick_at_sqrt_ratio(state.sqrt_price)

        if state.amount_specified_remaining != 0 and not params.allow_partial_fill:
            raise NotEnoughLiquidity(
                f"Swap stopped at sqrt ratio {state.sqrt_price} with {state.amount_specified_remaining} remaining"
            )

        if zero_for_one == exact_input:
            amount_0, amount_1 = amount_specified - state.amount_specified_remaining, state.amount_calculated
        else:
            amount_0, amount_1 = state.amount_calculated, amount_specified - state.amount_specified_remaining

        input_token = pool_key.token0 if zero_for_one else pool_key.token1
        self._checked_debt(frame, pool_key.token0, amount_0)
        self._checked_debt(frame, pool_key.token1, amount_1)

        for tick, fee_growth_global_0, fee_growth_global_1 in crossed:
            self._cross_tick(pool_id, tick, fee_growth_global_0, fee_growth_global_1)

        pool.sqrt_ratio, pool.tick, pool.liquidity = state.sqrt_price, state.tick, state.liquidity
        if zero_for_one:
            pool.fee_growth_global_0 = state.fee_growth_global
        else:
            pool.fee_growth_global_1 = state.fee_growth_global

        if state.protocol_fee > 0:
            self._credit_saved_balance(self.owner, input_token, state.protocol_fee)
            self._emit(ProtocolFeesAccrued(pool_id=pool_id, token=input_token, amount=state.protocol_fee))

        self.account_debt(pool_key.token0, amount_0)
        self.account_debt(pool_key.token1, amount_1)

        logger.debug("--- Swap Complete ---")
        logger.debug(f"Token 0 Delta: {amount_0} \t Token 1 Delta: {amount_1}")
        logger.debug(f"Current Tick: {pool.tick}\tCurrent Sqrt Price: {pool.sqrt_ratio}\tLiquidity: {pool.liquidity}")

        self._emit(
            Swapped(
                locker=frame.locker,
                pool_id=pool_id,
                delta_0=amount_0,
                delta_1=amount_1,
                sqrt_ratio_after=pool.sqrt_ratio,
                tick_after=pool.tick,
                liquidity_after=pool.liquidity,
            )
        )
        self.extension_registry.dispatch(pool_key, CallPoint.AFTER_SWAP, frame.locker, params, amount_0, amount_1)

        if zero_for_one:
            return amount_0, -amount_1
        return amount_1, -amount_0

    # pylint: enable=too-many-locals,too-many-branches,too-many-statements

    def _check_swap_parameters(self, pool: PoolState, params: SwapParameters) -> int:
        """Validates swap parameters and returns the effective sqrt ratio limit"""
        if params.amount_specified == 0:
            raise InvalidSwapAmount("Cannot swap 0 tokens")
        if not INT_128_MIN <= params.amount_specified <= INT_128_MAX:
            raise InvalidSwapAmount(f"Swap amount {params.amount_specified} is outside of the int128 range")

        limit = params.sqrt_ratio_limit
        if params.zero_for_one:
            limit = self.math.MIN_SQRT_RATIO + 1 if limit is None else limit
            if limit >= pool.sqrt_ratio:
                raise InvalidSqrtRatioLimit("sqrt_ratio_limit above current price, cannot swap 0 for 1")
            if limit <= self.math.MIN_SQRT_RATIO:
                raise InvalidSqrtRatioLimit("sqrt_ratio_limit too low")
        else:
            limit = self.math.MAX_SQRT_RATIO - 1 if limit is None else limit
            if limit <= pool.sqrt_ratio:
                raise InvalidSqrtRatioLimit("sqrt_ratio_limit below current price, cannot swap 1 for 0")
            if limit >= self.math.MAX_SQRT_RATIO:
                raise InvalidSqrtRatioLimit("sqrt_ratio_limit too high")
        return limit

    # -----------------------------------------------------------------------------------------------------------
    #  Views
    # -----------------------------------------------------------------------------------------------------------

    def get_position(self, pool_id: str, position_key: PositionKey) -> Position:
        """Returns a copy of a position.  Unknown positions are returned empty"""
        if position_key.owner is None:
            raise InvalidPositionOwner("Position key must name an owner to query a position")
        return replace(self.positions.get(pool_id, {}).get(position_key, Position()))

    def get_tick(self, pool_id: str, tick: int) -> Tick:
        """Returns a copy of the data stored for a tick.  Uninitialized ticks are returned empty"""
        return replace(self.ticks.get(pool_id, {}).get(tick, Tick()))

    def get_pool_fees_per_liquidity_inside(
        self,
        pool_key: PoolKey,
        tick_lower: int,
        tick_upper: int,
    ) -> tuple[int, int]:
        """
        Returns the fee growth per unit of liquidity inside a tick range, as Q128.128 numbers

        :return: (fee_growth_inside_0, fee_growth_inside_1)
        """
        pool_id = pool_key.to_id()
        self._get_pool(pool_id)
        return self._get_fee_growth_inside(pool_id, tick_lower, tick_upper)

    # -----------------------------------------------------------------------------------------------------------
    #  Caching Core State
    # -----------------------------------------------------------------------------------------------------------

    def save_state(self, file_path):
        """
        Saves pools, ticks, positions, saved balances, token ledgers and the extension table to a JSON file.
        Extension objects are not serialized, only their call points.

        :param file_path: open file handle for the JSON save location
        """
        logger.info("Json Encoding Core State")

        core_state_dict = {
            "address": self.address,
            "owner": self.owner,
            "protocol_fee": self.protocol_fee,
            "pools": {
                pool_id: {
                    "pool_key": self.pool_keys[pool_id].model_dump(),
                    "state": asdict(state),
                    "ticks": {index: asdict(self.ticks[pool_id][index]) for index in sorted(self.ticks[pool_id])},
                    "positions": {
                        key.to_string(): {**asdict(position), "extra_data": position.extra_data.hex()}
                        for key, position in self.positions[pool_id].items()
                    },
                }
                for pool_id, state in self.pools.items()
            },
            "extensions": dict(self.extension_registry.call_points),
            "saved_balances": [[*key, amount] for key, amount in self.saved_balances_map.items()],
            "saved_pair_balances": [[*key, *amounts] for key, amounts in self.saved_pair_balances_map.items()],
            "tokens": [token.to_dict() for token in self.tokens.values()],
        }
        json.dump(core_state_dict, file_path)
        logger.info("Core State Saved")

    @classmethod
    def load_state(cls, file_path, extensions: Optional[list[Any]] = None) -> "Core":
        """
        Loads a core from a JSON File generated by the :meth:`save_state` method

        :param file_path: open file handle of the JSON File
        :param extensions: extension objects to reattach to the registered extension addresses
        :return: :class:`Core`
        """
        core_params = json.load(file_path)

        tokens = [ERC20Token.from_dict(token) for token in core_params["tokens"]]
        native = next((token for token in tokens if token.address == ZERO_ADDRESS), None)

        core = Core(
            address=core_params["address"],
            owner=core_params["owner"],
            protocol_fee=core_params["protocol_fee"],
            native_token=native,
        )
        for token in tokens:
            core.track_token(token)

        for pool_id, pool_params in core_params["pools"].items():
            pool_key = PoolKey(**pool_params["pool_key"])
            core.pools[pool_id] = PoolState(**pool_params["state"])
            core.pool_keys[pool_id] = pool_key
            core.ticks[pool_id] = {int(index): Tick(**tick) for index, tick in pool_params["ticks"].items()}
            core.tick_bitmaps[pool_id] = TickBitmap(pool_key.tick_spacing)
            for index in core.ticks[pool_id]:
                core.tick_bitmaps[pool_id].flip_tick(index)
            core.positions[pool_id] = {
                PositionKey.from_string(key): Position(
                    **{**position, "extra_data": bytes.fromhex(position["extra_data"])}
                )
                for key, position in pool_params["positions"].items()
            }

        handlers = {to_checksum_address(ext.address): ext for ext in extensions or []}
        for address, call_points in core_params["extensions"].items():
            core.extension_registry.call_points[address] = call_points
            if address in handlers:
                core.extension_registry.handlers[address] = handlers[address]

        for owner, token, salt, amount in core_params["saved_balances"]:
            core.saved_balances_map[(owner, token, salt)] = amount
        for owner, token0, token1, salt, amount0, amount1 in core_params["saved_pair_balances"]:
            core.saved_pair_balances_map[(owner, token0, token1, salt)] = (amount0, amount1)

        logger.info(f"Loaded Core {core.address} with {len(core.pools)} pools")
        return core

    # -----------------------------------------------------------------------------------------------------------
    # Internal Liquidity Methods
    # -----------------------------------------------------------------------------------------------------------

    def _resolve_position_key(self, position_key: PositionKey, locker: ChecksumAddress) -> PositionKey:
        if position_key.owner is None:
            return position_key.with_owner(locker)
        if position_key.owner != locker:
            raise InvalidPositionOwner(f"Locker {locker} cannot modify position owned by {position_key.owner}")
        return position_key

    def _get_amounts_for_liquidity_delta(
        self,
        state: PoolState,
        tick_lower: int,
        tick_upper: int,
        liquidity_delta: int,
    ) -> tuple[int, int]:
        if liquidity_delta == 0:
            return 0, 0

        sqrt_ratio_lower = self.math.tick_math.get_sqrt_ratio_at_tick(tick_lower)
        sqrt_ratio_upper = self.math.tick_math.get_sqrt_ratio_at_tick(tick_upper)

        if state.tick < tick_lower:
            return self.math.get_amount_0_delta(sqrt_ratio_lower, sqrt_ratio_upper, liquidity_delta), 0
        if state.tick < tick_upper:
            return (
                self.math.get_amount_0_delta(state.sqrt_ratio, sqrt_ratio_upper, liquidity_delta),
                self.math.get_amount_1_delta(sqrt_ratio_lower, state.sqrt_ratio, liquidity_delta),
            )
        return 0, self.math.get_amount_1_delta(sqrt_ratio_lower, sqrt_ratio_upper, liquidity_delta)

    def _update_tick(self, pool_id: str, tick: int, liquidity_delta: int, upper: bool) -> bool:
        """Updates the liquidity of a tick and returns True if the tick was initialized or cleared"""
        state = self.pools[pool_id]
        tick_info = self.ticks[pool_id].get(tick, Tick())

        liquidity_gross_before = tick_info.liquidity_gross
        liquidity_gross_after = liquidity_gross_before + liquidity_delta

        flipped = (liquidity_gross_before == 0) != (liquidity_gross_after == 0)

        if liquidity_gross_before == 0 and tick <= state.tick:
            # By convention, all growth before a tick was initialized happened below it
            tick_info.fee_growth_outside_0 = state.fee_growth_global_0
            tick_info.fee_growth_outside_1 = state.fee_growth_global_1

        tick_info.liquidity_gross = liquidity_gross_after
        tick_info.liquidity_net += -liquidity_delta if upper else liquidity_delta

        self.ticks[pool_id][tick] = tick_info
        if flipped:
            self.tick_bitmaps[pool_id].flip_tick(tick)

        return flipped

    def _clear_tick(self, pool_id: str, tick: int):
        self.ticks[pool_id].pop(tick)

    def _cross_tick(self, pool_id: str, tick: int, fee_growth_global_0: int, fee_growth_global_1: int) -> int:
        tick_info = self.ticks[pool_id][tick]

        tick_info.fee_growth_outside_0 = uint_over_under_flow(fee_growth_global_0 - tick_info.fee_growth_outside_0, 256)
        tick_info.fee_growth_outside_1 = uint_over_under_flow(fee_growth_global_1 - tick_info.fee_growth_outside_1, 256)

        return tick_info.liquidity_net

    def _get_fee_growth_inside(self, pool_id: str, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        state = self.pools[pool_id]
        tick_lower_data = self.ticks[pool_id].get(tick_lower, Tick())
        tick_upper_data = self.ticks[pool_id].get(tick_upper, Tick())

        if state.tick >= tick_lower:
            fee_growth_below_0 = tick_lower_data.fee_growth_outside_0
            fee_growth_below_1 = tick_lower_data.fee_growth_outside_1
        else:
            fee_growth_below_0 = state.fee_growth_global_0 - tick_lower_data.fee_growth_outside_0
            fee_growth_below_1 = state.fee_growth_global_1 - tick_lower_data.fee_growth_outside_1

        if state.tick < tick_upper:
            fee_growth_above_0 = tick_upper_data.fee_growth_outside_0
            fee_growth_above_1 = tick_upper_data.fee_growth_outside_1
        else:
            fee_growth_above_0 = state.fee_growth_global_0 - tick_upper_data.fee_growth_outside_0
            fee_growth_above_1 = state.fee_growth_global_1 - tick_upper_data.fee_growth_outside_1

        # Fee growth is allowed to overflow and underflow, only differences are meaningful
        return (
            uint_over_under_flow(state.fee_growth_global_0 - fee_growth_below_0 - fee_growth_above_0, 256),
            uint_over_under_flow(state.fee_growth_global_1 - fee_growth_below_1 - fee_growth_above_1, 256),
        )

    def _update_position_info(
        self,
        position: Position,
        liquidity_delta: int,
        fee_growth_inside_0: int,
        fee_growth_inside_1: int,
    ):
        token_0_delta = uint_over_under_flow(fee_growth_inside_0 - position.fee_growth_inside_0_last, 256)
        token_1_delta = uint_over_under_flow(fee_growth_inside_1 - position.fee_growth_inside_1_last, 256)

        tokens_owed_0 = self.math.full_math.mul_div(token_0_delta, position.liquidity, self.math.Q128)
        tokens_owed_1 = self.math.full_math.mul_div(token_1_delta, position.liquidity, self.math.Q128)

        logger.debug(
            f"Calculating Tokens Owed.  Liquidity Delta: {liquidity_delta}, "
            f"Tokens Owed 0: {tokens_owed_0}, Tokens Owed 1: {tokens_owed_1}"
        )

        position.liquidity += liquidity_delta
        position.fee_growth_inside_0_last = fee_growth_inside_0
        position.fee_growth_inside_1_last = fee_growth_inside_1
        position.tokens_owed_0 = min(position.tokens_owed_0 + tokens_owed_0, UINT_128_MAX)
        position.tokens_owed_1 = min(position.tokens_owed_1 + tokens_owed_1, UINT_128_MAX)

    def _set_position(self, pool_id: str, position_key: PositionKey, position: Position):
        if position.is_empty():
            self.positions[pool_id].pop(position_key, None)
        else:
            self.positions[pool_id][position_key] = position
