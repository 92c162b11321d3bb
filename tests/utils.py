from dataclasses import dataclass
from math import isqrt
from typing import Any, Callable

from nethermind.flashpool.core.main import Core
from nethermind.flashpool.locker import BaseLocker
from nethermind.flashpool.math import MAX_TICK, MIN_TICK
from nethermind.flashpool.tokens import ERC20Token
from nethermind.flashpool.types import PoolKey, PositionKey, SwapParameters


def expand_to_decimals(num: int, decimals: int = 18) -> int:
    return (10**decimals) * num


def uint_max(bits: int) -> int:
    return 2**bits - 1


def encode_sqrt_price(reserve_1: int, reserve_0: int) -> int:
    """Returns sqrt(reserve_1 / reserve_0) as a Q64.96 number, rounded down"""
    return isqrt((reserve_1 << 192) // reserve_0)


def get_min_tick(tick_spacing: int) -> int:
    return -(-MIN_TICK // tick_spacing) * tick_spacing


def get_max_tick(tick_spacing: int) -> int:
    return (MAX_TICK // tick_spacing) * tick_spacing


class ScriptedLocker(BaseLocker):
    """Locker that runs the callable passed as lock data.  Used to script operations inside a lock"""

    def locked(self, frame_id: int, data: Callable[[int], Any]) -> Any:
        return data(frame_id)

    def forwarded(self, frame_id: int, original_locker: str, data: Callable[[int, str], Any]) -> Any:
        return data(frame_id, original_locker)


def settle(locker: BaseLocker, frame_id: int, *tokens: ERC20Token):
    """Pays every positive debt of the frame, and withdraws every negative debt to the locker"""
    core = locker.core
    for token in tokens:
        debt = core.get_debt(frame_id, token.address)
        if debt > 0:
            locker.pay(token, debt)
        elif debt < 0:
            core.withdraw(token, locker.address, -debt)


@dataclass
class PoolHarness:
    """Core with one initialized pool and a funded locker"""

    core: Core
    token0: ERC20Token
    token1: ERC20Token
    pool_key: PoolKey
    locker: ScriptedLocker

    @property
    def pool_id(self) -> str:
        return self.pool_key.to_id()

    @property
    def tokens(self) -> tuple[ERC20Token, ERC20Token]:
        return self.token0, self.token1

    def update_position(self, tick_lower: int, tick_upper: int, liquidity_delta: int, salt: int = 0):
        def _update(frame_id):
            amounts = self.core.update_position(
                self.pool_key,
                PositionKey(salt=salt, tick_lower=tick_lower, tick_upper=tick_upper),
                liquidity_delta,
            )
            settle(self.locker, frame_id, *self.tokens)
            return amounts

        return self.locker.lock(_update)

    def mint(self, tick_lower: int, tick_upper: int, liquidity: int, salt: int = 0) -> tuple[int, int]:
        return self.update_position(tick_lower, tick_upper, liquidity, salt)

    def burn(self, tick_lower: int, tick_upper: int, liquidity: int, salt: int = 0) -> tuple[int, int]:
        return self.update_position(tick_lower, tick_upper, -liquidity, salt)

    def swap(self, zero_for_one: bool, amount_specified: int, **kwargs) -> tuple[int, int]:
        params = SwapParameters(zero_for_one=zero_for_one, amount_specified=amount_specified, **kwargs)

        def _swap(frame_id):
            amounts = self.core.swap(self.pool_key, params)
            settle(self.locker, frame_id, *self.tokens)
            return amounts

        return self.locker.lock(_swap)

    def collect_fees(self, tick_lower: int, tick_upper: int, salt: int = 0) -> tuple[int, int]:
        def _collect(frame_id):
            fees = self.core.collect_fees(self.pool_key, salt, tick_lower, tick_upper)
            settle(self.locker, frame_id, *self.tokens)
            return fees

        return self.locker.lock(_collect)

    def position(self, tick_lower: int, tick_upper: int, salt: int = 0):
        return self.core.get_position(
            self.pool_id,
            PositionKey(salt=salt, owner=self.locker.address, tick_lower=tick_lower, tick_upper=tick_upper),
        )
