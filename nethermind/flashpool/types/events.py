from eth_typing import ChecksumAddress
from pydantic import BaseModel, ConfigDict

from .core import PoolKey, PositionKey


class CoreEvent(BaseModel):
    """Base class for events emitted by the core.  Events are appended to Core.events in emission order"""

    model_config = ConfigDict(frozen=True)


class PoolInitialized(CoreEvent):
    pool_id: str
    pool_key: PoolKey
    tick: int
    sqrt_ratio: int


class ExtensionRegistered(CoreEvent):
    extension: ChecksumAddress
    call_points: int


class PositionUpdated(CoreEvent):
    locker: ChecksumAddress
    pool_id: str
    position_key: PositionKey
    liquidity_delta: int
    delta_0: int
    delta_1: int


class PositionFeesCollected(CoreEvent):
    pool_id: str
    position_key: PositionKey
    amount_0: int
    amount_1: int


class Swapped(CoreEvent):
    locker: ChecksumAddress
    pool_id: str
    delta_0: int
    delta_1: int
    sqrt_ratio_after: int
    tick_after: int
    liquidity_after: int


class FeesAccumulated(CoreEvent):
    pool_id: str
    amount_0: int
    amount_1: int


class ProtocolFeesAccrued(CoreEvent):
    pool_id: str
    token: ChecksumAddress
    amount: int


class SavedBalanceUpdated(CoreEvent):
    owner: ChecksumAddress
    tokens: tuple[ChecksumAddress, ...]
    salt: int
    deltas: tuple[int, ...]
