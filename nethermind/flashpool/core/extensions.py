import logging
import random
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from pydantic import BaseModel, ConfigDict

from nethermind.flashpool.exceptions import (
    ExtensionAlreadyRegistered,
    ExtensionNotRegistered,
    FailedRegisterInvalidCallPoints,
)
from nethermind.flashpool.locker import BaseLocker
from nethermind.flashpool.types import PoolKey, PositionKey, SwapParameters

if TYPE_CHECKING:
    from nethermind.flashpool.core.main import Core

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("extensions")


class CallPoint(Enum):
    """Bit of each hook inside the call point byte.  The byte is stored in the top byte of the extension address"""

    BEFORE_INITIALIZE_POOL = 1 << 0
    AFTER_INITIALIZE_POOL = 1 << 1
    BEFORE_SWAP = 1 << 2
    AFTER_SWAP = 1 << 3
    BEFORE_UPDATE_POSITION = 1 << 4
    AFTER_UPDATE_POSITION = 1 << 5
    BEFORE_COLLECT_FEES = 1 << 6
    AFTER_COLLECT_FEES = 1 << 7


class CallPoints(BaseModel):
    """Set of hooks an extension wants the core to call"""

    model_config = ConfigDict(frozen=True)

    before_initialize_pool: bool = False
    after_initialize_pool: bool = False
    before_swap: bool = False
    after_swap: bool = False
    before_update_position: bool = False
    after_update_position: bool = False
    before_collect_fees: bool = False
    after_collect_fees: bool = False

    def to_byte(self) -> int:
        """Packs the call points into a single byte"""
        return sum(point.value for point in CallPoint if getattr(self, point.name.lower()))

    @classmethod
    def from_byte(cls, value: int) -> "CallPoints":
        if not 0 <= value <= 0xFF:
            raise ValueError(f"Call points must fit in a single byte, got {value}")
        return cls(**{point.name.lower(): bool(value & point.value) for point in CallPoint})

    @classmethod
    def from_address(cls, address: str) -> "CallPoints":
        """Decodes the call points stored in the top byte of an extension address"""
        return cls.from_byte(int(address, 16) >> 152)

    def is_valid(self) -> bool:
        """Call points are valid if at least one hook is enabled"""
        return self.to_byte() != 0


def mine_extension_address(call_points: CallPoints) -> ChecksumAddress:
    """
    Generates a random address whose top byte encodes the call points

    :param call_points: hooks the extension enables
    :return: ChecksumAddress
    """
    return to_checksum_address("0x" + (bytes([call_points.to_byte()]) + random.randbytes(19)).hex())


class BaseExtension(BaseLocker):
    """
    Base class for extensions.  Every hook is a no-op.  Subclasses override the hooks enabled in their call points.

    Extensions are lockers, so they can open locks on the core themselves, ie to call
    :meth:`~nethermind.flashpool.core.main.Core.accumulate_as_fees`.  Hooks are not called for operations the
    extension performs while it is the locker.
    """

    call_points: CallPoints

    def __init__(self, core: "Core", call_points: CallPoints, address: Optional[str] = None):
        super().__init__(core, address or mine_extension_address(call_points))
        self.call_points = call_points

    def register(self):
        """Registers the extension with the core"""
        self.core.register_extension(self, self.call_points)

    def before_initialize_pool(self, caller: ChecksumAddress, pool_key: PoolKey, tick: int):
        pass

    def after_initialize_pool(self, caller: ChecksumAddress, pool_key: PoolKey, tick: int, sqrt_ratio: int):
        pass

    def before_swap(self, locker: ChecksumAddress, pool_key: PoolKey, params: SwapParameters) -> SwapParameters | None:
        """May return replacement swap parameters.  Returning None keeps the parameters"""
        return None

    def after_swap(
        self,
        locker: ChecksumAddress,
        pool_key: PoolKey,
        params: SwapParameters,
        delta_0: int,
        delta_1: int,
    ):
        pass

    def before_update_position(
        self,
        locker: ChecksumAddress,
        pool_key: PoolKey,
        position_key: PositionKey,
        liquidity_delta: int,
    ) -> int | None:
        """May return a replacement liquidity delta.  Returning None keeps the delta"""
        return None

    def after_update_position(
        self,
        locker: ChecksumAddress,
        pool_key: PoolKey,
        position_key: PositionKey,
        liquidity_delta: int,
        delta_0: int,
        delta_1: int,
    ):
        pass

    def before_collect_fees(self, locker: ChecksumAddress, pool_key: PoolKey, position_key: PositionKey):
        pass

    def after_collect_fees(
        self,
        locker: ChecksumAddress,
        pool_key: PoolKey,
        position_key: PositionKey,
        amount_0: int,
        amount_1: int,
    ):
        pass


class ExtensionRegistry:
    """
    Registration table of extensions.  Maps the extension address to its call points, and to the object whose
    hooks are invoked.
    """

    call_points: dict[ChecksumAddress, int]
    handlers: dict[ChecksumAddress, Any]

    def __init__(self):
        self.call_points = {}
        self.handlers = {}

    def __deepcopy__(self, memo):
        # Handlers are live objects and are shared between copies
        registry = ExtensionRegistry()
        registry.call_points = dict(self.call_points)
        registry.handlers = dict(self.handlers)
        return registry

    def register(self, extension: Any, call_points: CallPoints) -> ChecksumAddress:
        """
        :raises FailedRegisterInvalidCallPoints: if call_points are empty or do not match the extension address
        :raises ExtensionAlreadyRegistered: if the address was already registered
        """
        address = to_checksum_address(extension.address)
        if not call_points.is_valid() or call_points != CallPoints.from_address(address):
            raise FailedRegisterInvalidCallPoints(
                f"Call points {call_points.to_byte():#04x} do not match the call points encoded in {address}"
            )
        if address in self.call_points:
            raise ExtensionAlreadyRegistered(f"Extension {address} is already registered")

        self.call_points[address] = call_points.to_byte()
        self.handlers[address] = extension
        logger.info(f"Registered Extension {address} with call points {call_points.to_byte():#010b}")
        return address

    def is_registered(self, address: str) -> bool:
        return to_checksum_address(address) in self.call_points

    def require_registered(self, address: str):
        if not self.is_registered(address):
            raise ExtensionNotRegistered(f"Extension {address} is not registered")

    def get_call_points(self, address: str) -> CallPoints:
        return CallPoints.from_byte(self.call_points.get(to_checksum_address(address), 0))

    def dispatch(self, pool_key: PoolKey, point: CallPoint, caller: Optional[str], *args) -> Any:
        """
        Calls the hook of the pool extension if the extension enabled it, and the caller is not the extension
        itself.  Exceptions raised by the hook propagate unchanged.

        :param pool_key: pool the operation targets
        :param point: hook to call
        :param caller: address of the current locker, or the initializer for pool initialization
        :return: value returned by the hook, or None if the hook was not called
        """
        if not pool_key.has_extension or caller == pool_key.extension:
            return None

        call_points = self.call_points.get(pool_key.extension, 0)
        if not call_points & point.value:
            return None

        handler = self.handlers.get(pool_key.extension)
        if handler is None:
            raise ExtensionNotRegistered(f"No handler is attached to extension {pool_key.extension}")

        logger.debug(f"Calling {point.name.lower()} on extension {pool_key.extension}")
        return getattr(handler, point.name.lower())(caller, pool_key, *args)
