import logging
from typing import TYPE_CHECKING, Any, Optional, Protocol

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from nethermind.flashpool.tokens import ERC20Token
from nethermind.flashpool.utils import random_address

if TYPE_CHECKING:
    from nethermind.flashpool.accountant import FlashAccountant

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("locker")


class Locker(Protocol):
    """Interface of the objects that can open a lock on the core"""

    address: ChecksumAddress

    def locked(self, frame_id: int, data: Any) -> Any:
        ...

    def pay_callback(self, frame_id: int, token: ERC20Token) -> None:
        ...


class BaseLocker:
    """
    Convenience base class for lockers.  Subclasses implement :meth:`locked`, and settle their debts with
    :meth:`pay`, which transfers tokens held by the locker (or an approved payer) inside the payment callback.
    """

    address: ChecksumAddress
    core: "FlashAccountant"

    def __init__(self, core: "FlashAccountant", address: Optional[str] = None):
        self.core = core
        self.address = to_checksum_address(address) if address else random_address()
        self._pending_payment: tuple[ERC20Token, int, ChecksumAddress] | None = None

    def __repr__(self):
        return f"{self.__class__.__name__}({self.address})"

    def lock(self, data: Any = None) -> Any:
        """Opens a lock on the core with this object as the locker"""
        return self.core.lock(self, data)

    def locked(self, frame_id: int, data: Any) -> Any:
        raise NotImplementedError

    def forwarded(self, frame_id: int, original_locker: ChecksumAddress, data: Any) -> Any:
        raise NotImplementedError

    def pay(self, token: ERC20Token, amount: int, payer: Optional[str] = None) -> int:
        """
        Pays amount of token to the core through the payment callback

        :param token: token ledger
        :param amount: raw token amount to transfer
        :param payer: address the tokens are transferred from.  Defaults to the locker address
        :return: amount credited by the core
        """
        self._pending_payment = (token, amount, to_checksum_address(payer) if payer else self.address)
        try:
            return self.core.pay(token)
        finally:
            self._pending_payment = None

    def pay_callback(self, frame_id: int, token: ERC20Token):
        if self._pending_payment is None:
            logger.debug(f"Lock {frame_id}: pay callback for {token.symbol} without a pending payment")
            return

        pending_token, amount, payer = self._pending_payment
        if pending_token.address != token.address:
            raise ValueError(f"Pending payment is in {pending_token.symbol}, core requested {token.symbol}")
        token.transfer(payer, self.core.address, amount)
