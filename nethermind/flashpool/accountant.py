import copy
import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from nethermind.flashpool.exceptions import (
    DeltaOverflow,
    InsufficientSavedBalance,
    InvalidTokens,
    NotLocked,
    PaymentOverflow,
    PayReentrance,
    SavedBalanceOverflow,
    UnsettledDebt,
)
from nethermind.flashpool.locker import Locker
from nethermind.flashpool.math import INT_256_MAX, INT_256_MIN, UINT_128_MAX
from nethermind.flashpool.tokens import ERC20Token, native_token
from nethermind.flashpool.types import LockFrame
from nethermind.flashpool.types.events import CoreEvent, SavedBalanceUpdated
from nethermind.flashpool.utils import address_to_int, random_address

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("accountant")


def atomic(method):
    """Decorator that reverts every write of method if it raises, including writes made by extension hooks"""

    def inner(ref, *args, **kwargs):
        with ref._journaled():  # pylint: disable=protected-access
            return method(ref, *args, **kwargs)

    inner.__name__, inner.__doc__ = method.__name__, method.__doc__
    return inner


class FlashAccountant:
    """
    Flash accounting ledger.  Callers open a lock, run arbitrary operations that accrue per token debts to
    the lock frame, and must settle every debt before the frame closes.

    The sign convention for frame debts is from the perspective of the core.  A positive debt is owed to the
    core by the locker, a negative debt is owed to the locker by the core.
    """

    address: ChecksumAddress
    native_token: ERC20Token

    saved_balances_map: dict[tuple, int]
    """ (owner, token, salt) -> saved amount """
    saved_pair_balances_map: dict[tuple, tuple[int, int]]
    """ (owner, token0, token1, salt) -> (saved amount 0, saved amount 1) """

    tokens: dict[ChecksumAddress, ERC20Token]
    """ Every token ledger the core has interacted with.  Used to roll back balances on failure """

    events: list[CoreEvent]

    _storage_fields: tuple[str, ...] = ("saved_balances_map", "saved_pair_balances_map")
    """ Attributes journaled by every lock frame and restored when the frame fails """

    def __init__(self, **kwargs):
        self.address = to_checksum_address(kwargs.get("address") or random_address())
        self.native_token = kwargs.get("native_token") or native_token()

        self.saved_balances_map = {}
        self.saved_pair_balances_map = {}
        self.tokens = {self.native_token.address: self.native_token}
        self.events = []

        self._lock_stack: list[LockFrame] = []
        self._payment_in_flight: int | None = None
        self._journals: list[dict[str, Any]] = []

    # -----------------------------------------------------------------------------------------------------------
    #  Lock Frames
    # -----------------------------------------------------------------------------------------------------------

    def lock(self, locker: Locker, data: Any = None) -> Any:
        """
        Opens a new lock frame and calls ``locker.locked(frame_id, data)``.  Every token delta accrued in the frame
        must be settled before the callback returns.

        Each frame journals core storage and the balances of every tracked token on entry.  If the callback raises,
        or the frame closes with unsettled debts, the writes made inside the frame are reverted before the exception
        propagates, so a caller that catches the failure of a nested lock never observes its partial state.

        :param locker: object implementing ``locked`` and ``pay_callback``
        :param data: arbitrary payload passed through to the callback
        :return: the value returned by the callback
        :raises UnsettledDebt: if the frame closes with a nonzero delta
        """
        frame = LockFrame(id=len(self._lock_stack), locker=to_checksum_address(locker.address), handler=locker)

        with self._journaled():
            self._lock_stack.append(frame)
            logger.debug(f"Opened Lock {frame.id} for {frame.locker}")
            try:
                result = locker.locked(frame.id, data)
                if unsettled := frame.unsettled():
                    raise UnsettledDebt(frame.id, unsettled)
            finally:
                self._lock_stack.pop()

        logger.debug(f"Closed Lock {frame.id} for {frame.locker}")
        return result

    def forward(self, to: Any, data: Any = None) -> Any:
        """
        Makes ``to`` the locker of the current frame for the duration of ``to.forwarded(frame_id, locker, data)``.
        Debts accrued while forwarded remain in the current frame.

        :param to: object implementing ``forwarded``
        :param data: arbitrary payload passed through to the callback
        :return: the value returned by the callback
        """
        frame = self.current_frame()
        original_locker, original_handler = frame.locker, frame.handler

        frame.locker, frame.handler = to_checksum_address(to.address), to
        logger.debug(f"Lock {frame.id} forwarded from {original_locker} to {frame.locker}")
        try:
            return to.forwarded(frame.id, original_locker, data)
        finally:
            frame.locker, frame.handler = original_locker, original_handler

    def current_frame(self) -> LockFrame:
        """
        Returns the innermost lock frame

        :raises NotLocked: if no lock is active
        """
        if not self._lock_stack:
            raise NotLocked("Operation requires an active lock")
        return self._lock_stack[-1]

    @property
    def current_locker(self) -> ChecksumAddress | None:
        """Address of the innermost locker, or None when no lock is active"""
        return self._lock_stack[-1].locker if self._lock_stack else None

    @property
    def lock_depth(self) -> int:
        return len(self._lock_stack)

    def get_debt(self, frame_id: int, token: str) -> int:
        """Returns the current delta of token in an open frame"""
        return self._lock_stack[frame_id].debts.get(to_checksum_address(token), 0)

    # -----------------------------------------------------------------------------------------------------------
    #  Payments
    # -----------------------------------------------------------------------------------------------------------

    def pay(self, token: ERC20Token) -> int:
        """
        Credits the current frame with the tokens the locker transfers to the core inside
        ``locker.pay_callback(frame_id, token)``.  The payment is measured as the balance increase of the core.

        :param token: token ledger to measure
        :return: amount credited to the frame
        :raises PayReentrance: if another payment callback is still executing
        """
        frame = self.current_frame()
        self._check_payment_not_in_flight(frame)
        self.track_token(token)

        self._payment_in_flight = frame.id
        try:
            balance_before = token.balance_of(self.address)
            frame.handler.pay_callback(frame.id, token)
            payment = token.balance_of(self.address) - balance_before
        finally:
            self._payment_in_flight = None

        return self._credit_payment(frame, token, payment)

    def pay_from(self, payer: str, token: ERC20Token, amount: int) -> int:
        """
        Pulls amount of token from payer using the allowance payer granted to the core, and credits the current
        frame with the observed balance increase.

        :param payer: address holding the tokens
        :param token: token ledger
        :param amount: raw token amount
        :return: amount credited to the frame
        """
        frame = self.current_frame()
        self._check_payment_not_in_flight(frame)
        self.track_token(token)

        self._payment_in_flight = frame.id
        try:
            balance_before = token.balance_of(self.address)
            token.transfer_from(spender=self.address, owner=payer, recipient=self.address, amount=amount)
            payment = token.balance_of(self.address) - balance_before
        finally:
            self._payment_in_flight = None

        return self._credit_payment(frame, token, payment)

    def receive(self, sender: str, amount: int) -> int:
        """
        Native asset sent to the core.  Only accepted while a lock is active, the value is credited to the
        current frame.

        :raises NotLocked: when called outside a lock
        """
        frame = self.current_frame()
        new_debt = self._checked_debt(frame, self.native_token.address, -amount)
        self.native_token.transfer(sender, self.address, amount)
        frame.debts[self.native_token.address] = new_debt
        return amount

    def withdraw(self, token: ERC20Token, recipient: str, amount: int):
        """
        Transfers amount of token from the core to recipient, and adds the amount to the debt of the current frame

        :raises DeltaOverflow: if amount is negative, larger than a uint128, or pushes the delta out of range
        """
        frame = self.current_frame()
        if not 0 <= amount <= UINT_128_MAX:
            raise DeltaOverflow(f"Withdrawal amount {amount} is outside of the uint128 range")

        self.track_token(token)
        new_debt = self._checked_debt(frame, token.address, amount)
        token.transfer(self.address, recipient, amount)
        frame.debts[token.address] = new_debt

    def withdraw_multiple(self, withdrawals: Iterable[tuple[ERC20Token, str, int]]):
        """Calls :meth:`withdraw` for every (token, recipient, amount) tuple"""
        for token, recipient, amount in withdrawals:
            self.withdraw(token, recipient, amount)

    # -----------------------------------------------------------------------------------------------------------
    #  Saved Balances
    # -----------------------------------------------------------------------------------------------------------

    def save(self, owner: str, token: str, salt: int, amount: int):
        """
        Moves amount from the current frame into the saved balance of (owner, token, salt).  The frame owes the
        saved amount, which must be paid or offset inside the same frame.

        :raises SavedBalanceOverflow: if the saved balance would exceed a uint128
        """
        self._update_saved_balances(to_checksum_address(owner), (token,), salt, (amount,))

    def load(self, token: str, salt: int, amount: int):
        """
        Moves amount from the saved balance of (current locker, token, salt) into the current frame

        :raises InsufficientSavedBalance: if the saved balance is lower than amount
        """
        owner = self.current_frame().locker
        self._update_saved_balances(owner, (token,), salt, (-amount,))

    def save_pair(self, owner: str, token0: str, token1: str, salt: int, amount0: int, amount1: int):
        """Saves two token amounts under a single key.  Tokens must be sorted"""
        self._update_saved_balances(to_checksum_address(owner), (token0, token1), salt, (amount0, amount1))

    def load_pair(self, token0: str, token1: str, salt: int, amount0: int, amount1: int):
        """Loads two token amounts from the pair saved by the current locker.  Tokens must be sorted"""
        owner = self.current_frame().locker
        self._update_saved_balances(owner, (token0, token1), salt, (-amount0, -amount1))

    def saved_balances(self, owner: str, token: str, salt: int = 0) -> int:
        """Returns the saved balance of (owner, token, salt)"""
        return self.saved_balances_map.get((to_checksum_address(owner), to_checksum_address(token), salt), 0)

    def saved_balances_pair(self, owner: str, token0: str, token1: str, salt: int = 0) -> tuple[int, int]:
        """Returns both saved balances of (owner, token0, token1, salt)"""
        key = (to_checksum_address(owner), to_checksum_address(token0), to_checksum_address(token1), salt)
        return self.saved_pair_balances_map.get(key, (0, 0))

    def _update_saved_balances(
        self,
        owner: ChecksumAddress,
        tokens: tuple[str, ...],
        salt: int,
        deltas: tuple[int, ...],
    ):
        frame = self.current_frame()
        tokens = tuple(to_checksum_address(t) for t in tokens)
        if len(tokens) == 2 and address_to_int(tokens[0]) >= address_to_int(tokens[1]):
            raise InvalidTokens(f"Saved pair tokens must be sorted: {tokens[0]} >= {tokens[1]}")

        if len(tokens) == 1:
            key = (owner, tokens[0], salt)
            current = (self.saved_balances_map.get(key, 0),)
        else:
            key = (owner, *tokens, salt)
            current = self.saved_pair_balances_map.get(key, (0, 0))

        updated = []
        for token, balance, delta in zip(tokens, current, deltas):
            if balance + delta < 0:
                raise InsufficientSavedBalance(
                    f"Saved balance of {token} for {owner} (salt {salt}) is {balance}, cannot load {-delta}"
                )
            if balance + delta > UINT_128_MAX:
                raise SavedBalanceOverflow(f"Saving {delta} {token} overflows the saved balance of {owner}")
            updated.append(balance + delta)

        # Validate every frame delta before writing anything
        new_debts = {}
        for token, delta in zip(tokens, deltas):
            new_debts[token] = self._checked_debt(frame, token, delta)

        if len(tokens) == 1:
            self.saved_balances_map[key] = updated[0]
        else:
            self.saved_pair_balances_map[key] = (updated[0], updated[1])
        frame.debts.update(new_debts)

        self._emit(SavedBalanceUpdated(owner=owner, tokens=tokens, salt=salt, deltas=tuple(deltas)))

    def _credit_saved_balance(self, owner: ChecksumAddress, token: ChecksumAddress, amount: int):
        """Increases a saved balance without touching frame debts.  Used to accrue protocol fees"""
        key = (owner, token, 0)
        balance = self.saved_balances_map.get(key, 0) + amount
        if balance > UINT_128_MAX:
            raise SavedBalanceOverflow(f"Saved balance of {token} for {owner} overflows a uint128")
        self.saved_balances_map[key] = balance

    # -----------------------------------------------------------------------------------------------------------
    #  Internal Accounting
    # -----------------------------------------------------------------------------------------------------------

    def track_token(self, token: ERC20Token):
        """Registers a token ledger so its balances are restored when an open lock frame fails"""
        if token.address in self.tokens:
            return
        self.tokens[token.address] = token
        for journal in self._journals:
            journal["tokens"][token.address] = token.snapshot()

    def account_debt(self, token: str, delta: int):
        """Adds delta to the debt of token in the current frame"""
        frame = self.current_frame()
        token = to_checksum_address(token)
        frame.debts[token] = self._checked_debt(frame, token, delta)

    @staticmethod
    def _checked_debt(frame: LockFrame, token: str, delta: int) -> int:
        debt = frame.debts.get(token, 0) + delta
        if not INT_256_MIN <= debt <= INT_256_MAX:
            raise DeltaOverflow(f"Delta of {token} in lock {frame.id} leaves the int256 range")
        return debt

    def _credit_payment(self, frame: LockFrame, token: ERC20Token, payment: int) -> int:
        if not 0 <= payment <= UINT_128_MAX:
            raise PaymentOverflow(f"Payment of {payment} {token.symbol} is outside of the uint128 range")

        frame.debts[token.address] = self._checked_debt(frame, token.address, -payment)
        logger.debug(f"Lock {frame.id} paid {payment} {token.symbol}")
        return payment

    def _check_payment_not_in_flight(self, frame: LockFrame):
        if self._payment_in_flight is not None:
            raise PayReentrance(
                f"Lock {frame.id} cannot pay while the payment callback of lock {self._payment_in_flight} is running"
            )

    def _emit(self, event: CoreEvent):
        self.events.append(event)
        logger.debug(f"Emitted {event!r}")

    # -----------------------------------------------------------------------------------------------------------
    #  Journaling
    # -----------------------------------------------------------------------------------------------------------

    @contextmanager
    def _journaled(self) -> Iterator[None]:
        """Reverts core storage, tracked token balances and emitted events if the wrapped block raises"""
        journal = self._snapshot()
        self._journals.append(journal)
        try:
            yield
        except Exception:
            logger.debug(f"Reverting writes of journal {len(self._journals) - 1}")
            self._restore(journal)
            raise
        finally:
            self._journals.pop()

    def _snapshot(self) -> dict[str, Any]:
        return {
            "storage": {name: copy.deepcopy(getattr(self, name)) for name in self._storage_fields},
            "tokens": {address: token.snapshot() for address, token in self.tokens.items()},
            "debts": [dict(frame.debts) for frame in self._lock_stack],
            "event_count": len(self.events),
        }

    def _restore(self, snapshot: dict[str, Any]):
        for name, value in snapshot["storage"].items():
            setattr(self, name, value)
        for address, token_snapshot in snapshot["tokens"].items():
            self.tokens[address].restore(token_snapshot)
        for frame, debts in zip(self._lock_stack, snapshot["debts"]):
            frame.debts = debts
        del self.events[snapshot["event_count"] :]
