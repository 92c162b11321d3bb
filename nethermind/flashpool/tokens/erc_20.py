import logging
from typing import Any

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from nethermind.flashpool.exceptions import InsufficientAllowance, InsufficientTokenBalance
from nethermind.flashpool.utils import ZERO_ADDRESS, random_address

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("tokens")


class ERC20Token:
    """
    In-memory ERC20 ledger.  Stands in for the external token contracts that the core settles against.  The
    core only ever observes balances through :meth:`balance_of` and moves tokens through :meth:`transfer` and
    :meth:`transfer_from`, so any object exposing those methods can be used in its place.

    Can be used to convert raw token amounts into human-readable amounts.
    """

    name: str
    """
        UTF-8 Name of the token
    """

    symbol: str
    """
        Token Symbol
    """

    decimals: int
    """
        Number of decimals used for display
    """

    address: ChecksumAddress
    """
        Checksum Address of the Token
    """

    balances: dict[ChecksumAddress, int]
    allowances: dict[tuple[ChecksumAddress, ChecksumAddress], int]

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = 18,
        address: ChecksumAddress | str | None = None,
    ) -> None:
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.address = to_checksum_address(address) if address else random_address()
        self.balances = {}
        self.allowances = {}

    def __repr__(self):
        return f"ERC20Token({self.symbol} @ {self.address})"

    @classmethod
    def from_dict(cls, token_params: dict[str, Any]) -> "ERC20Token":
        """
        Initialize ERC20Token from dictionary.  Dictionary must contain keys: name, symbol, decimals, and address.
        Balances are restored when present.

        :param dict token_params:
            Dictionary containing token parameters
        :return: :class:`~nethermind.flashpool.tokens.ERC20Token`
        """
        token = ERC20Token(
            name=token_params["name"],
            symbol=token_params["symbol"],
            decimals=token_params["decimals"],
            address=token_params["address"],
        )
        token.balances = {to_checksum_address(k): v for k, v in token_params.get("balances", {}).items()}
        return token

    def to_dict(self) -> dict[str, Any]:
        """
        Returns dictionary containing token parameters and balances.  Typically used for JSON encoding tokens
        """
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "address": self.address,
            "balances": dict(self.balances),
        }

    # -----------------------------------------------------------------------------------------------------------
    #  Ledger
    # -----------------------------------------------------------------------------------------------------------

    def balance_of(self, owner: str) -> int:
        """Returns the raw token balance of owner"""
        return self.balances.get(to_checksum_address(owner), 0)

    def allowance(self, owner: str, spender: str) -> int:
        """Returns the amount spender can transfer on behalf of owner"""
        return self.allowances.get((to_checksum_address(owner), to_checksum_address(spender)), 0)

    def mint(self, recipient: str, amount: int):
        """Creates new tokens for recipient"""
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        recipient = to_checksum_address(recipient)
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

    def approve(self, owner: str, spender: str, amount: int):
        """Sets the allowance of spender over the tokens of owner"""
        self.allowances[(to_checksum_address(owner), to_checksum_address(spender))] = amount

    def transfer(self, sender: str, recipient: str, amount: int):
        """
        Moves amount from sender to recipient.

        :raises InsufficientTokenBalance: if the sender balance is too low
        """
        sender, recipient = to_checksum_address(sender), to_checksum_address(recipient)
        if amount < 0:
            raise ValueError("Cannot transfer a negative amount")

        sender_balance = self.balances.get(sender, 0)
        if sender_balance < amount:
            raise InsufficientTokenBalance(
                f"{self.symbol}: {sender} balance {sender_balance} is less than transfer amount {amount}"
            )

        self.balances[sender] = sender_balance - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        logger.debug(f"{self.symbol} Transfer {sender} -> {recipient}: {amount}")

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int):
        """
        Moves amount from owner to recipient using the allowance granted to spender

        :raises InsufficientAllowance: if the allowance is too low
        """
        key = (to_checksum_address(owner), to_checksum_address(spender))
        allowed = self.allowances.get(key, 0)
        if allowed < amount:
            raise InsufficientAllowance(f"{self.symbol}: allowance {allowed} is less than transfer amount {amount}")

        self.transfer(owner, recipient, amount)
        self.allowances[key] = allowed - amount

    # -----------------------------------------------------------------------------------------------------------
    #  Journaling
    # -----------------------------------------------------------------------------------------------------------

    def snapshot(self) -> tuple[dict, dict]:
        """Returns a copy of the ledger state that can be passed to :meth:`restore`"""
        return dict(self.balances), dict(self.allowances)

    def restore(self, snapshot: tuple[dict, dict]):
        """Restores ledger state captured by :meth:`snapshot`"""
        self.balances, self.allowances = dict(snapshot[0]), dict(snapshot[1])

    # -----------------------------------------------------------------------------------------------------------
    #  Display
    # -----------------------------------------------------------------------------------------------------------

    def convert_decimals(self, raw_token_amount: int) -> float:
        """
        Divides raw token amounts by token decimals.

        :param int raw_token_amount:
            Raw token amount
        :return:
            Token amount adjusted by decimals
        """
        return raw_token_amount / 10**self.decimals

    def human_readable(self, raw_token_amount: int) -> str:
        """
        Converts raw token amount to human-readable string containing the correct decimals and the token symbol.

        :param raw_token_amount:
            raw token amount
        :return:
            Human-readable string containing token amount and symbol
        """

        return f"{self.convert_decimals(raw_token_amount)} {self.symbol}"


def native_token() -> ERC20Token:
    """Returns a fresh ledger for the chain native asset.  The native asset always lives at the zero address"""
    return ERC20Token(name="Ether", symbol="ETH", decimals=18, address=ZERO_ADDRESS)
