import random
from typing import Literal

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

ZERO_ADDRESS: ChecksumAddress = to_checksum_address("0x0000000000000000000000000000000000000000")


def random_address() -> ChecksumAddress:
    """
    Generate a random 20 byte ChecksumAddress
    :return: ChecksumAddress
    """
    return to_checksum_address(random.randbytes(20).hex())


def address_to_int(address: str) -> int:
    """Returns the numeric value of a hex address.  Used to canonically order tokens"""
    return int(address, 16)


def uint_over_under_flow(value: int, precision: Literal[128, 160, 256]) -> int:
    """
    Handle uint over/underflow.  If value exceeds the max size of the uint, the value will overflow
    and start back at 0.  If value is less than 0, the value will underflow and start back at the max
    :param value: Number to check
    :param precision: bits of precision
    :return: within range uint
    """
    return value % (2**precision)


def pprint_address(address: str) -> str:
    """Shortens an address for table output, ie 0x1234...abcd"""
    return f"{address[:6]}...{address[-4:]}"
