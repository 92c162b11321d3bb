import logging
import random
from pathlib import Path

import pytest
from eth_utils import to_checksum_address
from pytest import FixtureRequest

from nethermind.flashpool.core.main import Core
from nethermind.flashpool.tokens import ERC20Token
from nethermind.flashpool.utils import address_to_int

from .utils import PoolHarness, ScriptedLocker

STARTING_BALANCE = 10**40


@pytest.fixture(name="random_address")
def fixture_random_address():
    def _generate_random_address():
        return to_checksum_address(random.randbytes(20).hex())

    return _generate_random_address


@pytest.fixture(scope="function")
def debug_logger(request: FixtureRequest):
    log_filename = request.module.__name__.replace("tests.", "") + "." + request.function.__name__

    parent_dir = Path(__file__).parent
    log_file = parent_dir / "logs" / f"{log_filename}.log"
    log_file.parent.mkdir(exist_ok=True)

    formatter = logging.Formatter(
        "%(levelname)-8s | %(name)-36s | %(asctime)-15s | %(message)s \t\t (%(filename)s --> %(funcName)s)"
    )

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(formatter)

    logger = logging.getLogger("nethermind")
    logger.addHandler(file_handler)
    logger.setLevel(logging.DEBUG)

    logger.info("-" * 100)
    logger.info(f"\t\tInitializing New Run for Test: {request.function.__name__}")
    logger.info("-" * 100)

    yield logger
    logger.removeHandler(file_handler)
    file_handler.close()


@pytest.fixture(name="token_pair")
def fixture_token_pair():
    def _token_pair() -> tuple[ERC20Token, ERC20Token]:
        token_a = ERC20Token(name="Token A", symbol="TKA")
        token_b = ERC20Token(name="Token B", symbol="TKB")
        token0, token1 = sorted((token_a, token_b), key=lambda t: address_to_int(t.address))
        return token0, token1

    return _token_pair


@pytest.fixture(name="initialize_pool")
def fixture_initialize_pool(token_pair):
    def _initialize_pool(tick: int = 0, protocol_fee: int = 0, extension=None, **kwargs) -> PoolHarness:
        core = kwargs.pop("core", None) or Core(protocol_fee=protocol_fee)
        token0, token1 = token_pair()

        locker = ScriptedLocker(core)
        for token in (token0, token1):
            token.mint(locker.address, STARTING_BALANCE)
            core.track_token(token)

        if extension is not None:
            kwargs["extension"] = extension
        pool_key = core.create_pool_key(token0.address, token1.address, **kwargs)
        core.initialize_pool(pool_key, tick)

        return PoolHarness(core=core, token0=token0, token1=token1, pool_key=pool_key, locker=locker)

    return _initialize_pool
