from .erc_20 import ERC20Token, native_token
