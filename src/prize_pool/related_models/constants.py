UINT256_DIGITS = 78
TX_HASH_LENGTH = 66
ADDRESS_LENGTH = 42

BASIS_POINTS = 10_000
