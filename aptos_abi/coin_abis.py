# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
BCS-encoded ABIs of the framework coin entry functions.

Each string is one ``EntryABI`` (see :mod:`aptos_abi.abi`). When the framework
interface changes, regenerate the entries by BCS-encoding
``EntryABI(entry_function_abi(...))`` and hex-encoding the result.
"""

import unittest

from .abi import AbiRegistry, EntryABI, entry_function_abi

_CORE = "00" * 31 + "01"

COIN_ABIS = [
    # 0x1::coin::transfer<CoinType>(to: address, amount: u64)
    "01087472616e73666572"
    + _CORE
    + "04636f696e"
    + "00"
    + "0108436f696e54797065"
    + "02"
    + "02746f04"
    + "06616d6f756e7402",
    # 0x1::coin::register<CoinType>()
    "01087265676973746572"
    + _CORE
    + "04636f696e"
    + "00"
    + "0108436f696e54797065"
    + "00",
    # 0x1::aptos_account::transfer(to: address, amount: u64)
    "01087472616e73666572"
    + _CORE
    + "0d6170746f735f6163636f756e74"
    + "00"
    + "00"
    + "02"
    + "02746f04"
    + "06616d6f756e7402",
    # 0x1::aptos_account::transfer_coins<CoinType>(to: address, amount: u64)
    "010e7472616e736665725f636f696e73"
    + _CORE
    + "0d6170746f735f6163636f756e74"
    + "00"
    + "0108436f696e54797065"
    + "02"
    + "02746f04"
    + "06616d6f756e7402",
    # 0x1::aptos_account::batch_transfer(recipients: vector<address>, amounts: vector<u64>)
    "010e62617463685f7472616e73666572"
    + _CORE
    + "0d6170746f735f6163636f756e74"
    + "00"
    + "00"
    + "02"
    + "0a726563697069656e74730604"
    + "07616d6f756e74730602",
]


class Test(unittest.TestCase):
    def test_table_matches_declared_signatures(self):
        registry = AbiRegistry.from_hex(COIN_ABIS)
        expected = [
            entry_function_abi(
                "0x1::coin", "transfer", ["CoinType"], [("to", "address"), ("amount", "u64")]
            ),
            entry_function_abi("0x1::coin", "register", ["CoinType"], []),
            entry_function_abi(
                "0x1::aptos_account", "transfer", [], [("to", "address"), ("amount", "u64")]
            ),
            entry_function_abi(
                "0x1::aptos_account",
                "transfer_coins",
                ["CoinType"],
                [("to", "address"), ("amount", "u64")],
            ),
            entry_function_abi(
                "0x1::aptos_account",
                "batch_transfer",
                [],
                [("recipients", "vector<address>"), ("amounts", "vector<u64>")],
            ),
        ]
        self.assertEqual(list(registry), expected)
        for hex_abi, abi in zip(COIN_ABIS, expected):
            self.assertEqual(EntryABI(abi).to_bytes().hex(), hex_abi)


if __name__ == "__main__":
    unittest.main()
