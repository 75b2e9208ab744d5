# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Command-line access to type-tag parsing, transfer encoding and balance lookup.

Supported Commands:
- parse-type-tag: Print the canonical form and BCS bytes of a type tag
- encode-transfer: Print the BCS bytes of a ``0x1::coin::transfer`` payload
- balance: Print an account's balance of a coin

Examples:
    ::

        python -m aptos_abi.cli parse-type-tag --type-tag "0x01::coin::CoinStore<0x1::aptos_coin::AptosCoin>"
        python -m aptos_abi.cli encode-transfer --recipient 0xb0b --amount 1000
        python -m aptos_abi.cli balance --account 0xb0b \
            --rest-api https://fullnode.devnet.aptoslabs.com/v1
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import io
import sys
import unittest
from typing import List

from .account_address import AccountAddress
from .async_client import RestClient
from .coin_client import APTOS_COIN_RAW, CoinClient
from .type_tag import parse_type_tag


def parse_type_tag_command(type_tag: str):
    tag = parse_type_tag(type_tag)
    print(tag)
    print(tag.to_bytes().hex())


def encode_transfer(recipient: AccountAddress, amount: int, coin_type: str):
    payload = CoinClient().transfer_payload(recipient, amount, coin_type)
    print(payload)
    print(payload.to_bytes().hex())


async def balance(account: AccountAddress, rest_api: str, coin_type: str):
    rest_client = RestClient(rest_api)
    try:
        print(await CoinClient(rest_client).check_balance(account, coin_type))
    finally:
        await rest_client.close()


async def main(args: List[str]):
    parser = argparse.ArgumentParser(description="Aptos ABI tools")
    parser.add_argument(
        "command",
        type=str,
        help="The command to execute",
        choices=["parse-type-tag", "encode-transfer", "balance"],
    )
    parser.add_argument("--type-tag", help="A Move type, e.g. vector<u8>", type=str)
    parser.add_argument(
        "--account",
        help="The account whose balance to read",
        type=AccountAddress.from_str_relaxed,
    )
    parser.add_argument(
        "--recipient",
        help="The account receiving the coins",
        type=AccountAddress.from_str_relaxed,
    )
    parser.add_argument("--amount", help="Amount in the coin's smallest unit", type=int)
    parser.add_argument(
        "--coin-type",
        help="The coin to transfer or read",
        type=str,
        default=APTOS_COIN_RAW,
    )
    parser.add_argument(
        "--rest-api",
        help="Aptos REST API endpoint URL (e.g., https://fullnode.devnet.aptoslabs.com/v1)",
        type=str,
    )
    parsed_args = parser.parse_args(args)

    if parsed_args.command == "parse-type-tag":
        if parsed_args.type_tag is None:
            parser.error("Missing required argument '--type-tag'")
        parse_type_tag_command(parsed_args.type_tag)
    elif parsed_args.command == "encode-transfer":
        if parsed_args.recipient is None:
            parser.error("Missing required argument '--recipient'")
        if parsed_args.amount is None:
            parser.error("Missing required argument '--amount'")
        encode_transfer(parsed_args.recipient, parsed_args.amount, parsed_args.coin_type)
    elif parsed_args.command == "balance":
        if parsed_args.account is None:
            parser.error("Missing required argument '--account'")
        if parsed_args.rest_api is None:
            parser.error("Missing required argument '--rest-api'")
        await balance(parsed_args.account, parsed_args.rest_api, parsed_args.coin_type)


def run():
    asyncio.run(main(sys.argv[1:]))


class Test(unittest.IsolatedAsyncioTestCase):
    async def run_main(self, args: List[str]) -> List[str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            await main(args)
        return out.getvalue().splitlines()

    async def test_parse_type_tag(self):
        lines = await self.run_main(["parse-type-tag", "--type-tag", "vector<0x01::m::S>"])
        self.assertEqual(lines[0], "vector<0x1::m::S>")
        self.assertEqual(lines[1], parse_type_tag("vector<0x1::m::S>").to_bytes().hex())

    async def test_encode_transfer(self):
        lines = await self.run_main(
            ["encode-transfer", "--recipient", "0x2", "--amount", "1000"]
        )
        expected = CoinClient().transfer_payload(AccountAddress.from_str("0x2"), 1000)
        self.assertEqual(lines[1], expected.to_bytes().hex())
        self.assertTrue(lines[0].startswith("0x1::coin::transfer<0x1::aptos_coin::AptosCoin>"))

    async def test_missing_arguments(self):
        for args in (
            ["parse-type-tag"],
            ["encode-transfer", "--recipient", "0x2"],
            ["balance", "--account", "0x2"],
        ):
            with contextlib.redirect_stderr(io.StringIO()):
                with self.assertRaises(SystemExit, msg=str(args)):
                    await main(args)


if __name__ == "__main__":
    run()
