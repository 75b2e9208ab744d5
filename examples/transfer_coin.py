# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Build a coin transfer and compare both balances against the node.

The transfer is only encoded, not signed or submitted: the printed payload
bytes are what a signer embeds in the raw transaction.

Examples::

    APTOS_NODE_URL=https://api.testnet.aptoslabs.com/v1 \
        python -m examples.transfer_coin 0x<sender> 0x<recipient> 1000
"""

import asyncio
import sys

from aptos_abi.account_address import AccountAddress
from aptos_abi.async_client import AccountNotFound, ResourceNotFound, RestClient
from aptos_abi.coin_client import CoinClient

from .common import NODE_URL


async def main(sender: AccountAddress, recipient: AccountAddress, amount: int):
    rest_client = RestClient(NODE_URL)
    coin_client = CoinClient(rest_client)

    transfer = coin_client.build_transfer(sender, recipient, amount)
    print("\n=== Transfer ===")
    print(f"Call: {transfer.payload}")
    print(f"Payload: 0x{transfer.payload.to_bytes().hex()}")
    print(f"Max gas: {transfer.max_gas_amount} at {transfer.gas_unit_price} octas")
    print(f"Expires: {transfer.expiration_timestamp_secs}")

    print("\n=== Balances ===")
    for name, account in (("Sender", sender), ("Recipient", recipient)):
        try:
            print(f"{name}: {await coin_client.check_balance(account)}")
        except (AccountNotFound, ResourceNotFound) as e:
            print(f"{name}: no AptosCoin store ({e})")

    await rest_client.close()


if __name__ == "__main__":
    asyncio.run(
        main(
            AccountAddress.from_str_relaxed(sys.argv[1]),
            AccountAddress.from_str_relaxed(sys.argv[2]),
            int(sys.argv[3]),
        )
    )
