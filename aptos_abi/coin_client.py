# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Coin transfers and balances.

Transfers go through the ABI builder with the ``0x1::coin::transfer`` signature,
so amounts and addresses are checked against their declared types. Balances are
read from an account's ``0x1::coin::CoinStore<CoinType>`` resource, whose key is
always produced by rendering a parsed TypeTag.

A missing CoinStore raises ResourceNotFound instead of reading as zero. An
account that never registered a coin and one that holds none of it are
different states on chain.

Examples:
    Building a transfer and reading a balance::

        coin_client = CoinClient(rest_client)
        transfer = coin_client.build_transfer(alice, bob, 1_000)
        balance = await coin_client.check_balance(bob)
"""

from __future__ import annotations

import logging
import time
import unittest
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import httpx

from .abi import AbiRegistry
from .account_address import AccountAddress
from .async_client import ClientConfig, ResourceNotFound, RestClient, mock_rest_client
from .bcs import Serializer, encoder
from .coin_abis import COIN_ABIS
from .transaction_builder import TransactionBuilderABI
from .transactions import TransactionPayload
from .type_tag import MalformedTypeTag, StructTag, TypeTag, parse_type_tag

APTOS_COIN_RAW = "0x1::aptos_coin::AptosCoin"
APTOS_COIN = parse_type_tag(APTOS_COIN_RAW)
COIN_MODULE = "0x1::coin"


class MalformedResource(Exception):
    """A resource is present but does not carry the expected field."""

    resource: str

    def __init__(self, message: str, resource: str):
        super().__init__(message)
        self.resource = resource


@dataclass
class TransactionOptions:
    """Per-transaction overrides; unset fields fall back to the ClientConfig."""

    max_gas_amount: Optional[int] = None
    gas_unit_price: Optional[int] = None
    expiration_timestamp_secs: Optional[int] = None


@dataclass
class CoinTransfer:
    """A transfer ready to be sequenced, signed and submitted."""

    sender: AccountAddress
    payload: TransactionPayload
    max_gas_amount: int
    gas_unit_price: int
    expiration_timestamp_secs: int


def coin_store(coin_type: TypeTag) -> TypeTag:
    """``0x1::coin::CoinStore<coin_type>``."""
    return TypeTag(
        StructTag(AccountAddress.from_str("0x1"), "coin", "CoinStore", [coin_type])
    )


def index_resources(resources: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Key a node's resource list by canonical type string.

    Every ``type`` is parsed and re-rendered, so lookups never depend on the
    spelling the node used.
    """
    indexed = {}
    for resource in resources:
        try:
            resource_type = resource["type"]
            data = resource["data"]
        except (KeyError, TypeError) as e:
            raise MalformedResource(f"Resource without type and data: {resource}", "") from e
        indexed[str(parse_type_tag(resource_type))] = data
    return indexed


def find_balance(resources: Mapping[str, Any], coin_type: TypeTag) -> int:
    """Read ``coin.value`` from the CoinStore of ``coin_type``.

    Keys are compared as canonical strings. Nodes spell non-special addresses
    in short form, so a raw node resource list must go through index_resources
    first.

    :param resources: Resource data keyed by canonical type string.
    :param coin_type: The coin whose balance to read.
    :return: The balance in the coin's smallest unit.
    :raises ResourceNotFound: If the account has no CoinStore for the coin.
    :raises MalformedResource: If the CoinStore has no numeric ``coin.value``.
    """
    resource_type = str(coin_store(coin_type))
    if resource_type not in resources:
        raise ResourceNotFound(resource_type, resource_type)

    try:
        value = resources[resource_type]["coin"]["value"]
    except (KeyError, TypeError) as e:
        raise MalformedResource(f"{resource_type} has no coin.value", resource_type) from e

    if isinstance(value, bool):
        raise MalformedResource(f"{resource_type} coin.value is not numeric", resource_type)
    if isinstance(value, int) and value >= 0:
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise MalformedResource(
        f"{resource_type} coin.value is not numeric: {value!r}", resource_type
    )


class CoinClient:
    """Builds coin transfers and reads coin balances.

    The rest client is only needed by check_balance; everything else works on
    values the caller already holds.
    """

    builder: TransactionBuilderABI
    client_config: ClientConfig
    rest_client: Optional[RestClient]

    def __init__(
        self,
        rest_client: Optional[RestClient] = None,
        builder: Optional[TransactionBuilderABI] = None,
        client_config: Optional[ClientConfig] = None,
    ):
        self.rest_client = rest_client
        self.builder = builder or TransactionBuilderABI(AbiRegistry.from_hex(COIN_ABIS))
        if client_config is None:
            client_config = rest_client.client_config if rest_client else ClientConfig()
        self.client_config = client_config

    @staticmethod
    def coin_type(coin_type: Union[TypeTag, str, None] = None) -> TypeTag:
        """Resolve an optional override, defaulting to the native coin."""
        if coin_type is None:
            return APTOS_COIN
        if isinstance(coin_type, TypeTag):
            return coin_type
        return parse_type_tag(coin_type)

    def transfer_payload(
        self,
        recipient: Union[AccountAddress, str],
        amount: int,
        coin_type: Union[TypeTag, str, None] = None,
    ) -> TransactionPayload:
        return self.builder.build_transaction_payload(
            COIN_MODULE,
            "transfer",
            [CoinClient.coin_type(coin_type)],
            [recipient, amount],
        )

    def build_transfer(
        self,
        sender: AccountAddress,
        recipient: Union[AccountAddress, str],
        amount: int,
        coin_type: Union[TypeTag, str, None] = None,
        options: Optional[TransactionOptions] = None,
    ) -> CoinTransfer:
        """
        Build a transfer of ``amount`` coins from ``sender`` to ``recipient``.

        :param coin_type: Coin to transfer, defaults to 0x1::aptos_coin::AptosCoin.
        :param options: Gas and expiration overrides.
        :return: The payload with the transaction-shaping fields resolved.
        """
        options = options or TransactionOptions()
        payload = self.transfer_payload(recipient, amount, coin_type)
        expiration = options.expiration_timestamp_secs
        if expiration is None:
            expiration = int(time.time()) + self.client_config.expiration_ttl
        transfer = CoinTransfer(
            sender,
            payload,
            _first(options.max_gas_amount, self.client_config.max_gas_amount),
            _first(options.gas_unit_price, self.client_config.gas_unit_price),
            expiration,
        )
        logging.info(f"Built transfer of {amount} from {sender}: {payload}")
        return transfer

    def balance(
        self,
        resources: Mapping[str, Any],
        coin_type: Union[TypeTag, str, None] = None,
    ) -> int:
        return find_balance(resources, CoinClient.coin_type(coin_type))

    async def check_balance(
        self,
        account: AccountAddress,
        coin_type: Union[TypeTag, str, None] = None,
        ledger_version: Optional[int] = None,
    ) -> int:
        """Fetch the account's resources and read the coin balance from them."""
        if self.rest_client is None:
            raise RuntimeError("check_balance needs a RestClient")
        resources = await self.rest_client.account_resources(account, ledger_version)
        return self.balance(index_resources(resources), coin_type)


def _first(value: Optional[int], default: int) -> int:
    return default if value is None else value


class Test(unittest.IsolatedAsyncioTestCase):
    SENDER = AccountAddress.from_str_relaxed("0x" + "aa" * 31 + "01")
    RECIPIENT = AccountAddress.from_str_relaxed("0x" + "bb" * 31 + "02")
    APTOS_STORE = "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"

    def test_default_transfer(self):
        transfer = CoinClient().build_transfer(self.SENDER, self.RECIPIENT, 1000)
        entry_function = transfer.payload.value
        self.assertEqual(str(entry_function.module), COIN_MODULE)
        self.assertEqual(entry_function.function, "transfer")
        self.assertEqual(entry_function.ty_args, [parse_type_tag(APTOS_COIN_RAW)])
        self.assertEqual(
            b"".join(entry_function.args),
            encoder(self.RECIPIENT, Serializer.struct) + encoder(1000, Serializer.u64),
        )
        self.assertEqual(transfer.max_gas_amount, 100_000)
        self.assertEqual(transfer.gas_unit_price, 100)
        self.assertGreater(transfer.expiration_timestamp_secs, int(time.time()))

    def test_transfer_overrides(self):
        client = CoinClient(client_config=ClientConfig(gas_unit_price=150))
        transfer = client.build_transfer(
            self.SENDER,
            str(self.RECIPIENT),
            5,
            coin_type="0x42::usdc::USDC",
            options=TransactionOptions(max_gas_amount=2_000, expiration_timestamp_secs=77),
        )
        self.assertEqual(transfer.payload.value.ty_args, [parse_type_tag("0x42::usdc::USDC")])
        self.assertEqual(transfer.max_gas_amount, 2_000)
        self.assertEqual(transfer.gas_unit_price, 150)
        self.assertEqual(transfer.expiration_timestamp_secs, 77)
        self.assertRaises(MalformedTypeTag, client.transfer_payload, self.RECIPIENT, 1, "usdc")
        self.assertRaises(MalformedTypeTag, client.transfer_payload, self.RECIPIENT, 1, "T0")

    def test_swapped_recipients_differ(self):
        client = CoinClient()
        first = client.transfer_payload(self.RECIPIENT, 7).to_bytes()
        second = client.transfer_payload(self.SENDER, 7).to_bytes()
        self.assertNotEqual(first, second)

    def test_balance(self):
        resources = {self.APTOS_STORE: {"coin": {"value": "42"}}}
        self.assertEqual(find_balance(resources, APTOS_COIN), 42)
        self.assertEqual(CoinClient().balance(resources), 42)
        self.assertEqual(coin_store(APTOS_COIN), parse_type_tag(self.APTOS_STORE))

    def test_balance_not_found(self):
        resources = index_resources(
            [
                {
                    "type": "0x1::coin::CoinStore<0x42::usdc::USDC>",
                    "data": {"coin": {"value": "1"}},
                }
            ]
        )
        with self.assertRaises(ResourceNotFound) as ctx:
            find_balance(resources, APTOS_COIN)
        self.assertEqual(ctx.exception.resource, self.APTOS_STORE)
        self.assertEqual(CoinClient().balance(resources, "0x42::usdc::USDC"), 1)

    def test_non_special_address_keys_are_long(self):
        usdc_store = str(coin_store(parse_type_tag("0x42::usdc::USDC")))
        self.assertEqual(
            usdc_store, "0x1::coin::CoinStore<0x" + "0" * 62 + "42::usdc::USDC>"
        )
        raw = {"0x1::coin::CoinStore<0x42::usdc::USDC>": {"coin": {"value": "1"}}}
        self.assertRaises(ResourceNotFound, find_balance, raw, parse_type_tag("0x42::usdc::USDC"))

    def test_balance_malformed(self):
        for data in ({}, {"coin": {}}, {"coin": {"value": "12a"}}, {"coin": {"value": True}},
                     {"coin": {"value": -1}}, {"coin": None}):
            with self.assertRaises(MalformedResource, msg=str(data)):
                find_balance({self.APTOS_STORE: data}, APTOS_COIN)

    def test_index_resources_canonicalizes(self):
        indexed = index_resources(
            [
                {
                    "type": "0x01::coin::CoinStore<0x1::aptos_coin::AptosCoin>",
                    "data": {"coin": {"value": "9"}},
                },
                {"type": "0x1::account::Account", "data": {"sequence_number": "0"}},
            ]
        )
        self.assertEqual(find_balance(indexed, APTOS_COIN), 9)
        self.assertRaises(MalformedResource, index_resources, [{"data": {}}])

    async def test_check_balance(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[{"type": self.APTOS_STORE, "data": {"coin": {"value": "1000"}}}],
            )

        rest_client = mock_rest_client(handler)
        coin_client = CoinClient(rest_client)
        self.assertEqual(await coin_client.check_balance(self.RECIPIENT), 1000)
        with self.assertRaises(ResourceNotFound):
            await coin_client.check_balance(self.RECIPIENT, "0x42::usdc::USDC")
        await rest_client.close()

    async def test_check_balance_needs_rest_client(self):
        with self.assertRaises(RuntimeError):
            await CoinClient().check_balance(self.RECIPIENT)


if __name__ == "__main__":
    unittest.main()
