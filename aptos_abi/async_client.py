# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Minimal asynchronous REST client for reading account state.

Only the account-resource endpoints are wrapped: they feed the balance
lookup in :mod:`aptos_abi.coin_client`. Submitting and tracking transactions
is left to a full node SDK.

Examples:
    Listing resources::

        client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
        resources = await client.account_resources(AccountAddress.from_str("0x1"))
        await client.close()
"""

import logging
import unittest
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .account_address import AccountAddress
from .metadata import Metadata


@dataclass
class ClientConfig:
    """Common configuration for clients, particularly for submitting transactions.

    Transaction Parameters:
        expiration_ttl: Seconds a built transaction stays valid (default: 600)
        gas_unit_price: Price per unit of gas in octas (default: 100)
        max_gas_amount: Maximum gas units per transaction (default: 100,000)

    Network Parameters:
        http2: Enable HTTP/2 (default: True)
        api_key: Optional bearer token for authenticated endpoints
    """

    expiration_ttl: int = 600
    gas_unit_price: int = 100
    max_gas_amount: int = 100_000
    http2: bool = True
    api_key: Optional[str] = None


class RestClient:
    """A wrapper around the Aptos-core REST API for account state."""

    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str

    def __init__(
        self,
        base_url: str,
        client_config: ClientConfig = ClientConfig(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        # No pool timeout: requests wait as long as progress is being made.
        timeout = httpx.Timeout(60.0, pool=None)
        headers = {Metadata.APTOS_HEADER: Metadata.get_aptos_header_val()}
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=httpx.Limits(),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.client_config = client_config
        if client_config.api_key:
            self.client.headers["Authorization"] = f"Bearer {client_config.api_key}"

    async def close(self):
        await self.client.aclose()

    async def account_resource(
        self,
        account_address: AccountAddress,
        resource_type: str,
        ledger_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Retrieve one resource of an account.

        :param account_address: Address of the account.
        :param resource_type: Struct type of the resource, e.g. 0x1::account::Account.
        :param ledger_version: Ledger version to read at; latest if not provided.
        :return: The resource as ``{"type": ..., "data": ...}``.
        """
        response = await self._get(
            endpoint=f"accounts/{account_address}/resource/{resource_type}",
            params={"ledger_version": ledger_version},
        )
        if response.status_code == 404:
            raise ResourceNotFound(resource_type, resource_type)
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {account_address}", response.status_code)
        return response.json()

    async def account_resources(
        self,
        account_address: AccountAddress,
        ledger_version: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Retrieve all resources of an account.

        The nodes prune account state history; a pruned ledger version answers 410.

        :param account_address: Address of the account.
        :param ledger_version: Ledger version to read at; latest if not provided.
        :return: A list of ``{"type": ..., "data": ...}`` resources.
        """
        response = await self._get(
            endpoint=f"accounts/{account_address}/resources",
            params={"ledger_version": ledger_version},
        )
        if response.status_code == 404:
            raise AccountNotFound(f"{account_address}", account_address)
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {account_address}", response.status_code)
        resources = response.json()
        logging.debug(f"Fetched {len(resources)} resources for {account_address}")
        return resources

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        params = {} if params is None else params
        params = {key: val for key, val in params.items() if val is not None}
        return await self.client.get(
            url=f"{self.base_url}/{endpoint}",
            params=params,
        )


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class AccountNotFound(Exception):
    """The account was not found"""

    account: AccountAddress

    def __init__(self, message: str, account: AccountAddress):
        super().__init__(message)
        self.account = account


class ResourceNotFound(Exception):
    """The underlying resource was not found"""

    resource: str

    def __init__(self, message: str, resource: str):
        super().__init__(message)
        self.resource = resource


def mock_rest_client(handler, client_config: ClientConfig = ClientConfig()) -> RestClient:
    """A RestClient whose requests are answered by ``handler`` instead of the network."""
    return RestClient(
        "http://node.test/v1", client_config, transport=httpx.MockTransport(handler)
    )


class Test(unittest.IsolatedAsyncioTestCase):
    async def test_account_resources(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"type": "0x1::account::Account", "data": {}}])

        client = mock_rest_client(handler, ClientConfig(api_key="secret"))
        resources = await client.account_resources(AccountAddress.from_str("0x1"), 5)
        await client.close()

        self.assertEqual(resources[0]["type"], "0x1::account::Account")
        self.assertEqual(seen[0].url.path, "/v1/accounts/0x1/resources")
        self.assertEqual(seen[0].url.params["ledger_version"], "5")
        self.assertEqual(seen[0].headers["Authorization"], "Bearer secret")
        self.assertIn(Metadata.APTOS_HEADER, seen[0].headers)

    async def test_errors(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/resources"):
                return httpx.Response(404, text="account not found")
            return httpx.Response(500, text="boom")

        client = mock_rest_client(handler)
        with self.assertRaises(AccountNotFound):
            await client.account_resources(AccountAddress.from_str("0x2"))
        with self.assertRaises(ApiError) as ctx:
            await client.account_resource(
                AccountAddress.from_str("0x2"), "0x1::account::Account"
            )
        self.assertEqual(ctx.exception.status_code, 500)
        await client.close()

    async def test_account_resource_not_found(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/0x1::account::Account"):
                return httpx.Response(200, json={"type": "0x1::account::Account", "data": {}})
            return httpx.Response(404, text="resource not found")

        client = mock_rest_client(handler)
        account = AccountAddress.from_str("0x2")
        resource = await client.account_resource(account, "0x1::account::Account")
        self.assertEqual(resource["type"], "0x1::account::Account")
        with self.assertRaises(ResourceNotFound) as ctx:
            await client.account_resource(account, "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>")
        self.assertEqual(
            ctx.exception.resource, "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"
        )
        await client.close()

    async def test_mock_client_uses_one_transport(self):
        client = mock_rest_client(lambda request: httpx.Response(200, json=[]))
        self.assertEqual(await client.account_resources(AccountAddress.from_str("0x3")), [])
        self.assertIn(Metadata.APTOS_HEADER, client.client.headers)
        await client.close()
        self.assertTrue(client.client.is_closed)


if __name__ == "__main__":
    unittest.main()
