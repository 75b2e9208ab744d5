# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
ABI-driven transaction payloads for the Aptos blockchain.

Modules:
- **bcs**: Binary Canonical Serialization
- **account_address**: 32-byte account addresses and their string forms
- **type_tag**: Move type tags, their parser and canonical rendering
- **abi**: Entry-function ABIs and the registry built from them
- **transaction_builder**: Encodes call arguments against a registered ABI
- **transactions**: EntryFunction and TransactionPayload
- **coin_client**: Coin transfers and CoinStore balances
- **async_client**: REST reads of account resources

Quick Start::

    from aptos_abi.coin_client import CoinClient

    transfer = CoinClient().build_transfer(sender, recipient, 1_000)
    print(transfer.payload.to_bytes().hex())
"""
