# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Client identification header sent with every REST request.
"""

import importlib.metadata as metadata

PACKAGE_NAME = "aptos-abi"


class Metadata:
    APTOS_HEADER = "x-aptos-client"

    @staticmethod
    def get_aptos_header_val():
        """Return ``aptos-abi-python/<installed version>``.

        Raises:
            PackageNotFoundError: If the package is not installed.
        """
        version = metadata.version(PACKAGE_NAME)
        return f"aptos-abi-python/{version}"
