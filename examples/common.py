# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import os

# :!:>section_1
NODE_URL = os.getenv("APTOS_NODE_URL", "https://api.devnet.aptoslabs.com/v1")
# <:!:section_1
