"""
Example scripts for aptos_abi.

    python -m examples.transfer_coin 0x<sender> 0x<recipient> 1000
"""
