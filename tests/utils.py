import secrets
from typing import List

from eth_abi import encode
from eth_utils import to_checksum_address

from streamdapp.db import get_total_lamports
from streamdapp.runtime import AccountInfo, Rent
from streamdapp.state import STREAM_RECORD_SIZE
from streamdapp.util import ADMIN_FEE_LAMPORTS

RENT_RESERVE = Rent().minimum_balance(STREAM_RECORD_SIZE)


def generate_random_address():
    # Generate 20 random bytes (160 bits)
    random_bytes = secrets.token_bytes(20)

    # Convert to a hexadecimal string and add '0x' prefix
    hex_address = "0x" + random_bytes.hex()

    # Convert to checksum address
    return to_checksum_address(hex_address)


def escrow_funding(deposit: int) -> int:
    """Lamports an escrow needs for Create to accept a stream paying out ``deposit``."""
    return deposit + RENT_RESERVE + ADMIN_FEE_LAMPORTS


def make_escrow(address: str, deposit: int, owner: str = None) -> AccountInfo:
    return AccountInfo(
        key=address,
        is_signer=False,
        lamports=escrow_funding(deposit),
        data=bytes(STREAM_RECORD_SIZE),
        owner=owner,
    )


def make_wallet(address: str, lamports: int = 0, is_signer: bool = False):
    return AccountInfo(key=address, is_signer=is_signer, lamports=lamports, data=b"")


def encode_instruction_input(accounts: List[str], instruction: bytes) -> str:
    encoded = encode(["address[]", "bytes"], [accounts, instruction])
    return "0x" + encoded.hex()


def encode_ether_deposit(
    sender: str, value: int, target: str = None, space: int = 0
) -> str:
    exec_layer_data = b""
    if target is not None:
        exec_layer_data = encode(["address", "uint64"], [target, space])
    packed = bytes.fromhex(sender[2:]) + value.to_bytes(32, "big") + exec_layer_data
    return "0x" + packed.hex()


def advance_data(msg_sender: str, payload: str, timestamp: int):
    return {
        "metadata": {
            "msg_sender": msg_sender,
            "epoch_index": 0,
            "input_index": 1,
            "block_number": 30334,
            "timestamp": timestamp,
        },
        "payload": payload,
    }


def calculate_total_lamports(connection):
    return get_total_lamports(connection)
