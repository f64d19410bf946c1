import json
import logging
from os import environ

# External libraries
from eth_utils import is_hex_address, to_checksum_address, is_checksum_address

# Constants
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT64 = 2**64 - 1
ADMIN_FEE_LAMPORTS = 30000000  # 0.03 of the native unit
DEFAULT_ETHER_PORTAL = "0xFfdbe43d4c855BF7e0f105c400A50857f53AB044"
DEFAULT_DAPP_ADDRESS_RELAY = "0xF5DE34d6BbC0446E2a45719E718efEbaaE179daE"


# Conversion utilities
def hex_to_str(hex_str):
    """Decode a hex string prefixed with "0x" into a UTF-8 string"""
    return bytes.fromhex(hex_str[2:]).decode("utf-8")


def str_to_hex(string):
    """Encode a string as a hex string, adding the "0x" prefix"""
    return "0x" + string.encode("utf-8").hex()


def hex_to_bytes(hex_str):
    return bytes.fromhex(hex_str.removeprefix("0x"))


def str_to_int(string):
    """Converts a string to an integer. Returns 0 if conversion is not possible."""
    try:
        return int(string)
    except (TypeError, ValueError):
        return 0


def int_to_str(integer):
    """Converts an integer to a string. Returns '0' if the input is None or not an integer."""
    try:
        return str(int(integer))
    except (TypeError, ValueError):
        return "0"


# Decorators
def with_checksum_address(func):
    def wrapper(*args, **kwargs):
        new_args = tuple(
            to_checksum_address(arg) if is_hex_address(arg) else arg for arg in args
        )
        new_kwargs = {
            key: to_checksum_address(value) if is_hex_address(value) else value
            for key, value in kwargs.items()
        }
        return func(*new_args, **new_kwargs)

    return wrapper


# Logging Configuration
class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            "message": record.getMessage(),
            "level": record.levelname,
            "logger": record.name,
            "timestamp": record.created,
        }
        if hasattr(record, "extra"):
            log_entry.update(record.extra)
        return json.dumps(log_entry, default=str)


logger = logging.getLogger("streamdapp")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler()
handler.setFormatter(JSONFormatter())
logger.addHandler(handler)


# Configuration, read at call time
def get_rollup_server():
    return environ.get("ROLLUP_HTTP_SERVER_URL", "http://127.0.0.1:5004")


def get_admin_address():
    """The trusted fee recipient, or None when the deployment has not configured one."""
    admin = environ.get("ADMIN_ADDRESS")
    if not admin:
        return None
    return address_or_raise(to_checksum_address(admin))


def get_ether_portal_address():
    return to_checksum_address(
        environ.get("ETHER_PORTAL_ADDRESS", DEFAULT_ETHER_PORTAL)
    )


def get_dapp_address_relay():
    return to_checksum_address(
        environ.get("DAPP_ADDRESS_RELAY", DEFAULT_DAPP_ADDRESS_RELAY)
    )


def get_rent_parameters():
    return (
        int(environ.get("RENT_LAMPORTS_PER_BYTE_YEAR", "3480")),
        float(environ.get("RENT_EXEMPTION_THRESHOLD", "2.0")),
    )


# Utilities
def address_or_raise(address):
    if not is_checksum_address(address):
        raise ValueError(f"Invalid address {address}")
    return address
