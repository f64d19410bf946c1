from streamdapp.db import (
    create_account_if_not_exists,
    credit_account,
    debit_account,
    get_account,
    get_account_owner,
    get_connection,
    get_dapp_address,
    get_lamports,
    set_dapp_address,
)
from streamdapp.errors import StreamError
from streamdapp.processor import Processor
from streamdapp.runtime import AccountLocks, Clock, Rent, Runtime
from streamdapp.state import StreamRecord
from streamdapp.stream import vested, withdrawable
from streamdapp.util import (
    ZERO_ADDRESS,
    get_admin_address,
    get_dapp_address_relay,
    get_ether_portal_address,
    get_rent_parameters,
    get_rollup_server,
    hex_to_bytes,
    hex_to_str,
    logger,
    str_to_hex,
)

from eth_abi import decode, encode
from eth_utils import (
    function_signature_to_4byte_selector,
    is_same_address,
    to_checksum_address,
)
import json
import requests

# shared by every input handled in this process
ACCOUNT_LOCKS = AccountLocks()

ETHER_DEPOSIT_HEADER_SIZE = 20 + 32
MAX_ACCOUNT_DATA_SIZE = 10 * 1024 * 1024
WITHDRAW_ETHER_SELECTOR = function_signature_to_4byte_selector(
    "withdrawEther(address,uint256)"
)


def send_post_request(endpoint, payload):
    url = get_rollup_server() + endpoint
    json_payload = {"payload": str_to_hex(json.dumps(payload))}

    response = requests.post(url, json=json_payload)

    if response.status_code not in (200, 201, 202):
        logger.error(
            f"Failed POST request to {url}. Status: {response.status_code}. Response: {response.text}"
        )
    else:
        logger.info(
            f"Successful POST request to {url}. Status: {response.status_code}. Response: {response.text}"
        )

    return response


def report_error(msg, payload):
    error_log = {
        "error": True,
        "message": msg,
        "payload": payload,
    }
    logger.error(error_log)
    send_post_request("/report", error_log)
    return "reject"


def report_success(msg, payload):
    """Function to report successful operations."""
    success_log = {
        "error": False,
        "message": msg,
        "payload": payload,
    }
    logger.info(f"Reporting success {success_log}")
    send_post_request("/report", success_log)
    return "accept"


def describe_error(error):
    if isinstance(error, StreamError):
        return f"{type(error).__name__} ({error.code}): {error}"
    return str(error)


def build_runtime(connection):
    lamports_per_byte_year, exemption_threshold = get_rent_parameters()
    return Runtime(
        connection,
        Processor(admin=get_admin_address()),
        rent=Rent(lamports_per_byte_year, exemption_threshold),
        locks=ACCOUNT_LOCKS,
    )


def handle_deposit(binary, connection):
    if len(binary) < ETHER_DEPOSIT_HEADER_SIZE:
        raise ValueError("Ether deposit payload too short")
    depositor = to_checksum_address("0x" + binary[:20].hex())
    value = int.from_bytes(binary[20:ETHER_DEPOSIT_HEADER_SIZE], "big")
    exec_layer_data = binary[ETHER_DEPOSIT_HEADER_SIZE:]

    target = depositor
    if exec_layer_data:
        # fund (and allocate, if new) an account other than the depositor's
        target, space = decode(["address", "uint64"], exec_layer_data)
        target = to_checksum_address(target)
        if space > MAX_ACCOUNT_DATA_SIZE:
            raise ValueError(f"Account data size {space} exceeds {MAX_ACCOUNT_DATA_SIZE}")
        if create_account_if_not_exists(connection, target, space, owner=depositor):
            logger.info(f"Allocated account {target} with {space} bytes for {depositor}")
        else:
            owner = get_account_owner(connection, target)
            if owner is not None and not is_same_address(owner, depositor):
                # never top up an escrow someone else allocated, refund the depositor instead
                logger.warning(
                    f"Account {target} belongs to {owner}, crediting {depositor} instead"
                )
                target = depositor

    if value > 0:
        balance = credit_account(connection, target, value)
        logger.info(f"Deposit of {value} from {depositor} to {target}, balance {balance}")
    return "accept"


def handle_dapp_address_relay(binary, connection):
    if len(binary) != 20:
        raise ValueError("DApp address relay payload must be 20 bytes")
    dapp_address = to_checksum_address("0x" + binary.hex())
    set_dapp_address(connection, dapp_address)
    logger.info(f"DApp address set to {dapp_address}")
    return "accept"


def handle_withdraw_ether(args, msg_sender, connection):
    amount = int(args["amount"])
    recipient = to_checksum_address(args.get("recipient", msg_sender))

    _, data = get_account(connection, msg_sender)
    if data:
        raise ValueError("Only wallet accounts can withdraw to L1")

    dapp_address = get_dapp_address(connection)
    if dapp_address is None or is_same_address(dapp_address, ZERO_ADDRESS):
        raise ValueError("DApp address has not been relayed yet")

    debit_account(connection, msg_sender, amount)

    withdraw_payload = WITHDRAW_ETHER_SELECTOR + encode(
        ["address", "uint256"],
        [recipient, amount],
    )
    voucher = {
        "destination": dapp_address,
        "payload": "0x" + withdraw_payload.hex(),
    }
    logger.info(f"Issuing voucher {voucher}")
    response = requests.post(get_rollup_server() + "/voucher", json=voucher)
    logger.info(
        f"Received voucher status {response.status_code} body {response.content}"
    )
    return "accept"


def handle_json_action(binary, msg_sender, connection):
    payload = json.loads(binary.decode("utf-8"))
    logger.info(f"Received {payload['method']} from {msg_sender}")

    if payload["method"] == "withdraw_ether":
        return handle_withdraw_ether(payload["args"], msg_sender, connection)

    raise ValueError(f"Unknown method {payload['method']}")


def handle_instruction(binary, msg_sender, timestamp, connection):
    accounts, instruction = decode(["address[]", "bytes"], binary)
    logger.info(f"Received instruction from {msg_sender} for accounts {accounts}")

    record = build_runtime(connection).invoke(
        list(accounts), instruction, signer=msg_sender, clock=Clock(timestamp)
    )

    notice = {
        "escrow": to_checksum_address(accounts[0]),
        "stream": record.to_json(),
    }
    logger.info(f"Issuing notice {notice}")
    send_post_request("/notice", notice)
    return "accept"


def handle_action(data, connection):
    binary = hex_to_bytes(data["payload"])
    msg_sender = to_checksum_address(data["metadata"]["msg_sender"])
    timestamp = data["metadata"]["timestamp"]

    if is_same_address(msg_sender, get_ether_portal_address()):
        return handle_deposit(binary, connection)

    if is_same_address(msg_sender, get_dapp_address_relay()):
        return handle_dapp_address_relay(binary, connection)

    # instruction inputs are ABI encoded and start with a zero offset word
    if binary.startswith(b"{"):
        return handle_json_action(binary, msg_sender, connection)

    return handle_instruction(binary, msg_sender, timestamp, connection)


def handle_advance(data):
    logger.info(f"Received advance request data {data}")
    connection = get_connection()
    try:
        status = handle_action(data, connection)
        connection.commit()
        report_success("Success", data["payload"])
    except Exception as e:
        connection.rollback()
        status = report_error(describe_error(e), data["payload"])
    finally:
        connection.close()

    return status


def inspect_stream(connection, query):
    escrow = to_checksum_address(query["escrow"])
    _, raw = get_account(connection, escrow)
    record = StreamRecord.unpack(raw)
    timestamp = int(query["timestamp"])
    result = record.to_json()
    if record.is_active():
        result["vested"] = str(vested(record, timestamp))
        result["withdrawable"] = str(withdrawable(record, timestamp))
    return result


def handle_inspect(data):
    logger.info(f"Received inspect request data {data}")

    connection = get_connection()
    try:
        payload = hex_to_str(data["payload"])
        json_payload = json.loads(payload)

        if json_payload["method"] == "stream":
            result = inspect_stream(connection, json_payload)
            return report_success(json.dumps(result), data["payload"])

        if json_payload["method"] == "balance":
            address = to_checksum_address(json_payload["address"])
            balance = get_lamports(connection, address)
            return report_success(str(balance), data["payload"])

        return report_success("ok", data["payload"])
    except Exception as e:
        return report_error(describe_error(e), data["payload"])
    finally:
        connection.close()


def handle(rollup_request):
    handlers = {
        "advance_state": handle_advance,
        "inspect_state": handle_inspect,
    }
    handler = handlers[rollup_request["request_type"]]
    return handler(rollup_request["data"])
