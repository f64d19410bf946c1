from dataclasses import dataclass
from typing import List

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from streamdapp.errors import MalformedPayload
from streamdapp.util import ZERO_ADDRESS

STATUS_UNINITIALIZED = 0
STATUS_ACTIVE = 1
STATUS_CLOSED = 2
STATUSES = (STATUS_UNINITIALIZED, STATUS_ACTIVE, STATUS_CLOSED)

STREAM_RECORD_TYPES = [
    "int64",  # start_time
    "int64",  # end_time
    "address",  # receiver
    "uint64",  # withdrawn
    "uint64",  # rate
    "address",  # sender
    "uint8",  # status
]
CREATE_COMMAND_TYPES = ["int64", "int64", "address", "uint64"]
WITHDRAW_COMMAND_TYPES = ["uint64"]

# every field is a single ABI head word
WORD_SIZE = 32
STREAM_RECORD_SIZE = WORD_SIZE * len(STREAM_RECORD_TYPES)


def layout_size(types: List[str]) -> int:
    return WORD_SIZE * len(types)


def decode_fixed(types: List[str], data: bytes):
    """Decode an exact fixed layout, turning every codec failure into MalformedPayload."""
    expected = layout_size(types)
    if len(data) != expected:
        raise MalformedPayload(f"Expected {expected} bytes, got {len(data)}")
    try:
        return decode(types, bytes(data))
    except DecodingError as e:
        raise MalformedPayload(f"Invalid payload: {e}") from e


@dataclass
class StreamRecord:
    start_time: int
    end_time: int
    receiver: str
    withdrawn: int
    rate: int
    sender: str
    status: int = STATUS_UNINITIALIZED

    @classmethod
    def empty(cls) -> "StreamRecord":
        return cls(0, 0, ZERO_ADDRESS, 0, 0, ZERO_ADDRESS, STATUS_UNINITIALIZED)

    @classmethod
    def from_create(cls, command: "CreateCommand", sender: str) -> "StreamRecord":
        return cls(
            start_time=command.start_time,
            end_time=command.end_time,
            receiver=command.receiver,
            withdrawn=0,
            rate=command.rate,
            sender=to_checksum_address(sender),
            status=STATUS_ACTIVE,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "StreamRecord":
        start_time, end_time, receiver, withdrawn, rate, sender, status = (
            decode_fixed(STREAM_RECORD_TYPES, data)
        )
        if status not in STATUSES:
            raise MalformedPayload(f"Unknown stream status {status}")
        return cls(
            start_time=start_time,
            end_time=end_time,
            receiver=to_checksum_address(receiver),
            withdrawn=withdrawn,
            rate=rate,
            sender=to_checksum_address(sender),
            status=status,
        )

    def pack(self) -> bytes:
        return encode(
            STREAM_RECORD_TYPES,
            [
                self.start_time,
                self.end_time,
                self.receiver,
                self.withdrawn,
                self.rate,
                self.sender,
                self.status,
            ],
        )

    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def is_closed(self) -> bool:
        return self.status == STATUS_CLOSED

    def to_json(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "receiver": self.receiver,
            "sender": self.sender,
            "rate": str(self.rate),
            "withdrawn": str(self.withdrawn),
            "status": self.status,
        }


@dataclass
class CreateCommand:
    start_time: int
    end_time: int
    receiver: str
    rate: int

    @classmethod
    def unpack(cls, data: bytes) -> "CreateCommand":
        start_time, end_time, receiver, rate = decode_fixed(CREATE_COMMAND_TYPES, data)
        return cls(start_time, end_time, to_checksum_address(receiver), rate)

    def pack(self) -> bytes:
        return encode(
            CREATE_COMMAND_TYPES,
            [self.start_time, self.end_time, self.receiver, self.rate],
        )


@dataclass
class WithdrawCommand:
    amount: int

    @classmethod
    def unpack(cls, data: bytes) -> "WithdrawCommand":
        (amount,) = decode_fixed(WITHDRAW_COMMAND_TYPES, data)
        return cls(amount)

    def pack(self) -> bytes:
        return encode(WITHDRAW_COMMAND_TYPES, [self.amount])
