from dataclasses import dataclass
from typing import Optional, Union

from streamdapp.errors import InvalidInstruction, MalformedPayload
from streamdapp.state import CreateCommand, WithdrawCommand

CREATE_STREAM = 0
WITHDRAW_FROM_STREAM = 1
CLOSE_STREAM = 2


@dataclass
class StreamInstruction:
    """A decoded instruction: the tag byte plus its typed payload."""

    tag: int
    command: Optional[Union[CreateCommand, WithdrawCommand]] = None

    @classmethod
    def create(cls, command: CreateCommand) -> "StreamInstruction":
        return cls(CREATE_STREAM, command)

    @classmethod
    def withdraw(cls, amount: int) -> "StreamInstruction":
        return cls(WITHDRAW_FROM_STREAM, WithdrawCommand(amount))

    @classmethod
    def close(cls) -> "StreamInstruction":
        return cls(CLOSE_STREAM)

    @classmethod
    def unpack(cls, data: bytes) -> "StreamInstruction":
        if not data:
            raise InvalidInstruction("Empty instruction")
        tag, rest = data[0], bytes(data[1:])
        if tag == CREATE_STREAM:
            return cls(tag, CreateCommand.unpack(rest))
        if tag == WITHDRAW_FROM_STREAM:
            return cls(tag, WithdrawCommand.unpack(rest))
        if tag == CLOSE_STREAM:
            if rest:
                raise MalformedPayload("Close takes no payload")
            return cls(tag)
        raise InvalidInstruction(f"Unknown instruction tag {tag}")

    def pack(self) -> bytes:
        payload = self.command.pack() if self.command is not None else b""
        return bytes([self.tag]) + payload
