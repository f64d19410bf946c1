import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from streamdapp.errors import InvalidInstruction, MalformedPayload
from streamdapp.instruction import (
    CLOSE_STREAM,
    CREATE_STREAM,
    WITHDRAW_FROM_STREAM,
    StreamInstruction,
)
from streamdapp.state import (
    STATUS_ACTIVE,
    STATUS_UNINITIALIZED,
    STREAM_RECORD_SIZE,
    CreateCommand,
    StreamRecord,
    WithdrawCommand,
)
from streamdapp.util import ZERO_ADDRESS
from tests.utils import generate_random_address

RECEIVER_OFFSET = 64
WITHDRAWN_OFFSET = 96


class TestStreamRecord(unittest.TestCase):
    def setUp(self):
        self.record = StreamRecord(
            start_time=1000,
            end_time=2000,
            receiver=generate_random_address(),
            withdrawn=2500,
            rate=5,
            sender=generate_random_address(),
            status=STATUS_ACTIVE,
        )

    def test_layout_size(self):
        self.assertEqual(STREAM_RECORD_SIZE, 224)
        self.assertEqual(len(self.record.pack()), STREAM_RECORD_SIZE)

    def test_pack_unpack(self):
        self.assertEqual(StreamRecord.unpack(self.record.pack()), self.record)

    def test_zeroed_storage_is_uninitialized(self):
        record = StreamRecord.unpack(bytes(STREAM_RECORD_SIZE))
        self.assertEqual(record.status, STATUS_UNINITIALIZED)
        self.assertEqual(record.receiver, ZERO_ADDRESS)
        self.assertFalse(record.is_active())
        self.assertEqual(record, StreamRecord.empty())

    def test_short_buffer(self):
        with self.assertRaises(MalformedPayload):
            StreamRecord.unpack(self.record.pack()[:-1])
        with self.assertRaises(MalformedPayload):
            StreamRecord.unpack(b"")

    def test_identity_wider_than_an_address(self):
        data = bytearray(self.record.pack())
        data[RECEIVER_OFFSET] = 1
        with self.assertRaises(MalformedPayload):
            StreamRecord.unpack(bytes(data))

    def test_amount_wider_than_64_bits(self):
        data = bytearray(self.record.pack())
        data[WITHDRAWN_OFFSET] = 1
        with self.assertRaises(MalformedPayload):
            StreamRecord.unpack(bytes(data))

    def test_unknown_status(self):
        data = bytearray(self.record.pack())
        data[-1] = 7
        with self.assertRaises(MalformedPayload):
            StreamRecord.unpack(bytes(data))

    def test_negative_timestamps(self):
        self.record.start_time = -100
        self.assertEqual(StreamRecord.unpack(self.record.pack()).start_time, -100)


class TestStreamInstruction(unittest.TestCase):
    def setUp(self):
        self.create = CreateCommand(
            start_time=1000, end_time=2000, receiver=generate_random_address(), rate=5
        )

    def test_create(self):
        data = StreamInstruction.create(self.create).pack()
        # tag plus four words, there is no withdrawn field
        self.assertEqual(len(data), 1 + 4 * 32)
        self.assertEqual(data[0], CREATE_STREAM)
        instruction = StreamInstruction.unpack(data)
        self.assertEqual(instruction.tag, CREATE_STREAM)
        self.assertEqual(instruction.command, self.create)

    def test_withdraw(self):
        data = StreamInstruction.withdraw(600).pack()
        instruction = StreamInstruction.unpack(data)
        self.assertEqual(instruction.tag, WITHDRAW_FROM_STREAM)
        self.assertEqual(instruction.command, WithdrawCommand(600))

    def test_close(self):
        self.assertEqual(StreamInstruction.close().pack(), bytes([CLOSE_STREAM]))
        instruction = StreamInstruction.unpack(bytes([CLOSE_STREAM]))
        self.assertEqual(instruction.tag, CLOSE_STREAM)
        self.assertIsNone(instruction.command)

    def test_unknown_tag(self):
        with self.assertRaises(InvalidInstruction):
            StreamInstruction.unpack(bytes([3]))
        with self.assertRaises(InvalidInstruction):
            StreamInstruction.unpack(b"")

    def test_truncated_payload(self):
        data = StreamInstruction.create(self.create).pack()
        with self.assertRaises(MalformedPayload):
            StreamInstruction.unpack(data[:-8])
        with self.assertRaises(MalformedPayload):
            StreamInstruction.unpack(bytes([WITHDRAW_FROM_STREAM]))

    def test_trailing_bytes(self):
        with self.assertRaises(MalformedPayload):
            StreamInstruction.unpack(StreamInstruction.withdraw(1).pack() + b"\x00")
        with self.assertRaises(MalformedPayload):
            StreamInstruction.unpack(bytes([CLOSE_STREAM, 0]))


if __name__ == "__main__":
    unittest.main()
