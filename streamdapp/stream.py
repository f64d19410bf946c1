from streamdapp.errors import ArithmeticOverflow, InvariantViolation
from streamdapp.state import StreamRecord
from streamdapp.util import MAX_UINT64


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result < 0 or result > MAX_UINT64:
        raise ArithmeticOverflow(f"{a} * {b} does not fit in 64 bits")
    return result


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result < 0 or result > MAX_UINT64:
        raise ArithmeticOverflow(f"{a} + {b} does not fit in 64 bits")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticOverflow(f"{a} - {b} underflows")
    return a - b


def has_started(record: StreamRecord, now: int) -> bool:
    return now >= record.start_time


def total_amount(record: StreamRecord) -> int:
    """Everything the stream pays out once it has fully vested."""
    return checked_mul(record.rate, record.end_time - record.start_time)


def vested(record: StreamRecord, now: int) -> int:
    if not has_started(record, now):
        return 0
    elapsed = min(now, record.end_time) - record.start_time
    return checked_mul(record.rate, elapsed)


def withdrawable(record: StreamRecord, now: int) -> int:
    amount = vested(record, now) - record.withdrawn
    if amount < 0:
        raise InvariantViolation(
            f"Withdrawn {record.withdrawn} exceeds vested amount at {now}"
        )
    return amount


def settle_on_close(record: StreamRecord, now: int) -> int:
    """Receiver entitlement at close.

    The sender's share is whatever the escrow still holds after this is paid,
    so it is left to the caller.
    """
    if now > record.start_time:
        return withdrawable(record, now)
    return 0
