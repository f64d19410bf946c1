class StreamError(Exception):
    """Base class for every failure that aborts an instruction.

    ``code`` is stable and is what gets reported back to the rollup, the
    message is for humans.
    """

    code = 0

    def __init__(self, message=None):
        super().__init__(message or self.__doc__)


class InvalidInstruction(StreamError):
    """Unknown instruction tag"""

    code = 1


class MalformedPayload(StreamError):
    """Payload does not match the expected layout"""

    code = 2


class AccountResolutionError(StreamError):
    """Not enough account keys supplied"""

    code = 3


class AdminAccountInvalid(StreamError):
    """Admin account does not match the trusted admin"""

    code = 4


class InvalidStartOrEndTime(StreamError):
    """Start time must be in the future and before the end time"""

    code = 5


class NotEnoughLamports(StreamError):
    """Escrow funding does not match rate times duration"""

    code = 6


class MissingRequiredSignature(StreamError):
    """A required signature is missing"""

    code = 7


class InvalidAccountData(StreamError):
    """Account does not match the instruction data"""

    code = 8


class IllegalOwner(StreamError):
    """Account is not a party to this stream"""

    code = 9


class WithdrawError(StreamError):
    """Requested amount exceeds the withdrawable amount"""

    code = 10


class ArithmeticOverflow(StreamError):
    """Arithmetic overflow or underflow"""

    code = 11


class InvariantViolation(StreamError):
    """Internal invariant violated"""

    code = 12


class UninitializedAccount(StreamError):
    """Escrow account holds no stream"""

    code = 13


class AccountAlreadyInitialized(StreamError):
    """Escrow account already holds a stream"""

    code = 14


class StreamClosed(StreamError):
    """Stream has been closed"""

    code = 15
