import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List

from eth_utils import is_same_address, to_checksum_address

from streamdapp.db import get_account, get_account_owner, set_account
from streamdapp.errors import AccountResolutionError, InvariantViolation
from streamdapp.util import logger

ACCOUNT_STORAGE_OVERHEAD = 128


class AccountInfo:
    """A host account handed to the processor for the duration of one instruction."""

    def __init__(
        self, key: str, is_signer: bool, lamports: int, data: bytes, owner: str = None
    ):
        self.key = key
        self.is_signer = is_signer
        self.lamports = lamports
        self.data = bytearray(data)
        # who allocated the account, fixed for its lifetime
        self.owner = owner

    @property
    def data_len(self) -> int:
        return len(self.data)

    def __repr__(self):
        return (
            f"AccountInfo(key={self.key}, is_signer={self.is_signer}, "
            f"lamports={self.lamports}, data_len={self.data_len})"
        )


def next_account_info(iterator: Iterator[AccountInfo]) -> AccountInfo:
    try:
        return next(iterator)
    except StopIteration:
        raise AccountResolutionError() from None


@dataclass(frozen=True)
class Clock:
    unix_timestamp: int


@dataclass(frozen=True)
class Rent:
    lamports_per_byte_year: int = 3480
    exemption_threshold: float = 2.0

    def minimum_balance(self, data_len: int) -> int:
        return int(
            (ACCOUNT_STORAGE_OVERHEAD + data_len)
            * self.lamports_per_byte_year
            * self.exemption_threshold
        )


class AccountLocks:
    """One lock per account address, so only one instruction mutates an account at a time."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, address: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(address, threading.Lock())

    def is_locked(self, address: str) -> bool:
        return self._lock_for(to_checksum_address(address)).locked()

    @contextmanager
    def hold(self, addresses: List[str]):
        # sorted so every instruction acquires in the same order
        locks = [self._lock_for(address) for address in sorted(set(addresses))]
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


class Runtime:
    """Loads accounts from sqlite, runs one instruction and stores the result.

    Committing or rolling back the connection is left to the caller, which is
    what makes an instruction all-or-nothing.
    """

    def __init__(self, connection, processor, rent: Rent = None, locks=None):
        self._connection = connection
        self.processor = processor
        self.rent = rent or Rent()
        self.locks = locks or AccountLocks()

    def load_accounts(self, addresses: List[str], signer: str) -> List[AccountInfo]:
        loaded: Dict[str, AccountInfo] = {}
        accounts = []
        for address in addresses:
            if address not in loaded:
                lamports, data = get_account(self._connection, address)
                loaded[address] = AccountInfo(
                    key=address,
                    is_signer=is_same_address(address, signer),
                    lamports=lamports,
                    data=data,
                    owner=get_account_owner(self._connection, address),
                )
            # a repeated key shares one handle, as it would on the host
            accounts.append(loaded[address])
        return accounts

    def invoke(
        self, addresses: List[str], instruction_data: bytes, signer: str, clock: Clock
    ):
        addresses = [to_checksum_address(address) for address in addresses]
        with self.locks.hold(addresses):
            accounts = self.load_accounts(addresses, signer)
            unique = list({account.key: account for account in accounts}.values())
            before = sum(account.lamports for account in unique)

            result = self.processor.process(
                accounts, instruction_data, clock, self.rent
            )

            after = sum(account.lamports for account in unique)
            if before != after:
                raise InvariantViolation(
                    f"Instruction changed total lamports from {before} to {after}"
                )
            for account in unique:
                if account.lamports < 0:
                    raise InvariantViolation(f"Negative balance for {account.key}")
                set_account(
                    self._connection, account.key, account.lamports, bytes(account.data)
                )
            logger.info(f"Instruction applied to {len(unique)} accounts")
            return result
