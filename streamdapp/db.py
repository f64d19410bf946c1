import os
import sqlite3
from typing import List, Tuple

from streamdapp.util import MAX_UINT64, int_to_str, str_to_int, with_checksum_address


def get_connection():
    db_file_path = os.getenv("DB_FILE_PATH", "dapp.sqlite")
    return sqlite3.connect(db_file_path, check_same_thread=False)


@with_checksum_address
def create_account_if_not_exists(connection, address, space=0, owner=None):
    cursor = connection.cursor()
    cursor.execute(
        """
        INSERT OR IGNORE INTO account (address, lamports, data, owner)
        VALUES (?, ?, ?, ?)
        """,
        (address, int_to_str(0), bytes(space), owner),
    )
    return cursor.rowcount == 1


@with_checksum_address
def get_account(connection, address) -> Tuple[int, bytes]:
    cursor = connection.cursor()
    cursor.execute(
        """
        SELECT lamports, data FROM account
        WHERE address = ?
        """,
        (address,),
    )
    row = cursor.fetchone()
    if row is None:
        return 0, b""
    return str_to_int(row[0]), bytes(row[1])


@with_checksum_address
def set_account(connection, address, lamports: int, data: bytes) -> None:
    cursor = connection.cursor()
    cursor.execute(
        """
        INSERT INTO account (address, lamports, data)
        VALUES (?, ?, ?)
        ON CONFLICT(address)
        DO UPDATE SET lamports = EXCLUDED.lamports, data = EXCLUDED.data
        """,
        (address, int_to_str(lamports), data),
    )


@with_checksum_address
def get_lamports(connection, address) -> int:
    lamports, _ = get_account(connection, address)
    return lamports


@with_checksum_address
def credit_account(connection, address, amount: int) -> int:
    if amount <= 0:
        raise ValueError("Credit amount must be positive.")
    create_account_if_not_exists(connection, address)
    lamports, data = get_account(connection, address)
    if lamports + amount > MAX_UINT64:
        raise ValueError("Balance would exceed 64 bits.")
    set_account(connection, address, lamports + amount, data)
    return lamports + amount


def get_all_accounts(connection) -> List[Tuple[str, int]]:
    cursor = connection.cursor()
    cursor.execute("SELECT address, lamports FROM account")
    return [(row[0], str_to_int(row[1])) for row in cursor.fetchall()]


def get_total_lamports(connection) -> int:
    return sum(lamports for _, lamports in get_all_accounts(connection))


@with_checksum_address
def get_account_owner(connection, address):
    """The address that allocated the account, None for plain wallets."""
    cursor = connection.cursor()
    cursor.execute(
        """
        SELECT owner FROM account
        WHERE address = ?
        """,
        (address,),
    )
    row = cursor.fetchone()
    return row[0] if row else None


@with_checksum_address
def debit_account(connection, address, amount: int) -> int:
    if amount <= 0:
        raise ValueError("Debit amount must be positive.")
    lamports, data = get_account(connection, address)
    if amount > lamports:
        raise ValueError(f"Insufficient balance: {lamports} < {amount}")
    set_account(connection, address, lamports - amount, data)
    return lamports - amount


def set_dapp_address(connection, dapp_address):
    cursor = connection.cursor()
    cursor.execute(
        """
        UPDATE dapp_addresses
        SET address = ?
        WHERE name = 'dapp'
        """,
        (dapp_address,),
    )


def get_dapp_address(connection):
    cursor = connection.cursor()
    cursor.execute(
        """
        SELECT address FROM dapp_addresses
        WHERE name = 'dapp'
        """,
    )
    row = cursor.fetchone()
    return row[0] if row else None
