import os

from streamdapp.db import get_connection
from streamdapp.util import ZERO_ADDRESS


def initialise_db():
    try:
        db_file_path = os.getenv("DB_FILE_PATH", "dapp.sqlite")
        os.remove(db_file_path)
    except FileNotFoundError:
        pass

    conn = get_connection()
    cursor = conn.cursor()

    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS dapp_addresses (
            name TEXT PRIMARY KEY,
            address TEXT NOT NULL
        )
        """
    )

    # relayed by the DAppAddressRelay, needed before any voucher can be issued
    cursor.execute(
        "INSERT OR REPLACE INTO dapp_addresses (name, address) VALUES (?, ?)",
        ("dapp", ZERO_ADDRESS),
    )

    # lamports are decimal text, sqlite integers stop at 63 bits
    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS account (
            address TEXT PRIMARY KEY,
            lamports TEXT NOT NULL,
            data BLOB NOT NULL,
            owner TEXT
        )
        """
    )

    conn.commit()

    conn.close()


if __name__ == "__main__":
    initialise_db()
