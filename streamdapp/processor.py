from typing import List, Optional

from eth_utils import is_same_address

from streamdapp.errors import (
    AccountAlreadyInitialized,
    AdminAccountInvalid,
    IllegalOwner,
    InvalidAccountData,
    InvalidStartOrEndTime,
    MissingRequiredSignature,
    NotEnoughLamports,
    StreamClosed,
    UninitializedAccount,
    WithdrawError,
)
from streamdapp.instruction import (
    CREATE_STREAM,
    WITHDRAW_FROM_STREAM,
    StreamInstruction,
)
from streamdapp.runtime import AccountInfo, Clock, Rent, next_account_info
from streamdapp.state import (
    STATUS_CLOSED,
    STREAM_RECORD_SIZE,
    CreateCommand,
    StreamRecord,
    WithdrawCommand,
)
from streamdapp.stream import (
    checked_add,
    checked_sub,
    settle_on_close,
    total_amount,
    withdrawable,
)
from streamdapp.util import ADMIN_FEE_LAMPORTS, address_or_raise, logger


def transfer(source: AccountInfo, destination: AccountInfo, amount: int):
    if source is destination:
        return
    # both sides are checked before either balance moves
    source_after = checked_sub(source.lamports, amount)
    destination_after = checked_add(destination.lamports, amount)
    source.lamports = source_after
    destination.lamports = destination_after


def load_active_record(escrow: AccountInfo) -> StreamRecord:
    record = StreamRecord.unpack(escrow.data)
    if record.is_closed():
        raise StreamClosed()
    if not record.is_active():
        raise UninitializedAccount()
    return record


class Processor:
    """Decodes instructions and applies them to the accounts they name.

    Every check runs before any balance or data is touched, so a failed
    instruction leaves its accounts as they were even without host rollback.
    """

    def __init__(self, admin: Optional[str], fee: int = ADMIN_FEE_LAMPORTS):
        # without an admin no stream can be created, existing ones still settle
        self.admin = address_or_raise(admin) if admin is not None else None
        self.fee = fee

    def process(
        self,
        accounts: List[AccountInfo],
        instruction_data: bytes,
        clock: Clock,
        rent: Rent,
    ) -> StreamRecord:
        instruction = StreamInstruction.unpack(instruction_data)

        if instruction.tag == CREATE_STREAM:
            logger.info("Instruction: CreateStream")
            return self.process_create_stream(accounts, instruction.command, clock, rent)
        if instruction.tag == WITHDRAW_FROM_STREAM:
            logger.info("Instruction: WithdrawFromStream")
            return self.process_withdraw(accounts, instruction.command, clock)
        logger.info("Instruction: CloseStream")
        return self.process_close(accounts, clock)

    def process_create_stream(
        self,
        accounts: List[AccountInfo],
        data: CreateCommand,
        clock: Clock,
        rent: Rent,
    ) -> StreamRecord:
        account_info_iter = iter(accounts)
        escrow_account = next_account_info(account_info_iter)
        sender_account = next_account_info(account_info_iter)
        receiver_account = next_account_info(account_info_iter)
        admin_account = next_account_info(account_info_iter)

        if self.admin is None:
            raise AdminAccountInvalid("No admin is configured")
        if not is_same_address(admin_account.key, self.admin):
            raise AdminAccountInvalid()

        if any(escrow_account.data):
            raise AccountAlreadyInitialized()

        # the fee is taken before the funding check, which therefore sees the net balance
        escrow_lamports = checked_sub(escrow_account.lamports, self.fee)

        if data.end_time <= data.start_time or data.start_time < clock.unix_timestamp:
            raise InvalidStartOrEndTime()

        deposit = total_amount(StreamRecord.from_create(data, sender_account.key))
        if deposit != escrow_lamports - rent.minimum_balance(escrow_account.data_len):
            raise NotEnoughLamports(
                f"Escrow must hold exactly {deposit} lamports above the rent reserve"
            )

        if not sender_account.is_signer:
            raise MissingRequiredSignature()

        if escrow_account.owner is None or not is_same_address(
            escrow_account.owner, sender_account.key
        ):
            raise IllegalOwner("Escrow was not allocated by the sender")

        if not is_same_address(receiver_account.key, data.receiver):
            raise InvalidAccountData()

        if escrow_account.data_len != STREAM_RECORD_SIZE:
            raise InvalidAccountData(
                f"Escrow data must be {STREAM_RECORD_SIZE} bytes, "
                f"got {escrow_account.data_len}"
            )

        transfer(escrow_account, admin_account, self.fee)
        escrow_data = StreamRecord.from_create(data, sender_account.key)
        escrow_account.data[:] = escrow_data.pack()
        logger.info(
            f"Stream created from {escrow_data.sender} to {escrow_data.receiver} "
            f"for {deposit} lamports"
        )
        return escrow_data

    def process_withdraw(
        self, accounts: List[AccountInfo], data: WithdrawCommand, clock: Clock
    ) -> StreamRecord:
        account_info_iter = iter(accounts)
        escrow_account = next_account_info(account_info_iter)
        receiver_account = next_account_info(account_info_iter)

        escrow_data = load_active_record(escrow_account)

        if not is_same_address(receiver_account.key, escrow_data.receiver):
            raise IllegalOwner()

        if not receiver_account.is_signer:
            raise MissingRequiredSignature()

        total_token_owned = withdrawable(escrow_data, clock.unix_timestamp)
        if data.amount > total_token_owned:
            raise WithdrawError(
                f"Requested {data.amount}, only {total_token_owned} is withdrawable"
            )

        escrow_data.withdrawn = checked_add(escrow_data.withdrawn, data.amount)
        transfer(escrow_account, receiver_account, data.amount)
        escrow_account.data[:] = escrow_data.pack()
        logger.info(f"Withdrew {data.amount} lamports to {escrow_data.receiver}")
        return escrow_data

    def process_close(self, accounts: List[AccountInfo], clock: Clock) -> StreamRecord:
        account_info_iter = iter(accounts)
        escrow_account = next_account_info(account_info_iter)
        sender_account = next_account_info(account_info_iter)
        receiver_account = next_account_info(account_info_iter)

        escrow_data = load_active_record(escrow_account)

        if not is_same_address(sender_account.key, escrow_data.sender):
            raise IllegalOwner()

        if not sender_account.is_signer:
            raise MissingRequiredSignature()

        if not is_same_address(receiver_account.key, escrow_data.receiver):
            raise IllegalOwner()

        lamports_streamed_to_receiver = settle_on_close(
            escrow_data, clock.unix_timestamp
        )
        remainder = checked_sub(escrow_account.lamports, lamports_streamed_to_receiver)
        checked_add(sender_account.lamports, remainder)

        escrow_data.withdrawn = checked_add(
            escrow_data.withdrawn, lamports_streamed_to_receiver
        )
        escrow_data.status = STATUS_CLOSED
        transfer(escrow_account, receiver_account, lamports_streamed_to_receiver)
        transfer(escrow_account, sender_account, escrow_account.lamports)
        escrow_account.data[:] = escrow_data.pack()
        logger.info(
            f"Stream closed: {lamports_streamed_to_receiver} lamports to receiver, "
            f"{remainder} to sender"
        )
        return escrow_data
