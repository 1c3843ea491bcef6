"""
Program - Account Store
In-memory arena of program and token accounts plus native balances.

All instructions run through AccountStore.transaction(): a re-entrant lock
serialises them and the prior state of every account they touch is
journaled and put back if the block raises, so an instruction either
commits every write or none.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Type, TypeVar

from solders.pubkey import Pubkey

from vault_core.schemas.errors import (
    AccountAlreadyExists,
    InsufficientFunds,
    InvalidAccount,
    InvalidInput,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

# journal entry for an address that held nothing before the transaction
_ABSENT = object()


class AccountStore:
    """
    Address-keyed account records and lamport balances.

    Records are stored by reference and mutated in place by the program.
    Inside a transaction the first find(), load() or create() of an
    address journals its prior state (record types provide clone()), so
    only mutations of records reached that way are undone on rollback.
    """

    def __init__(self) -> None:
        self._accounts: dict[Pubkey, Any] = {}
        self._lamports: dict[Pubkey, int] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._owner: Optional[int] = None
        self._journal: dict[Pubkey, Any] = {}
        self._lamport_journal: dict[Pubkey, Any] = {}

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["AccountStore"]:
        """
        Run a block atomically. Nested transactions join the outer one.

        On any exception every journaled account and balance is put back
        to its state at entry of the outermost transaction and the
        exception propagates.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            self._depth = 1
            self._owner = threading.get_ident()
            try:
                yield self
            except BaseException:
                restored = self._rollback()
                logger.debug(f"Transaction rolled back ({restored} entries restored)")
                raise
            finally:
                self._depth = 0
                self._owner = None
                self._journal = {}
                self._lamport_journal = {}

    def _journaling(self) -> bool:
        return self._owner == threading.get_ident()

    def _touch(self, address: Pubkey) -> None:
        if self._journaling() and address not in self._journal:
            record = self._accounts.get(address, _ABSENT)
            self._journal[address] = record if record is _ABSENT else record.clone()

    def _touch_lamports(self, address: Pubkey) -> None:
        if self._journaling() and address not in self._lamport_journal:
            self._lamport_journal[address] = self._lamports.get(address, _ABSENT)

    def _rollback(self) -> int:
        for address, record in self._journal.items():
            if record is _ABSENT:
                self._accounts.pop(address, None)
            else:
                self._accounts[address] = record
        for address, balance in self._lamport_journal.items():
            if balance is _ABSENT:
                self._lamports.pop(address, None)
            else:
                self._lamports[address] = balance
        return len(self._journal) + len(self._lamport_journal)

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def exists(self, address: Pubkey) -> bool:
        return address in self._accounts

    def find(self, address: Pubkey, kind: Type[T]) -> Optional[T]:
        """Record at `address` if it exists and is a `kind`, else None."""
        self._touch(address)
        record = self._accounts.get(address)
        return record if isinstance(record, kind) else None

    def load(self, address: Pubkey, kind: Type[T]) -> T:
        """
        Raises:
            InvalidAccount: If no `kind` record lives at `address`
        """
        self._touch(address)
        record = self._accounts.get(address)
        if not isinstance(record, kind):
            raise InvalidAccount(
                f"No {kind.__name__} account at {address}",
                details={"address": str(address), "kind": kind.__name__},
            )
        return record

    def create(self, address: Pubkey, record: Any) -> Any:
        """
        Raises:
            AccountAlreadyExists: If the address is already occupied
        """
        with self._lock:
            if address in self._accounts:
                raise AccountAlreadyExists(
                    f"Account {address} already exists",
                    details={"address": str(address), "kind": type(record).__name__},
                )
            self._touch(address)
            self._accounts[address] = record
            return record

    def accounts(self, kind: Type[T]) -> list[T]:
        found = [(a, r) for a, r in self._accounts.items() if isinstance(r, kind)]
        for address, _ in found:
            self._touch(address)
        return [record for _, record in found]

    # -------------------------------------------------------------------------
    # Native balances
    # -------------------------------------------------------------------------

    def lamports(self, address: Pubkey) -> int:
        return self._lamports.get(address, 0)

    def credit_lamports(self, address: Pubkey, amount: int) -> None:
        if amount < 0:
            raise InvalidInput(f"Negative lamport amount: {amount}")
        with self._lock:
            self._touch_lamports(address)
            self._lamports[address] = self.lamports(address) + amount

    def debit_lamports(self, address: Pubkey, amount: int) -> None:
        """
        Raises:
            InsufficientFunds: If the balance is below `amount`
        """
        if amount < 0:
            raise InvalidInput(f"Negative lamport amount: {amount}")
        with self._lock:
            balance = self.lamports(address)
            if balance < amount:
                raise InsufficientFunds(
                    f"Insufficient lamports in {address}",
                    details={"address": str(address), "balance": balance, "required": amount},
                )
            self._touch_lamports(address)
            self._lamports[address] = balance - amount


__all__ = ["AccountStore"]
