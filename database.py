import abc
import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

import psycopg2
from psycopg2 import pool

from exceptions import AccountNotFoundError, StoreError
from models.accounts import Account

logger = logging.getLogger(__name__)

ACCOUNT_COLUMNS = "id, first_name, last_name, number, encrypted_password, balance, created_at"

CREATE_ACCOUNTS_TABLE = """
    create table if not exists accounts (
        id serial not null primary key,
        first_name varchar(255),
        last_name varchar(255),
        number varchar(255) not null unique,
        encrypted_password varchar(255),
        balance double precision not null default 0,
        created_at timestamptz
    )
"""


class Storage(abc.ABC):
    """Account persistence used by the HTTP layer."""

    def init(self) -> None:
        pass

    def close(self) -> None:
        pass

    @abc.abstractmethod
    def list_accounts(self) -> List[Account]:
        ...

    @abc.abstractmethod
    def get_account_by_id(self, account_id: int) -> Account:
        ...

    @abc.abstractmethod
    def get_account_by_number(self, number: str) -> Account:
        ...

    @abc.abstractmethod
    def create_account(self, account: Account) -> None:
        ...

    @abc.abstractmethod
    def delete_account(self, account_id: int) -> Optional[int]:
        ...

    @abc.abstractmethod
    def transfer(self, number: str, amount: float) -> Optional[int]:
        """Credit `amount` to the account with `number`; returns its id or None."""


def scan_account(row) -> Account:
    account_id, first_name, last_name, number, encrypted_password, balance, created_at = row
    return Account(
        id=account_id,
        first_name=first_name,
        last_name=last_name,
        number=number,
        encrypted_password=encrypted_password,
        balance=balance,
        created_at=created_at,
    )


class PostgresStore(Storage):
    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 10):
        try:
            self._pool = pool.ThreadedConnectionPool(minconn, maxconn, dsn)
        except psycopg2.Error as exc:
            raise StoreError(f"could not connect to database: {exc}") from exc

    @contextmanager
    def get_cursor(self):
        conn = None
        try:
            # PoolError (exhausted) is a psycopg2.Error too
            conn = self._pool.getconn()
            # commits on success, rolls back on any exception
            with conn:
                with conn.cursor() as cursor:
                    yield cursor
        except psycopg2.Error as exc:
            logger.error("Database error: %s", exc)
            raise StoreError(str(exc)) from exc
        finally:
            if conn is not None:
                self._pool.putconn(conn)

    def init(self):
        with self.get_cursor() as cursor:
            cursor.execute(CREATE_ACCOUNTS_TABLE)
        logger.info("Accounts table ready")

    def close(self):
        self._pool.closeall()

    def list_accounts(self):
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {ACCOUNT_COLUMNS} FROM accounts ORDER BY id")
            return [scan_account(row) for row in cursor.fetchall()]

    def get_account_by_id(self, account_id):
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE id = %s", (account_id,))
            row = cursor.fetchone()
        if row is None:
            raise AccountNotFoundError(f"account {account_id} not found")
        return scan_account(row)

    def get_account_by_number(self, number):
        with self.get_cursor() as cursor:
            cursor.execute(f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE number = %s", (number,))
            row = cursor.fetchone()
        if row is None:
            raise AccountNotFoundError(f"account with number {number} not found")
        return scan_account(row)

    def create_account(self, account):
        with self.get_cursor() as cursor:
            cursor.execute(
                "INSERT INTO accounts (first_name, last_name, number, encrypted_password, balance, created_at) "
                "VALUES (%s, %s, %s, %s, %s, %s) RETURNING id",
                (
                    account.first_name,
                    account.last_name,
                    account.number,
                    account.encrypted_password,
                    account.balance,
                    account.created_at,
                ),
            )
            account.id = cursor.fetchone()[0]

    def delete_account(self, account_id):
        with self.get_cursor() as cursor:
            cursor.execute("DELETE FROM accounts WHERE id = %s RETURNING id", (account_id,))
            row = cursor.fetchone()
        return row[0] if row else None

    def transfer(self, number, amount):
        with self.get_cursor() as cursor:
            cursor.execute(
                "UPDATE accounts SET balance = balance + %s WHERE number = %s RETURNING id",
                (amount, number),
            )
            row = cursor.fetchone()
        return row[0] if row else None


class InMemoryStore(Storage):
    """Dict-backed store with the same semantics as PostgresStore."""

    def __init__(self):
        self._accounts: Dict[int, Account] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def list_accounts(self):
        with self._lock:
            return [account.model_copy() for _, account in sorted(self._accounts.items())]

    def get_account_by_id(self, account_id):
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(f"account {account_id} not found")
        return account.model_copy()

    def get_account_by_number(self, number):
        with self._lock:
            for account in self._accounts.values():
                if account.number == number:
                    return account.model_copy()
        raise AccountNotFoundError(f"account with number {number} not found")

    def create_account(self, account):
        with self._lock:
            if any(existing.number == account.number for existing in self._accounts.values()):
                raise StoreError(f"duplicate account number {account.number}")
            account.id = next(self._ids)
            self._accounts[account.id] = account.model_copy()

    def delete_account(self, account_id):
        with self._lock:
            account = self._accounts.pop(account_id, None)
        return account.id if account else None

    def transfer(self, number, amount):
        with self._lock:
            for account in self._accounts.values():
                if account.number == number:
                    account.balance += amount
                    return account.id
        return None
