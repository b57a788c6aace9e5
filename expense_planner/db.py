from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Union

import pandas as pd

from .config import DB_PATH, ensure_data_directories

logger = logging.getLogger(__name__)

PAYMENT_TYPES = ('manual', 'linked', 'unlinked')

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS expense_plan_payments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    expense_plan_id INTEGER NOT NULL,
    year INTEGER NOT NULL,
    month INTEGER NOT NULL,
    amount REAL NOT NULL,
    payment_type TEXT NOT NULL DEFAULT 'linked',
    transaction_reference TEXT,
    note TEXT,
    created_at TEXT
);

CREATE INDEX IF NOT EXISTS ix_payment_plan_period
ON expense_plan_payments (expense_plan_id, year, month);
CREATE INDEX IF NOT EXISTS ix_payment_type ON expense_plan_payments (payment_type);
"""

PathLike = Union[str, Path]


def _resolve(db_path: Optional[PathLike]) -> Path:
    if db_path is None:
        ensure_data_directories()
        return DB_PATH
    return Path(db_path)


@contextmanager
def connect(db_path: Optional[PathLike] = None) -> Iterator[sqlite3.Connection]:
    target = _resolve(db_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(target))
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Optional[PathLike] = None) -> None:
    with connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


def record_payment(
    expense_plan_id: int,
    year: int,
    month: int,
    amount: float,
    payment_type: str = 'linked',
    transaction_reference: Optional[str] = None,
    note: Optional[str] = None,
    db_path: Optional[PathLike] = None,
) -> int:
    """Store one payment against a plan for a calendar month.

    Returns the new row id.  ``unlinked`` rows are kept for bookkeeping but
    never count as envelope spending.
    """
    if payment_type not in PAYMENT_TYPES:
        raise ValueError(f"payment_type must be one of {PAYMENT_TYPES}, got {payment_type!r}")
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")

    with connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO expense_plan_payments (expense_plan_id, year, month, amount, payment_type, "
            "transaction_reference, note, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                expense_plan_id,
                year,
                month,
                float(amount),
                payment_type,
                transaction_reference,
                note,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        conn.commit()
        row_id = cur.lastrowid
    logger.debug("Recorded %s payment %.2f for plan %s in %04d-%02d", payment_type, amount, expense_plan_id, year, month)
    return row_id


def sum_linked_payments_for_period(
    expense_plan_id: int, year: int, month: int, db_path: Optional[PathLike] = None
) -> float:
    with connect(db_path) as conn:
        row = conn.execute(
            "SELECT COALESCE(SUM(amount), 0) FROM expense_plan_payments "
            "WHERE expense_plan_id = ? AND year = ? AND month = ? AND payment_type != 'unlinked'",
            (expense_plan_id, year, month),
        ).fetchone()
    return float(row[0] or 0.0)


def fetch_payments(
    expense_plan_id: Optional[int] = None,
    year: Optional[int] = None,
    db_path: Optional[PathLike] = None,
) -> pd.DataFrame:
    where: List[str] = []
    params: List[object] = []

    if expense_plan_id is not None:
        where.append("expense_plan_id = ?")
        params.append(expense_plan_id)
    if year is not None:
        where.append("year = ?")
        params.append(year)

    sql = (
        "SELECT id, expense_plan_id AS 'Plan', year AS 'Year', month AS 'Month', amount AS 'Amount', "
        "payment_type AS 'Type', transaction_reference AS 'Transaction Reference', note AS 'Note', "
        "created_at AS 'Created At' FROM expense_plan_payments"
    )
    if where:
        sql += " WHERE " + " AND ".join(where)
    sql += " ORDER BY year ASC, month ASC, id ASC"

    with connect(db_path) as conn:
        df = pd.read_sql_query(sql, conn, params=params)
    if not df.empty:
        df['Created At'] = pd.to_datetime(df['Created At'])
    return df


class PaymentLedger:
    """SQLite-backed spending reader for the envelope calculator."""

    def __init__(self, db_path: Optional[PathLike] = None):
        self.db_path = db_path
        init_db(db_path)

    def record(self, expense_plan_id: int, year: int, month: int, amount: float, **kwargs) -> int:
        return record_payment(expense_plan_id, year, month, amount, db_path=self.db_path, **kwargs)

    def sum_linked_payments_for_period(self, plan_id: int, year: int, month: int) -> float:
        return sum_linked_payments_for_period(plan_id, year, month, db_path=self.db_path)

    def payments(self, expense_plan_id: Optional[int] = None) -> pd.DataFrame:
        return fetch_payments(expense_plan_id, db_path=self.db_path)
