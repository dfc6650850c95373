"""
Bill Ledger

Append-only spreadsheet of generated bills, written by the Celery worker.
Several workers may append at once, so every read-modify-write of the file
happens under a file lock next to it.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from restopos.core.config import get_settings

logger = logging.getLogger(__name__)


class BillLedger:
    """Spreadsheet ledger guarded by a file lock."""

    COLUMNS = [
        "order_id",
        "outlet_id",
        "order_type",
        "table_name",
        "created_at",
        "billed_at",
        "items",
        "subtotal",
        "tax",
        "total",
        "payment_method",
        "billed_by",
        "exported_at",
    ]

    def __init__(self, path: Optional[str] = None, lock_timeout: Optional[int] = None):
        settings = get_settings()
        self.path = Path(path or settings.ledger_path)
        self.lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.ledger_lock_timeout

    def _ensure_dir(self) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created ledger directory: {self.path.parent}")

    def _load(self) -> pd.DataFrame:
        if self.path.exists():
            return pd.read_excel(self.path, engine="openpyxl", dtype={"order_id": str})
        return pd.DataFrame(columns=self.COLUMNS)

    @staticmethod
    def format_items(items: list[dict[str, Any]]) -> str:
        return "; ".join(f"{line['quantity']}x {line['name']} @ {line['price']}" for line in items)

    def append_bill(self, bill: dict[str, Any]) -> dict[str, Any]:
        """
        Append one bill row.

        A bill already present (same order_id) is not written twice, so a
        retried task is harmless.
        """
        self._ensure_dir()

        order_id = str(bill.get("order_id"))
        result = {"success": False, "message": "", "order_id": order_id, "exported_at": None}

        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout):
                logger.debug(f"Ledger lock acquired for bill {order_id}")

                df = self._load()
                if order_id in set(df["order_id"].astype(str)):
                    result["success"] = True
                    result["message"] = f"Bill {order_id} already in ledger"
                    return result

                export_time = datetime.now().isoformat()
                row = {column: bill.get(column) for column in self.COLUMNS}
                row["order_id"] = order_id
                row["items"] = self.format_items(bill.get("items") or [])
                row["exported_at"] = export_time

                df = pd.concat([df, pd.DataFrame([row], columns=self.COLUMNS)], ignore_index=True)
                df.to_excel(str(self.path), index=False, engine="openpyxl")

                logger.info(f"Bill {order_id} appended to ledger {self.path}")
                result["success"] = True
                result["message"] = f"Bill {order_id} exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Ledger lock timeout for bill {order_id}")

        return result

    def read_all(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with FileLock(str(self.lock_path), timeout=self.lock_timeout):
            return self._load().to_dict("records")

    def clear(self) -> None:
        for f in (self.path, self.lock_path):
            if f.exists():
                f.unlink()
        logger.info(f"Ledger {self.path} cleared")
