"""
Bill ledger (spreadsheet export) tests.

Tests:
  1. A bill is appended as one row with its lines flattened
  2. Re-exporting the same bill is a no-op
  3. Clearing removes the spreadsheet
  4. The worker registers the ledger export as its only task
"""
import pytest

import restopos.tasks
from restopos.celery_worker import celery_app
from restopos.services.ledger import BillLedger


@pytest.fixture
def ledger(tmp_path):
    return BillLedger(path=str(tmp_path / "ledger" / "bills.xlsx"), lock_timeout=1)


def bill(order_id="5b1f6c2e-0000-4000-8000-000000000001", total=420.0):
    return {
        "order_id": order_id,
        "outlet_id": "outlet-1",
        "order_type": "DINE_IN",
        "table_name": "T1",
        "subtotal": 400.0,
        "tax": 20.0,
        "total": total,
        "payment_method": "CASH",
        "items": [{"name": "Paneer Tikka", "quantity": 2, "price": 200.0}],
        "billed_by": "Ravi Cashier",
    }


def test_append_writes_one_row(ledger):
    result = ledger.append_bill(bill())

    assert result["success"], result["message"]
    assert result["exported_at"] is not None

    rows = ledger.read_all()
    assert len(rows) == 1
    assert rows[0]["items"] == "2x Paneer Tikka @ 200.0"
    assert rows[0]["total"] == 420.0
    assert rows[0]["payment_method"] == "CASH"


def test_duplicate_bill_is_not_written_twice(ledger):
    ledger.append_bill(bill())
    again = ledger.append_bill(bill(total=999.0))

    assert again["success"]
    assert "already" in again["message"]
    assert [row["total"] for row in ledger.read_all()] == [420.0]


def test_bills_accumulate(ledger):
    ledger.append_bill(bill("a"))
    ledger.append_bill(bill("b"))

    assert [row["order_id"] for row in ledger.read_all()] == ["a", "b"]


def test_clear_removes_file(ledger):
    ledger.append_bill(bill())
    ledger.clear()

    assert ledger.read_all() == []


def test_worker_registers_only_the_ledger_export():
    names = {name for name in celery_app.tasks if not name.startswith("celery.")}

    assert names == {restopos.tasks.export_bill_to_ledger.name}
    assert restopos.tasks.export_bill_to_ledger.name == "restopos.tasks.export_bill_to_ledger"
