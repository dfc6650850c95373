"""
Bill Ledger Verification Script

Checks the integrity of the spreadsheet the worker appends bills to.
Run from project root: python scripts/verify.py [--path data/bills.xlsx]
"""

import argparse
import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from restopos.services.ledger import BillLedger


def verify_ledger(path: str = None) -> bool:
    """Verify ledger integrity after a simulation run."""
    ledger = BillLedger(path=path)

    print("=" * 60)
    print("🔍 BILL LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {ledger.path}")
    print("=" * 60)

    if not ledger.path.exists():
        print("\n❌ Ledger file not found!")
        print("   Generate some bills first: python scripts/simulate.py --user-id <id>")
        return False

    df = pd.DataFrame(ledger.read_all(), columns=BillLedger.COLUMNS)
    print(f"\n📊 STATISTICS:")
    print(f"   Bills: {len(df)}")

    ok = True

    # A retried export must never add a second row
    duplicates = int(df["order_id"].duplicated().sum())
    if duplicates:
        print(f"\n⚠️ {duplicates} duplicate order IDs found!")
        ok = False
    else:
        print("✅ No duplicate order IDs")

    mismatched = df[(df["subtotal"] + df["tax"] - df["total"]).abs() > 0.005]
    if len(mismatched):
        print(f"⚠️ {len(mismatched)} bill(s) where total != subtotal + tax")
        ok = False
    else:
        print("✅ Every total equals subtotal + tax")

    if len(df):
        print(f"\n💰 REVENUE:")
        print(f"   Total: {df['total'].sum():.2f}")
        print(f"   Average: {df['total'].mean():.2f}")
        for method, amount in df.groupby("payment_method")["total"].sum().items():
            print(f"   {method}: {amount:.2f}")

        print(f"\n📋 RECENT BILLS:")
        print("-" * 60)
        print(df[["order_id", "payment_method", "total", "billed_at"]].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION PASSED" if ok else "❌ VERIFICATION FAILED")
    print("=" * 60)
    return ok


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Verify the bill ledger spreadsheet")
    parser.add_argument("--path", default=None, help="Ledger file (defaults to settings)")
    args = parser.parse_args()
    sys.exit(0 if verify_ledger(args.path) else 1)
