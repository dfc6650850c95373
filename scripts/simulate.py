"""
Concurrency Simulation Script

Drives a running API with concurrent requests to check that order
completion is exactly-once:

    orders  - fire N takeaway orders at once, then bill them all
    race    - create one order and fire N bill requests for it at once;
              exactly one must succeed, the rest must be conflicts

Run from project root (API on localhost:8001, worker optional):
    python scripts/simulate.py --user-id <admin profile id> --mode race
"""

import argparse
import asyncio
import os
import random
import sys
import time
import uuid
from datetime import datetime
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from restopos.core.security import create_token

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

API_BASE_URL = "http://localhost:8001"
TOTAL_REQUESTS = 20
PAYMENT_METHODS = ["CASH", "UPI", "CARD"]


def headers_for(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(uuid.UUID(user_id))}"}


async def available_items(client: httpx.AsyncClient, headers: dict[str, str]) -> list[dict[str, Any]]:
    response = await client.get(f"{API_BASE_URL}/api/menu", params={"available": "true"}, headers=headers)
    response.raise_for_status()
    items = response.json()["items"]
    if not items:
        raise SystemExit("No available menu items in the working outlet; create some first.")
    return items


def random_lines(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    picks = random.sample(items, k=min(len(items), random.randint(1, 3)))
    return [{"item_id": item["id"], "quantity": random.randint(1, 3)} for item in picks]


async def create_order(client: httpx.AsyncClient, headers: dict[str, str], lines: list[dict]) -> dict[str, Any]:
    response = await client.post(
        f"{API_BASE_URL}/api/orders",
        json={"order_type": "TAKEAWAY", "items": lines},
        headers=headers,
        timeout=30.0,
    )
    response.raise_for_status()
    return response.json()["order"]


async def send_bill(
    client: httpx.AsyncClient, headers: dict[str, str], order_id: str, attempt: int
) -> dict[str, Any]:
    """POST /api/billing/generate and classify the outcome."""
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_BASE_URL}/api/billing/generate",
            json={"order_id": order_id, "payment_method": random.choice(PAYMENT_METHODS)},
            headers=headers,
            timeout=30.0,
        )
    except httpx.HTTPError as e:
        return {"attempt": attempt, "outcome": "error", "error": str(e)[:100],
                "time": round(time.time() - start_time, 3)}

    elapsed = round(time.time() - start_time, 3)
    if response.status_code == 200:
        data = response.json()
        return {"attempt": attempt, "outcome": "billed", "total": data["total"],
                "partial_failure": data["partial_failure"], "time": elapsed}

    body = response.json()
    outcome = "conflict" if body.get("code") == "conflict" else "error"
    return {"attempt": attempt, "outcome": outcome, "error": body.get("error", "")[:100], "time": elapsed}


# =============================================================================
# SCENARIOS
# =============================================================================

async def run_race(client: httpx.AsyncClient, headers: dict[str, str], attempts: int) -> bool:
    items = await available_items(client, headers)
    order = await create_order(client, headers, random_lines(items))
    print(f"\n🧾 Order {order['id']} created, total {order['total']}")
    print(f"🚀 Firing {attempts} concurrent bill requests...\n")

    results = await asyncio.gather(*[send_bill(client, headers, order["id"], i + 1) for i in range(attempts)])

    billed = [r for r in results if r["outcome"] == "billed"]
    conflicts = [r for r in results if r["outcome"] == "conflict"]
    errors = [r for r in results if r["outcome"] == "error"]

    print(f"✅ Billed:    {len(billed)}")
    print(f"🔁 Conflicts: {len(conflicts)}")
    print(f"❌ Errors:    {len(errors)}")
    for r in errors[:5]:
        print(f"   Attempt #{r['attempt']}: {r['error']}")

    ok = len(billed) == 1 and not errors
    print("\n" + ("✅ Exactly-once billing holds" if ok else "⚠️ Exactly-once billing VIOLATED"))
    return ok


async def run_orders(client: httpx.AsyncClient, headers: dict[str, str], count: int) -> bool:
    items = await available_items(client, headers)
    print(f"\n🚀 Creating {count} orders concurrently...")
    orders = await asyncio.gather(*[create_order(client, headers, random_lines(items)) for _ in range(count)])

    print(f"🚀 Billing {len(orders)} orders concurrently...\n")
    results = await asyncio.gather(*[send_bill(client, headers, o["id"], i + 1) for i, o in enumerate(orders)])

    billed = [r for r in results if r["outcome"] == "billed"]
    partial = [r for r in billed if r["partial_failure"]]
    print(f"✅ Billed: {len(billed)}/{len(orders)}")
    print(f"⚠️  With partial failures: {len(partial)}")

    if billed:
        times = [r["time"] for r in billed]
        print("\n📈 Performance Metrics:")
        print(f"   Average Response: {round(sum(times) / len(times), 3)}s")
        print(f"   Fastest: {min(times)}s")
        print(f"   Slowest: {max(times)}s")
        print(f"   💰 Total Billed: {sum(r['total'] for r in billed):.2f}")

    return len(billed) == len(orders)


async def run_simulation(user_id: str, mode: str, count: int) -> bool:
    print("=" * 70)
    print("🔥 CONCURRENCY SIMULATION")
    print("=" * 70)
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"🔧 Mode: {mode} x {count}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    headers = headers_for(user_id)
    async with httpx.AsyncClient() as client:
        health = await client.get(f"{API_BASE_URL}/health")
        print(f"\n🩺 Health: {health.json().get('status')} {health.json().get('services')}")

        if mode == "race":
            ok = await run_race(client, headers, count)
        else:
            ok = await run_orders(client, headers, count)

    print("\n" + "=" * 70)
    print("🔍 NEXT: run `python scripts/verify.py` once the worker has drained")
    print("=" * 70)
    return ok


def main():
    parser = argparse.ArgumentParser(description="Concurrency simulation for the POS API")
    parser.add_argument("--user-id", required=True, help="Profile id of an admin or cashier")
    parser.add_argument("--mode", choices=["race", "orders"], default="race")
    parser.add_argument("--count", type=int, default=TOTAL_REQUESTS)
    args = parser.parse_args()

    ok = asyncio.run(run_simulation(args.user_id, args.mode, args.count))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
