"""Seed script for development data.

Run with:  python -m leave_ledger.seed   (against an API on localhost:8000)
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date, timedelta

import httpx

BASE_URL = "http://localhost:8000"
ADMIN_USER_ID = "00000000-0000-0000-0000-000000000001"

HEADERS = {
    "Content-Type": "application/json",
    "X-User-Id": ADMIN_USER_ID,
    "X-Role": "admin",
}

# Well-known employee UUIDs
ALICE_ID = "00000000-0000-0000-0000-000000000002"
BOB_ID = "00000000-0000-0000-0000-000000000003"
CAROL_ID = "00000000-0000-0000-0000-000000000004"

EMPLOYEES = [
    {
        "id": ALICE_ID,
        "first_name": "Alice",
        "last_name": "Johnson",
        "email": "alice.johnson@example.com",
        "department": "Engineering",
        "hire_date": "2023-01-15",
    },
    {
        "id": BOB_ID,
        "first_name": "Bob",
        "last_name": "Smith",
        "email": "bob.smith@example.com",
        "department": "Finance",
        "hire_date": "2024-06-01",
    },
    {
        "id": CAROL_ID,
        "first_name": "Carol",
        "last_name": "Williams",
        "email": "carol.williams@example.com",
        "department": "Operations",
        "employment_start_date": "2025-03-10",
    },
]

LEAVE_TYPES = [
    {"name": "Annual", "accrual_policy": "MONTHLY_ACCRUAL", "accrual_rate_days": 2.0, "annual_cap_days": 24.0},
    {"name": "Sick", "accrual_policy": "FLAT", "max_days": 10},
    {"name": "Compassionate", "accrual_policy": "FLAT", "max_days": 5},
]


def _employee_headers(employee_id: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "X-User-Id": employee_id, "X-Role": "employee"}


async def _safe_post(
    client: httpx.AsyncClient,
    url: str,
    json: dict,
    label: str,
    headers: dict[str, str] | None = None,
) -> dict | None:
    """POST with 409-conflict tolerance for idempotency."""
    resp = await client.post(url, json=json, headers=headers or HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} ({resp.json().get('code', 'conflict')})")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def _safe_put(client: httpx.AsyncClient, url: str, json: dict, label: str) -> dict | None:
    """PUT (upsert), naturally idempotent."""
    resp = await client.put(url, json=json, headers=HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_employees(client: httpx.AsyncClient) -> None:
    """Seed employees via PUT (upsert)."""
    print("\n--- Seeding employees ---")
    for emp in EMPLOYEES:
        emp_id = emp["id"]
        body = {k: v for k, v in emp.items() if k != "id"}
        await _safe_put(
            client,
            f"{BASE_URL}/employees/{emp_id}",
            body,
            f"{emp['first_name']} {emp['last_name']}",
        )


async def seed_leave_types(client: httpx.AsyncClient) -> dict[str, str]:
    """Seed leave types and return a name->id mapping."""
    print("\n--- Seeding leave types ---")
    for leave_type in LEAVE_TYPES:
        await _safe_post(client, f"{BASE_URL}/leave-types", leave_type, f"Leave type: {leave_type['name']}")

    resp = await client.get(f"{BASE_URL}/leave-types", headers=HEADERS)
    resp.raise_for_status()
    return {item["name"]: item["id"] for item in resp.json()["items"]}


async def seed_requests(client: httpx.AsyncClient, leave_type_ids: dict[str, str]) -> None:
    """Seed leave requests: one pending annual leave, one approved sick day."""
    print("\n--- Seeding requests ---")
    today = date.today()

    annual_id = leave_type_ids.get("Annual")
    if annual_id:
        start = today + timedelta(days=14)
        await _safe_post(
            client,
            f"{BASE_URL}/leave-requests",
            {
                "leave_type_id": annual_id,
                "start_date": start.isoformat(),
                "end_date": (start + timedelta(days=4)).isoformat(),
                "reason": "Family vacation",
            },
            "Request: Alice 5-day annual leave (PENDING)",
            headers=_employee_headers(ALICE_ID),
        )

    sick_id = leave_type_ids.get("Sick")
    if sick_id:
        start = today + timedelta(days=3)
        result = await _safe_post(
            client,
            f"{BASE_URL}/leave-requests",
            {
                "leave_type_id": sick_id,
                "start_date": start.isoformat(),
                "end_date": start.isoformat(),
                "reason": "Doctor appointment",
            },
            "Request: Bob 1-day sick leave",
            headers=_employee_headers(BOB_ID),
        )
        if result:
            resp = await client.post(f"{BASE_URL}/leave-requests/{result['id']}/approve", headers=HEADERS)
            if resp.status_code == 200:
                print("  [OK] Approved Bob's sick leave request")
            elif resp.status_code == 400:
                print("  [SKIP] Bob's request already decided")
            else:
                print(f"  [ERROR] Approving Bob's request: {resp.status_code}")


async def run_accruals(client: httpx.AsyncClient) -> None:
    """Run the monthly batch for the current month."""
    print("\n--- Running accruals ---")
    resp = await client.post(f"{BASE_URL}/accruals/process", headers=HEADERS)
    if resp.status_code == 200:
        body = resp.json()
        print(f"  [OK] {body['month']}: processed={body['processed']} skipped={body['skipped']} errors={body['errors']}")
    else:
        print(f"  [ERROR] Accrual run: {resp.status_code} {resp.text[:200]}")


async def main() -> None:
    print("=" * 60)
    print("  Leave Ledger: Development Seed Script")
    print("=" * 60)

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            sys.exit(1)

        await seed_employees(client)
        leave_type_ids = await seed_leave_types(client)
        await run_accruals(client)
        await seed_requests(client, leave_type_ids)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
