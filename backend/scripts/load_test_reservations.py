"""Hammer a running server with concurrent reservations of the same items.

Tokens are minted locally, so JWT_SECRET_KEY must match the server's.
Run from the backend directory: ``python scripts/load_test_reservations.py``.
"""
import argparse
import asyncio
import time
from uuid import uuid4

import httpx

from app.core.security import create_access_token


def _headers(actor_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(actor_id)}"}


async def run(base_url: str, items: int, viewers: int) -> None:
    owner_id = uuid4()
    owner = _headers(owner_id)
    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        await client.post("/profiles", json={"username": f"load_{owner_id.hex[:10]}"}, headers=owner)
        wl = (await client.post("/wishlists", json={"name": "Load Test"}, headers=owner)).json()
        item_ids = []
        for i in range(items):
            res = await client.post(f"/wishlists/{wl['id']}/items", json={"name": f"Item {i}"}, headers=owner)
            item_ids.append(res.json()["id"])
        token = (await client.post("/shares", json={"wishlist_id": wl["id"]}, headers=owner)).json()["share_token"]

        latencies: list[float] = []
        statuses: dict[int, int] = {}

        async def attempt(item_id: str, headers: dict[str, str]) -> None:
            start = time.perf_counter()
            res = await client.patch(
                f"/shares/{token}",
                json={"itemId": item_id, "action": "reserve"},
                headers=headers,
            )
            latencies.append((time.perf_counter() - start) * 1000.0)
            statuses[res.status_code] = statuses.get(res.status_code, 0) + 1

        viewer_headers = [_headers(uuid4()) for _ in range(viewers)]
        await asyncio.gather(
            *[attempt(item_id, headers) for item_id in item_ids for headers in viewer_headers]
        )

        view = (await client.get(f"/shares/{token}")).json()
        reserved = sum(1 for item in view["items"] if item["status"] == "reserved")

        lat_sorted = sorted(latencies)
        p50 = lat_sorted[len(lat_sorted) // 2]
        p95 = lat_sorted[max(int(len(lat_sorted) * 0.95) - 1, 0)]
        print(
            f"items={items} viewers={viewers} statuses={statuses} "
            f"reserved={reserved} p50_ms={p50:.2f} p95_ms={p95:.2f}"
        )
        if statuses.get(200, 0) != reserved:
            raise SystemExit("more successful reservations than reserved items")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--items", type=int, default=10)
    parser.add_argument("--viewers", type=int, default=10)
    args = parser.parse_args()
    asyncio.run(run(args.base_url, args.items, args.viewers))


if __name__ == "__main__":
    main()
