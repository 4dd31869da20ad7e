#!/usr/bin/env python3
"""Script to file a signed test report against a running API."""

import asyncio
import json
import os
import sys

import httpx

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.auth import sign_client_body


async def send_report(reporter_id: int, target_kind: str, target_id: int, reason_code: str) -> None:
    """
    POST /reports as `reporter_id`, signing the body like a trusted client.
    """
    api_url = os.environ.get("API_URL", "http://localhost:8000") + "/reports"
    body = json.dumps({"target_kind": target_kind, "target_id": target_id, "reason_code": reason_code}).encode()
    headers = {
        "Content-Type": "application/json",
        "X-User-Id": str(reporter_id),
        "X-Client-Signature": sign_client_body(body),
    }

    async with httpx.AsyncClient() as client:
        try:
            response = await client.post(api_url, content=body, headers=headers, timeout=10.0)
            response.raise_for_status()

            result = response.json()
            print(f"Report {'created' if result.get('created') else 'updated'}")
            print(f"   Response: {result}")

        except httpx.HTTPStatusError as e:
            print(f"HTTP error: {e.response.status_code}")
            print(f"   Response: {e.response.text}")
        except httpx.HTTPError as e:
            print(f"Error: {e}")


def main() -> None:
    """Main entry point."""
    if len(sys.argv) != 5:
        print("Usage: python send_test_report.py <reporter_id> <kind> <target_id> <reason_code>")
        print("Example: python send_test_report.py 7 article 42 scam")
        sys.exit(1)

    reporter_id, target_kind, target_id, reason_code = sys.argv[1:]
    asyncio.run(send_report(int(reporter_id), target_kind, int(target_id), reason_code))


if __name__ == "__main__":
    main()
