"""Example demonstrating concurrent batch execution with the Courier SDK."""

import logging
import os

from courier.sdk.client import GatewayClient
from courier.sdk.config import get_config, load_dotenv_for_sdk


def main() -> None:
    """Fire three requests as one concurrent batch."""

    load_dotenv_for_sdk()
    logging.basicConfig(level=logging.INFO)
    base = os.getenv("EXAMPLE_BASE_URL", "https://httpbin.org")

    print("=== Courier SDK Batch Example ===\n")

    with GatewayClient(get_config()) as client:
        # 1. Register the requests; nothing is sent yet
        print("1. Creating requests...")
        slow = client.get(f"{base}/delay/1")
        fast = client.get(f"{base}/get", {"page": 1})
        missing = client.get(f"{base}/status/404")

        # 2. Run them concurrently
        print("\n2. Running batch...")
        results = client.execute_all()
        for result in results:
            print(f"   #{result.request_id} success={result.success} "
                  f"status={result.status_code} {result.elapsed_ms}ms")

        # 3. Results are cached on each request
        print("\n3. Reading cached results...")
        for name, request in (("slow", slow), ("fast", fast), ("missing", missing)):
            print(f"   {name}: {'ok' if request.is_success() else request.result.kind.value}")

    print("\n=== Example completed ===")


if __name__ == "__main__":
    main()
