"""Example demonstrating deferred requests and chained callbacks."""

import os

from courier.sdk.client import GatewayClient
from courier.sdk.config import get_config


def main() -> None:
    """Defer a request whose callback defers a follow-up request."""

    base = os.getenv("EXAMPLE_BASE_URL", "https://httpbin.org")

    print("=== Courier SDK Deferred Example ===\n")

    with GatewayClient(get_config()) as client:

        def on_listing(request, label):
            print(f"   {label} finished: {request.is_success()}")
            detail = client.get(f"{base}/anything/{{item_id}}", {"item_id": 42})
            detail.defer(lambda r: print(f"   detail finished: {r.is_success()}"))

        client.get(f"{base}/get", {"q": "books"}).defer(on_listing, "listing")

        # The flush runs the listing, then the detail its callback deferred
        print("Flushing deferred requests...")
        client.flush_deferred()

    print("\n=== Example completed ===")


if __name__ == "__main__":
    main()
