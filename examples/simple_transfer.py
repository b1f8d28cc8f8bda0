#!/usr/bin/env python3
"""
Simple example of a gasless USDC transfer with the SmoothSend SDK.
"""
import logging
import os

from smoothsend_sdk import LocalSigner, SmoothSendClient, SmoothSendError, TransferIntent


def main():
    """
    Demonstrate basic usage of the SmoothSendClient.

    This example shows how to:
    1. Initialize the client
    2. Watch the transfer lifecycle through events
    3. Send a transfer without holding any gas token
    """
    logging.basicConfig(level=logging.INFO)

    # Read configuration from environment
    PRIVATE_KEY = os.environ.get("PRIVATE_KEY")
    RECIPIENT = os.environ.get("RECIPIENT")
    AMOUNT = os.environ.get("AMOUNT", "1000000")  # 1 USDC, 6 decimals

    # Verify configuration
    if not PRIVATE_KEY:
        print("ERROR: PRIVATE_KEY environment variable is required")
        return

    if not RECIPIENT or not SmoothSendClient.validate_address(RECIPIENT):
        print("ERROR: RECIPIENT must be set to a valid address")
        return

    signer = LocalSigner(PRIVATE_KEY)
    intent = TransferIntent(
        from_address=signer.address,
        to_address=RECIPIENT,
        token_symbol="USDC",
        amount=AMOUNT,
        chain="avalanche"
    )

    # SMOOTHSEND_API_URL overrides the default relayer
    with SmoothSendClient() as client:
        client.add_event_listener(lambda event: print(f"[{event.type.value}] {event.data}"))

        quote = client.get_quote(intent)
        print(f"Relayer fee: {quote.relayer_fee} (total {quote.total})")

        try:
            result = client.transfer(intent, signer)
            print(f"Transfer confirmed!")
            print(f"Transaction hash: {result.tx_hash}")
            print(f"Explorer: {result.explorer_url}")
        except SmoothSendError as e:
            print(f"Transfer failed at step '{e.step}' ({e.code}): {e}")


if __name__ == "__main__":
    main()
