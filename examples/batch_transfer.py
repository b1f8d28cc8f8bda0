#!/usr/bin/env python3
"""
Batch several transfers into one relayer call, falling back to one-by-one.
"""
import os
import sys

from smoothsend_sdk import BatchTransferRequest, LocalSigner, SmoothSendClient, SmoothSendError, TransferIntent


def main():
    private_key = os.environ.get("PRIVATE_KEY")
    recipients = sys.argv[1:]
    if not private_key or not recipients:
        print("usage: PRIVATE_KEY=0x... batch_transfer.py <recipient> [<recipient> ...]")
        return

    signer = LocalSigner(private_key)
    intents = [
        TransferIntent(
            from_address=signer.address,
            to_address=recipient,
            token_symbol="USDC",
            amount="100000",
            chain="avalanche"
        )
        for recipient in recipients
    ]

    with SmoothSendClient() as client:
        try:
            # Signing every transfer up front lets the relayer execute them atomically.
            # Assumes the batch contract consumes one nonce per transfer, in order.
            first_nonce = int(client.get_nonce(signer.address))
            submissions = [
                client.prepare_submission(intent, signer, nonce=str(first_nonce + index))
                for index, intent in enumerate(intents)
            ]
            result = client.batch_transfer(
                BatchTransferRequest(chain="avalanche", transfers=intents, submissions=submissions),
                signer
            )
            print(f"Batch relayed: {result.tx_hash}")
        except SmoothSendError as e:
            print(f"Batch failed ({e.code}): {e}")


if __name__ == "__main__":
    main()
