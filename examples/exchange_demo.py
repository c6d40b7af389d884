# examples/exchange_demo.py
# Run with: python examples/exchange_demo.py
#
# Sends a few messages through an in-memory ledger, mines the transfers they
# queue, then shows that editing a recorded message is detected.

from dataclasses import replace

from cipherledger import (
    Blockchain,
    ChainVerifier,
    ExchangeRequest,
    MessageExchange,
    TransactionLedger,
)
from cipherledger.exchange.orchestrator import ScriptedInputSource


if __name__ == "__main__":
    ledger = Blockchain()
    accounting = TransactionLedger(Blockchain(), difficulty=2, max_attempts=1_000_000)
    exchange = MessageExchange(ledger, accounting=accounting)

    print("\n[Exchanging messages...]")
    records = exchange.run(ScriptedInputSource([
        ExchangeRequest("Alice", "Bob", "Lunch at noon?", another=True),
        ExchangeRequest("Bob", "Alice", "Sure, the usual place.", another=True),
        ExchangeRequest("Alice", "Carol", "Unsigned note", sign=False),
    ]))

    print("\n[Ledger]")
    for block in ledger.get_chain():
        prev = block.previous_hash[:12] + "..."
        if block.payload is None:
            print(f"  [{block.index}] (genesis)  | {prev}")
            continue
        signed = "signed" if block.payload["signature"] else "unsigned"
        print(f"  [{block.index}] {block.payload['sender']:5} -> {block.payload['recipient']:5} | {prev} | {signed}")

    print("\n[Balances after mining]")
    for address, amount in exchange.settle("miner").items():
        print(f"  {address:6} {amount:5d}")
    print(f"  mined block hash: {accounting.chain.last_block.hash[:16]}...")

    print("\n[Verification]")
    verifier = ChainVerifier(trusted_keys=exchange.public_keys)
    chain = ledger.get_chain()
    print(f"  Valid: {verifier.verify(chain).is_valid}")

    print("\n[Tamper detection]")
    tampered = chain.copy()
    tampered[1] = replace(tampered[1], payload=dict(tampered[1].payload, decryptedMessage="TAMPERED!"))
    result = verifier.verify(tampered)
    print(f"  Tampering detected: {not result.is_valid}")
    print(f"  {result}")

    print("\n" + "=" * 60)
    print(f"{len(records)} messages recorded, chain length {ledger.length}")
