"""
Services Layer for the Eligibility Engine.

- edi: X12 270/271 codecs, clearinghouse transport, billability and the
  eligibility orchestrator
- adapters: payer, contract and provider directories (demo/live)
"""
