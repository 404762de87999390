"""
Reward Oracle

A redundant, attesting reward signer for a period-based incentive protocol:
- Collects indexed debt and fee activity for a settlement period
- Computes a deterministic per-address reward distribution
- Signs every reward entry as EIP-712 typed data
- Stages the attestation with the coordination service and publishes on quorum
"""

__version__ = "0.1.0"
