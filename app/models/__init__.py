"""Database models for the Growth AI Engine"""

from app.models.pricing import PricingPerformance

from app.models.escrow import (
    EscrowWallet,
    EscrowAuditEntry
)

__all__ = [
    "PricingPerformance",
    "EscrowWallet",
    "EscrowAuditEntry",
]
