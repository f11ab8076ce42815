"""
Escrow Wallet Models

Enterprise multi-signature escrow wallet records and their append-only
audit trail. The multisig address is a placeholder keypair address; no
on-chain multisig account backs it.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.models.base import Base


class EscrowWallet(Base):
    __tablename__ = "escrow_wallets"

    id = Column(String, primary_key=True)  # ESC-<ms>-<client_id>-<suffix>
    client_id = Column(String, index=True, nullable=False)
    multisig_address = Column(String, nullable=False)
    signatory_addresses = Column(JSON, nullable=False)
    service_address = Column(String, nullable=False)
    required_signatures = Column(Integer, nullable=False)
    contract_value = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(8), nullable=False)  # SOL / USDC / FLBY
    status = Column(String(16), index=True, nullable=False, default="active")
    compliance_level = Column(String(16), nullable=False, default="bank-level")
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)

    audit_trail = relationship(
        "EscrowAuditEntry",
        back_populates="wallet",
        order_by="EscrowAuditEntry.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "multisig_address": self.multisig_address,
            "signatory_addresses": list(self.signatory_addresses or []),
            "service_address": self.service_address,
            "required_signatures": self.required_signatures,
            "contract_value": float(self.contract_value),
            "currency": self.currency,
            "status": self.status,
            "compliance_level": self.compliance_level,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "audit_trail": [entry.to_dict() for entry in self.audit_trail],
        }


class EscrowAuditEntry(Base):
    __tablename__ = "escrow_audit_entries"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(String, ForeignKey("escrow_wallets.id"), index=True, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    action = Column(String(32), nullable=False)  # WALLET_CREATED, FUNDS_RELEASED, ...
    actor = Column(String, nullable=False)
    transaction_hash = Column(String, nullable=True)
    amount = Column(Numeric(18, 9), nullable=True)
    notes = Column(Text, nullable=True)

    wallet = relationship("EscrowWallet", back_populates="audit_trail")

    def to_dict(self):
        return {
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "action": self.action,
            "actor": self.actor,
            "transaction_hash": self.transaction_hash,
            "amount": float(self.amount) if self.amount is not None else None,
            "notes": self.notes,
        }
