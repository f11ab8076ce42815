"""
Escrow Wallet Service

Enterprise multi-signature escrow wallet records: create, inspect, release,
lock, dispute, and compliance reporting.

Wallet records and their audit trail are persisted; chain data (balance,
recent transactions) is read from the Solana RPC node. The multisig address
is a freshly generated placeholder keypair and releases are recorded as
ledger events only; no on-chain multisig account or transfer is created.
"""
import hashlib
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional, Union

import base58
import httpx
from pydantic import BaseModel, Field, field_validator, model_validator
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from sqlalchemy.orm import Session

from app.config import get_settings
from app.connectors.solana_rpc import SolanaRPCConnector, SolanaRPCError
from app.exceptions import (
    InsufficientSignaturesError,
    WalletError,
    WalletNotFoundError,
    WalletStateError,
)
from app.models.escrow import EscrowAuditEntry, EscrowWallet
from app.utils.helpers import now_ms, random_suffix
from app.utils.logger import log

MIN_CONTRACT_VALUE = 200_000
NON_COMPLIANT_CONTRACT_VALUE = 1_000_000
REVIEW_VOLUME_RATIO = 1.1


def _validate_pubkey(address: str) -> str:
    try:
        Pubkey.from_string(address)
    except Exception as e:  # solders raises its own parse errors
        raise ValueError(f"Invalid Solana address: {address}") from e
    return address


class CreateEscrowWallet(BaseModel):
    """Enterprise escrow wallet request"""
    client_id: str = Field(min_length=1)
    contract_value: float = Field(ge=MIN_CONTRACT_VALUE)
    currency: Literal["SOL", "USDC", "FLBY"]
    signatories: List[str] = Field(min_length=2, max_length=5)
    required_signatures: int = Field(ge=2, le=5)
    expiration_date: Optional[datetime] = None
    compliance_level: Literal["standard", "enhanced", "bank-level"] = "bank-level"

    @field_validator("signatories")
    @classmethod
    def _signatories_are_addresses(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("Signatories must be distinct")
        return [_validate_pubkey(addr) for addr in value]

    @model_validator(mode="after")
    def _threshold_reachable(self):
        # The service key is an extra signatory
        if self.required_signatures > len(self.signatories) + 1:
            raise ValueError("required_signatures exceeds the number of signatories")
        return self


class ReleaseEscrowFunds(BaseModel):
    wallet_id: str
    recipient_address: str
    amount: float = Field(gt=0)
    signer_private_keys: List[str] = Field(min_length=1)

    @field_validator("recipient_address")
    @classmethod
    def _recipient_is_address(cls, value: str) -> str:
        return _validate_pubkey(value)


def keypair_from_base58(secret: str) -> Keypair:
    try:
        return Keypair.from_bytes(base58.b58decode(secret))
    except Exception as e:
        raise WalletError("Invalid signer private key") from e


def keypair_to_base58(keypair: Keypair) -> str:
    return base58.b58encode(bytes(keypair)).decode()


def assess_compliance(contract_value: float, compliance_level: str, total_volume: float) -> str:
    if contract_value > NON_COMPLIANT_CONTRACT_VALUE and compliance_level != "bank-level":
        return "non_compliant"
    if total_volume > contract_value * REVIEW_VOLUME_RATIO:
        return "requires_review"
    return "compliant"


def load_service_keypair(secret: Optional[str]) -> Keypair:
    if not secret:
        log.warning("SERVICE_PRIVATE_KEY not set. Using an ephemeral service keypair for development.")
        return Keypair()
    return keypair_from_base58(secret)


class EscrowWalletService:
    """
    Escrow wallet lifecycle: active -> released, active -> locked,
    active/locked -> disputed.
    """

    def __init__(
        self,
        rpc: Optional[SolanaRPCConnector] = None,
        service_keypair: Optional[Keypair] = None,
    ):
        self.rpc = rpc or SolanaRPCConnector()
        self.service_keypair = service_keypair or load_service_keypair(
            get_settings().service_private_key
        )

    @property
    def service_address(self) -> str:
        return str(self.service_keypair.pubkey())

    def create_escrow_wallet(
        self, db: Session, params: Union[CreateEscrowWallet, Dict]
    ) -> EscrowWallet:
        """
        Raises pydantic.ValidationError for invalid params before anything
        is created.
        """
        if not isinstance(params, CreateEscrowWallet):
            params = CreateEscrowWallet.model_validate(params)

        multisig_address = str(Keypair().pubkey())
        wallet = EscrowWallet(
            id=f"ESC-{now_ms()}-{params.client_id}-{random_suffix(6)}",
            client_id=params.client_id,
            multisig_address=multisig_address,
            signatory_addresses=list(params.signatories),
            service_address=self.service_address,
            required_signatures=params.required_signatures,
            contract_value=Decimal(str(params.contract_value)),
            currency=params.currency,
            status="active",
            compliance_level=params.compliance_level,
            expires_at=params.expiration_date,
        )
        wallet.audit_trail.append(EscrowAuditEntry(
            action="WALLET_CREATED",
            actor="SYSTEM",
            notes=f"Multi-sig escrow wallet created for {params.currency} {params.contract_value:,.2f}",
        ))
        db.add(wallet)
        db.commit()
        db.refresh(wallet)

        log.info(
            f"Escrow wallet created: {wallet.id} client={wallet.client_id} "
            f"{wallet.currency} {params.contract_value:,.2f} multisig={multisig_address} "
            f"threshold={wallet.required_signatures}/{len(params.signatories) + 1}"
        )
        return wallet

    def get_wallet(self, db: Session, wallet_id: str) -> EscrowWallet:
        wallet = db.query(EscrowWallet).filter(EscrowWallet.id == wallet_id).first()
        if wallet is None:
            raise WalletNotFoundError(wallet_id)
        return wallet

    async def get_wallet_info(self, db: Session, wallet_id: str) -> Dict:
        """Wallet metadata plus chain balance and recent transactions."""
        wallet = self.get_wallet(db, wallet_id)

        balance, transactions, chain_error = 0.0, [], None
        try:
            balance = await self.rpc.get_balance(wallet.multisig_address)
            transactions = await self.rpc.get_recent_transactions(wallet.multisig_address)
        except (httpx.HTTPError, SolanaRPCError) as e:
            chain_error = str(e)
            log.warning(f"Chain lookup failed for {wallet_id}: {e}")

        return {
            "metadata": wallet.to_dict(),
            "balance": balance,
            "transactions": transactions,
            "chain_error": chain_error,
        }

    def release_escrow_funds(
        self,
        db: Session,
        wallet_id: str,
        recipient_address: str,
        amount: float,
        signer_private_keys: List[str],
    ) -> str:
        """
        Record a release authorized by enough distinct wallet signatories.
        Returns the release reference stored in the audit trail.
        """
        wallet = self.get_wallet(db, wallet_id)
        if wallet.status != "active":
            raise WalletStateError(f"Wallet is not in active status (status: {wallet.status})")

        authorized = set(wallet.signatory_addresses or []) | {wallet.service_address}
        signers = set()
        for secret in signer_private_keys:
            address = str(keypair_from_base58(secret).pubkey())
            if address in authorized:
                signers.add(address)

        if len(signers) < wallet.required_signatures:
            raise InsufficientSignaturesError(wallet.required_signatures, len(signers))

        released_at = datetime.utcnow()
        reference = hashlib.sha256(
            f"{wallet.id}|{recipient_address}|{amount}|{released_at.isoformat()}".encode()
        ).hexdigest()

        wallet.status = "released"
        wallet.audit_trail.append(EscrowAuditEntry(
            timestamp=released_at,
            action="FUNDS_RELEASED",
            actor="MULTI_SIG",
            transaction_hash=reference,
            amount=Decimal(str(amount)),
            notes=f"Funds released to {recipient_address} ({len(signers)} signatures)",
        ))
        db.commit()
        log.info(f"Escrow release recorded for {wallet_id}: {amount} {wallet.currency} -> {recipient_address}")
        return reference

    def lock_wallet(self, db: Session, wallet_id: str, actor: str, reason: str = "") -> EscrowWallet:
        wallet = self.get_wallet(db, wallet_id)
        if wallet.status != "active":
            raise WalletStateError(f"Only active wallets can be locked (status: {wallet.status})")
        return self._transition(db, wallet, "locked", "WALLET_LOCKED", actor, reason)

    def open_dispute(self, db: Session, wallet_id: str, actor: str, reason: str = "") -> EscrowWallet:
        wallet = self.get_wallet(db, wallet_id)
        if wallet.status not in ("active", "locked"):
            raise WalletStateError(f"Wallet cannot be disputed (status: {wallet.status})")
        return self._transition(db, wallet, "disputed", "DISPUTE_OPENED", actor, reason)

    def _transition(
        self, db: Session, wallet: EscrowWallet, status: str, action: str, actor: str, notes: str
    ) -> EscrowWallet:
        wallet.status = status
        wallet.audit_trail.append(EscrowAuditEntry(action=action, actor=actor, notes=notes or None))
        db.commit()
        db.refresh(wallet)
        log.info(f"Audit entry added for {wallet.id}: {action} by {actor}")
        return wallet

    async def generate_compliance_report(self, db: Session, wallet_id: str) -> Dict:
        info = await self.get_wallet_info(db, wallet_id)
        metadata = info["metadata"]

        released_volume = sum(
            entry["amount"] or 0.0
            for entry in metadata["audit_trail"]
            if entry["action"] == "FUNDS_RELEASED"
        )
        chain_volume = sum(abs(tx.get("amount") or 0.0) for tx in info["transactions"])
        total_volume = released_volume + chain_volume

        return {
            "wallet_id": metadata["id"],
            "client_id": metadata["client_id"],
            "contract_value": metadata["contract_value"],
            "currency": metadata["currency"],
            "created_at": metadata["created_at"],
            "status": metadata["status"],
            "total_transactions": len(info["transactions"]),
            "total_volume": total_volume,
            "audit_trail": metadata["audit_trail"],
            "compliance_status": assess_compliance(
                metadata["contract_value"], metadata["compliance_level"], total_volume
            ),
        }
