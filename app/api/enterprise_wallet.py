"""
Enterprise Escrow Wallet API Routes

All routes sit behind AuthMiddleware; each one additionally requires an
escrow scope on the caller's principal.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.api.deps import get_escrow_service, require_scope
from app.exceptions import WalletError, WalletNotFoundError
from app.models.base import get_db
from app.services.auth_service import SCOPE_ESCROW_READ, SCOPE_ESCROW_WRITE, Principal
from app.services.escrow_wallet_service import (
    CreateEscrowWallet,
    EscrowWalletService,
    ReleaseEscrowFunds,
)
from app.utils.logger import log

router = APIRouter(prefix="/api/enterprise/wallet", tags=["enterprise-wallet"])


class WalletActionRequest(BaseModel):
    reason: str = ""


def _invalid_request(e: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={
        "success": False,
        "error": "Invalid request data",
        "details": e.errors(include_url=False, include_context=False, include_input=False),
    })


def _wallet_error(e: WalletError) -> HTTPException:
    status = 404 if isinstance(e, WalletNotFoundError) else 400
    return HTTPException(status_code=status, detail=str(e))


@router.post("/create-escrow")
async def create_escrow(
    body: Any = Body(...),
    db: Session = Depends(get_db),
    service: EscrowWalletService = Depends(get_escrow_service),
    principal: Principal = Depends(require_scope(SCOPE_ESCROW_WRITE)),
):
    try:
        params = CreateEscrowWallet.model_validate(body)
    except ValidationError as e:
        return _invalid_request(e)

    try:
        wallet = service.create_escrow_wallet(db, params)
    except Exception as e:
        log.error(f"Escrow wallet creation failed for {params.client_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create escrow wallet")

    log.info(f"Escrow wallet {wallet.id} created by {principal.subject}")
    return {
        "success": True,
        "wallet": {
            "wallet_id": wallet.id,
            "multisig_address": wallet.multisig_address,
            "required_signatures": wallet.required_signatures,
            "total_signatories": len(wallet.signatory_addresses) + 1,
            "contract_value": float(wallet.contract_value),
            "currency": wallet.currency,
            "compliance_level": wallet.compliance_level,
            "status": wallet.status,
        },
        "message": "Enterprise escrow wallet created successfully",
    }


@router.post("/release-escrow")
async def release_escrow(
    body: Any = Body(...),
    db: Session = Depends(get_db),
    service: EscrowWalletService = Depends(get_escrow_service),
    principal: Principal = Depends(require_scope(SCOPE_ESCROW_WRITE)),
):
    try:
        params = ReleaseEscrowFunds.model_validate(body)
    except ValidationError as e:
        return _invalid_request(e)

    try:
        reference = service.release_escrow_funds(
            db,
            params.wallet_id,
            params.recipient_address,
            params.amount,
            params.signer_private_keys,
        )
    except WalletError as e:
        log.warning(f"Escrow release rejected for {params.wallet_id}: {e}")
        raise _wallet_error(e)

    log.info(f"Escrow release for {params.wallet_id} requested by {principal.subject}")
    return {
        "success": True,
        "transaction": {
            "reference": reference,
            "wallet_id": params.wallet_id,
            "recipient": params.recipient_address,
            "amount": params.amount,
            "timestamp": datetime.utcnow().isoformat(),
        },
        "message": "Escrow release recorded",
    }


@router.get("/{wallet_id}")
async def get_wallet(
    wallet_id: str,
    db: Session = Depends(get_db),
    service: EscrowWalletService = Depends(get_escrow_service),
    principal: Principal = Depends(require_scope(SCOPE_ESCROW_READ)),
):
    try:
        info = await service.get_wallet_info(db, wallet_id)
    except WalletError as e:
        raise _wallet_error(e)
    return {"success": True, "wallet": info}


@router.post("/{wallet_id}/lock")
async def lock_wallet(
    wallet_id: str,
    request: Optional[WalletActionRequest] = None,
    db: Session = Depends(get_db),
    service: EscrowWalletService = Depends(get_escrow_service),
    principal: Principal = Depends(require_scope(SCOPE_ESCROW_WRITE)),
):
    try:
        wallet = service.lock_wallet(db, wallet_id, principal.subject, request.reason if request else "")
    except WalletError as e:
        raise _wallet_error(e)
    return {"success": True, "wallet_id": wallet.id, "status": wallet.status}


@router.post("/{wallet_id}/dispute")
async def open_dispute(
    wallet_id: str,
    request: Optional[WalletActionRequest] = None,
    db: Session = Depends(get_db),
    service: EscrowWalletService = Depends(get_escrow_service),
    principal: Principal = Depends(require_scope(SCOPE_ESCROW_WRITE)),
):
    try:
        wallet = service.open_dispute(db, wallet_id, principal.subject, request.reason if request else "")
    except WalletError as e:
        raise _wallet_error(e)
    return {"success": True, "wallet_id": wallet.id, "status": wallet.status}


@router.get("/{wallet_id}/compliance-report")
async def compliance_report(
    wallet_id: str,
    db: Session = Depends(get_db),
    service: EscrowWalletService = Depends(get_escrow_service),
    principal: Principal = Depends(require_scope(SCOPE_ESCROW_READ)),
):
    try:
        report = await service.generate_compliance_report(db, wallet_id)
    except WalletError as e:
        raise _wallet_error(e)
    return {"success": True, "report": report}
