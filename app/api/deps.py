"""
Shared route dependencies
"""
from functools import lru_cache

from fastapi import HTTPException, Request

from app.exceptions import ScopeDeniedError
from app.services.auth_service import Principal
from app.services.dynamic_pricing_service import DynamicPricingService
from app.services.escrow_wallet_service import EscrowWalletService
from app.services.full_analysis_service import FullAnalysisService
from app.services.optimization_service import OptimizationService
from app.services.viral_content_service import ViralContentService


@lru_cache()
def get_pricing_service() -> DynamicPricingService:
    return DynamicPricingService()


@lru_cache()
def get_viral_service() -> ViralContentService:
    return ViralContentService()


@lru_cache()
def get_optimization_service() -> OptimizationService:
    return OptimizationService()


def get_full_analysis_service() -> FullAnalysisService:
    return FullAnalysisService(
        get_pricing_service(), get_viral_service(), get_optimization_service()
    )


@lru_cache()
def get_escrow_service() -> EscrowWalletService:
    return EscrowWalletService()


def require_scope(scope: str):
    """Route dependency: the request principal must hold `scope`"""
    def _check(request: Request) -> Principal:
        principal = getattr(request.state, "principal", None)
        if principal is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        try:
            principal.require(scope)
        except ScopeDeniedError as e:
            raise HTTPException(status_code=403, detail=str(e))
        return principal
    return _check
