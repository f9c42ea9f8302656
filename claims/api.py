from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status

from entitlements.models import UsageSummary

from .models import (
    ApproveClaimRequest,
    AssignVendorRequest,
    ClaimListResponse,
    ClaimResponse,
    ClaimStats,
    CompleteClaimRequest,
    RejectClaimRequest,
    SubmitClaimRequest,
)
from .service import ClaimService

router = APIRouter()


def get_claim_service(request: Request) -> ClaimService:
    return request.app.state.claim_service


# User endpoints

@router.post(
    "/warranty-claims",
    response_model=ClaimResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Warranty Claims"],
)
def submit_claim(
    body: SubmitClaimRequest,
    user_id: str = Header(..., alias="X-User-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    claim = claims.submit_claim(user_id, body)
    return ClaimResponse(message="Warranty claim submitted successfully", claim=claim)


@router.get("/warranty-claims", response_model=ClaimListResponse, tags=["Warranty Claims"])
def list_my_claims(
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    user_id: str = Header(..., alias="X-User-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    return claims.list_user_claims(user_id, status, page, limit)


@router.get("/warranty-claims/{claim_id}", response_model=ClaimResponse, tags=["Warranty Claims"])
def get_my_claim(
    claim_id: str,
    user_id: str = Header(..., alias="X-User-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    return ClaimResponse(message="Warranty claim found", claim=claims.get_claim(claim_id, user_id))


@router.get("/subscriptions/{subscription_id}/usage", response_model=UsageSummary, tags=["Subscriptions"])
def get_usage(
    subscription_id: str,
    user_id: str = Header(..., alias="X-User-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    return claims.get_usage(subscription_id, user_id)


# Admin endpoints

@router.get("/admin/warranty-claims", response_model=ClaimListResponse, tags=["Admin"])
def list_claims(
    status: Optional[str] = None,
    search: Optional[str] = None,
    sortBy: str = "createdAt",
    sortOrder: str = "desc",
    page: int = 1,
    limit: int = 20,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    return claims.list_claims(status, search, sortBy, sortOrder, page, limit)


@router.get("/admin/warranty-claims/stats", response_model=ClaimStats, tags=["Admin"])
def claim_stats(
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    return claims.claim_stats()


@router.get("/admin/warranty-claims/{claim_id}", response_model=ClaimResponse, tags=["Admin"])
def get_claim(
    claim_id: str,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    return ClaimResponse(message="Warranty claim found", claim=claims.get_claim(claim_id))


@router.put("/admin/warranty-claims/{claim_id}/approve", response_model=ClaimResponse, tags=["Admin"])
def approve_claim(
    claim_id: str,
    body: ApproveClaimRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    claim = claims.approve_claim(claim_id, admin_id, body)
    return ClaimResponse(message="Warranty claim approved successfully", claim=claim)


@router.put("/admin/warranty-claims/{claim_id}/reject", response_model=ClaimResponse, tags=["Admin"])
def reject_claim(
    claim_id: str,
    body: RejectClaimRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    claim = claims.reject_claim(claim_id, admin_id, body)
    return ClaimResponse(message="Warranty claim rejected successfully", claim=claim)


@router.put("/admin/warranty-claims/{claim_id}/assign-vendor", response_model=ClaimResponse, tags=["Admin"])
def assign_vendor(
    claim_id: str,
    body: AssignVendorRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    claim = claims.assign_vendor(claim_id, admin_id, body)
    return ClaimResponse(message="Vendor assigned successfully", claim=claim)


@router.put("/admin/warranty-claims/{claim_id}/complete", response_model=ClaimResponse, tags=["Admin"])
def complete_claim(
    claim_id: str,
    body: CompleteClaimRequest,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    claim = claims.complete_claim(claim_id, admin_id, body)
    return ClaimResponse(message="Warranty claim completed successfully", claim=claim)


@router.put("/admin/warranty-claims/{claim_id}/reconcile-earning", response_model=ClaimResponse, tags=["Admin"])
def reconcile_earning(
    claim_id: str,
    admin_id: str = Header(..., alias="X-Admin-Id"),
    claims: ClaimService = Depends(get_claim_service),
):
    claim = claims.reconcile_earning(claim_id)
    return ClaimResponse(message="Vendor earning reconciled", claim=claim)
