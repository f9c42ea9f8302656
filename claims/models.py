from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from core.models import CamelModel, Pagination
from entitlements.models import ServiceCategory
from wallet.models import JobBilling


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ClaimEvent(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN_VENDOR = "assign_vendor"
    COMPLETE = "complete"


class EarningPosting(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    PENDING = "pending"
    POSTED = "posted"
    FAILED = "failed"


TRANSITIONS: dict[tuple[ClaimStatus, ClaimEvent], ClaimStatus] = {
    (ClaimStatus.PENDING, ClaimEvent.APPROVE): ClaimStatus.APPROVED,
    (ClaimStatus.PENDING, ClaimEvent.REJECT): ClaimStatus.REJECTED,
    (ClaimStatus.APPROVED, ClaimEvent.ASSIGN_VENDOR): ClaimStatus.IN_PROGRESS,
    (ClaimStatus.APPROVED, ClaimEvent.COMPLETE): ClaimStatus.COMPLETED,
    (ClaimStatus.IN_PROGRESS, ClaimEvent.COMPLETE): ClaimStatus.COMPLETED,
}


class SubmitClaimRequest(CamelModel):
    subscription_id: str = Field(..., description="Business or internal subscription id")
    service_category: ServiceCategory
    issue_description: str
    plan_name: Optional[str] = None


class ApproveClaimRequest(CamelModel):
    admin_notes: Optional[str] = None


class RejectClaimRequest(CamelModel):
    rejection_reason: Optional[str] = None


class AssignVendorRequest(CamelModel):
    vendor_id: Optional[str] = None


class CompleteClaimRequest(CamelModel):
    completion_notes: Optional[str] = None
    billing: Optional[JobBilling] = None


class WarrantyClaim(CamelModel):
    id: str
    subscription_id: str
    user_id: str
    plan_name: str
    service_category: ServiceCategory
    issue_description: str
    status: ClaimStatus = ClaimStatus.PENDING
    admin_notes: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    assigned_vendor: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    completion_notes: Optional[str] = None
    billing: Optional[JobBilling] = None
    earning_posted: EarningPosting = EarningPosting.NOT_APPLICABLE
    earning_entry_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    def can(self, event: ClaimEvent) -> bool:
        return (self.status, event) in TRANSITIONS

    @property
    def case_id(self) -> str:
        return f"WC-{self.id}"


class ClaimResponse(CamelModel):
    success: bool = True
    message: str
    claim: WarrantyClaim


class ClaimListResponse(CamelModel):
    success: bool = True
    message: str = "Warranty claims retrieved"
    claims: list[WarrantyClaim]
    pagination: Pagination


class ClaimStats(CamelModel):
    success: bool = True
    message: str = "Warranty claim statistics retrieved"
    total: int
    by_status: dict[ClaimStatus, int]
