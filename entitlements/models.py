from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

UNLIMITED = "unlimited"


class ServiceCategory(str, Enum):
    WARRANTY_CLAIM = "warranty-claim"
    REMOTE_SUPPORT = "remote-support"
    HOME_VISIT = "home-visit"
    CALL_SUPPORT = "call-support"


# Categories a warranty claim can be raised for
CLAIMABLE_CATEGORIES = (ServiceCategory.REMOTE_SUPPORT, ServiceCategory.HOME_VISIT)


class QuotaOverridePolicy(str, Enum):
    STRICT = "strict"
    ALLOW_RESET_FOR_TESTING = "allow-reset-for-testing"


class Entitlement(BaseModel):
    limit: Union[Literal["unlimited"], Annotated[int, Field(ge=0)]]
    used: int = Field(default=0, ge=0)
    remaining: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _sync_remaining(self) -> "Entitlement":
        self.recompute()
        return self

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED

    def recompute(self) -> None:
        if not self.is_unlimited:
            self.remaining = max(0, self.limit - self.used)


class Subscription(BaseModel):
    id: str
    subscription_id: str
    user_id: str
    plan_name: str
    start_date: datetime
    end_date: datetime
    entitlements: dict[ServiceCategory, Entitlement] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start_date", "end_date")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps from imports are UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.end_date < (now or datetime.now(timezone.utc))


class EntitlementUsage(BaseModel):
    limit: Union[Literal["unlimited"], int]
    used: int
    remaining: Union[Literal["unlimited"], int]


class UsageSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str = "Subscription usage retrieved"
    subscription_id: str
    plan_name: str
    expired: bool
    usage: dict[ServiceCategory, EntitlementUsage]
