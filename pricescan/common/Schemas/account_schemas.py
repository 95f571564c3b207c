from __future__ import annotations
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from pricescan.common.Schemas.product_schemas import CamelModel

class LoginRequest(CamelModel):
    """Profile already verified by the identity provider."""
    id: str = Field(..., min_length=1)
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None

class UserOut(CamelModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    subscription_tier: str = "free"
    subscription_expires_at: Optional[datetime] = None

class SubscriptionPlan(CamelModel):
    id: str
    name: str
    price: str
    currency: str = "USD"
    interval: str = "month"
    features: List[str] = Field(default_factory=list)
    daily_scan_limit: Optional[int] = None  # None = unlimited
    price_alerts: bool = False
    bulk_scanning: bool = False
    analytics: bool = False
    api_access: bool = False

class SubscriptionStatus(CamelModel):
    is_active: bool
    tier: str
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None

class ScanLimit(CamelModel):
    can_scan: bool
    scans_used: int
    scans_remaining: int  # -1 = unlimited
    reset_time: Optional[datetime] = None

class SubscriptionStatusOut(SubscriptionStatus):
    scan_limit: Optional[ScanLimit] = None

class SubscribeRequest(CamelModel):
    plan_id: str

class AffiliateClickRequest(CamelModel):
    product_id: int
    retailer_id: int
    url: str = Field(..., min_length=1)

class AffiliateClickOut(CamelModel):
    url: str

class AnalyticsOut(CamelModel):
    total_scans: int
    total_best_price: float
    average_best_price: float
    favorites_count: int
    eco_products: int
    average_eco_score: float
    total_certifications: int
