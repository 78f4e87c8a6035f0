# schemas/affiliate.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AffiliateLinkCreate(BaseModel):
    product_id: int


class AffiliateLinkOut(BaseModel):
    id: int
    affiliate_id: int
    product_id: int
    code: str
    clicks: int
    conversions: int
    commission_earned: int
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AffiliateResolveOut(BaseModel):
    code: str
    product_id: int


class AffiliateSummaryOut(BaseModel):
    total_links: int
    total_clicks: int
    total_conversions: int
    total_earned: int
