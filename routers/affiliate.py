# routers/affiliate.py

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import attribution_service
from app.db import get_db
from app.deps_auth import Identity, require_roles
from app.errors import MarketplaceError, to_http
from models.profiles import AppRole
from schemas.affiliate import (
    AffiliateLinkCreate,
    AffiliateLinkOut,
    AffiliateResolveOut,
    AffiliateSummaryOut,
)

router = APIRouter(prefix="/affiliate", tags=["Affiliate"])

affiliate_only = require_roles(AppRole.AFFILIATE)


# ---------------------------------------------------------
# Public: landing page (?ref=<code>)
# ---------------------------------------------------------
@router.get("/resolve/{code}", response_model=AffiliateResolveOut)
def resolve_code(code: str, db: Session = Depends(get_db)):
    try:
        link = attribution_service.resolve(db, code)
    except MarketplaceError as e:
        raise to_http(e)
    return AffiliateResolveOut(code=link.code, product_id=link.product_id)


@router.post("/click/{code}", status_code=status.HTTP_204_NO_CONTENT)
def record_click(code: str, db: Session = Depends(get_db)):
    try:
        attribution_service.record_click(db, code)
    except MarketplaceError as e:
        raise to_http(e)


# ---------------------------------------------------------
# Affiliate dashboard
# ---------------------------------------------------------
@router.post("/links", response_model=AffiliateLinkOut, status_code=status.HTTP_201_CREATED)
def create_link(
    payload: AffiliateLinkCreate,
    identity: Identity = Depends(affiliate_only),
    db: Session = Depends(get_db),
):
    try:
        link = attribution_service.create_link(
            db,
            affiliate_id=identity.user_id,
            product_id=payload.product_id,
        )
    except MarketplaceError as e:
        raise to_http(e)
    return AffiliateLinkOut.model_validate(link)


@router.get("/links", response_model=List[AffiliateLinkOut])
def my_links(
    identity: Identity = Depends(affiliate_only),
    db: Session = Depends(get_db),
):
    links = attribution_service.list_links(db, identity.user_id)
    return [AffiliateLinkOut.model_validate(link) for link in links]


@router.delete("/links/{link_id}", response_model=AffiliateLinkOut)
def deactivate_link(
    link_id: int,
    identity: Identity = Depends(affiliate_only),
    db: Session = Depends(get_db),
):
    try:
        link = attribution_service.deactivate_link(db, link_id=link_id, affiliate_id=identity.user_id)
    except MarketplaceError as e:
        raise to_http(e)
    return AffiliateLinkOut.model_validate(link)


@router.get("/summary", response_model=AffiliateSummaryOut)
def my_summary(
    identity: Identity = Depends(affiliate_only),
    db: Session = Depends(get_db),
):
    s = attribution_service.summary(db, identity.user_id)
    return AffiliateSummaryOut(
        total_links=s.total_links,
        total_clicks=s.total_clicks,
        total_conversions=s.total_conversions,
        total_earned=s.total_earned,
    )
