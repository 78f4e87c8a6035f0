# app/attribution_service.py

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import DuplicateAffiliateLink, MarketplaceError, NotFound
from models.affiliate_links import AffiliateLink
from models.products import Product, ProductStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AffiliateSummary:
    total_links: int
    total_clicks: int
    total_conversions: int
    total_earned: int


def generate_link_code(prefix: Optional[str] = None) -> str:
    raw = uuid.uuid4().hex[:8].upper()
    return f"{prefix or settings.affiliate_code_prefix}-{raw}"


def _normalize_code(code: Optional[str]) -> str:
    return (code or "").strip()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_usable(link: AffiliateLink, now: Optional[datetime] = None) -> bool:
    if not link.is_active:
        return False
    if link.expires_at is not None:
        now = now or datetime.now(timezone.utc)
        if _as_utc(link.expires_at) <= now:
            return False
    return True


# -------------------------------------------------
# Resolution (read only)
# -------------------------------------------------
def find_active_link(db: Session, code: Optional[str]) -> Optional[AffiliateLink]:
    """
    Unknown, deactivated or expired codes give None: the checkout then goes on
    as a direct sale.
    """
    code = _normalize_code(code)
    if not code:
        return None

    link = db.query(AffiliateLink).filter(AffiliateLink.code == code).first()
    if link is None or not is_usable(link):
        return None
    return link


def resolve(db: Session, code: Optional[str]) -> AffiliateLink:
    link = find_active_link(db, code)
    if link is None:
        raise NotFound("Affiliate code not found.")
    return link


# -------------------------------------------------
# Counters (atomic increments)
# -------------------------------------------------
def record_click(db: Session, code: Optional[str]) -> None:
    """Page-view click counting. Independent of checkout, commits on its own."""
    link = resolve(db, code)

    db.query(AffiliateLink).filter(AffiliateLink.id == link.id).update(
        {AffiliateLink.clicks: AffiliateLink.clicks + 1},
        synchronize_session=False,
    )
    db.commit()
    logger.info("AFFILIATE: click | link_id=%s | code=%s", link.id, link.code)


def record_conversion(db: Session, link_id: int, commission: int) -> None:
    """Bump conversions/commission_earned. Runs inside the settlement transaction."""
    updated = (
        db.query(AffiliateLink)
        .filter(AffiliateLink.id == link_id)
        .update(
            {
                AffiliateLink.conversions: AffiliateLink.conversions + 1,
                AffiliateLink.commission_earned: AffiliateLink.commission_earned + commission,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise NotFound(f"Affiliate link {link_id} not found.")


# -------------------------------------------------
# Link creation
# -------------------------------------------------
def _existing_link(db: Session, affiliate_id: int, product_id: int) -> Optional[AffiliateLink]:
    return (
        db.query(AffiliateLink)
        .filter(
            AffiliateLink.affiliate_id == affiliate_id,
            AffiliateLink.product_id == product_id,
        )
        .first()
    )


def create_link(
    db: Session,
    *,
    affiliate_id: int,
    product_id: int,
    code_factory: Callable[[], str] = generate_link_code,
    attempts: Optional[int] = None,
) -> AffiliateLink:
    """
    Create the (affiliate, product) link with a fresh unique code.

    The store enforces code uniqueness; a collision rolls back to a savepoint
    and retries with a new code.
    """
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product or product.status != ProductStatus.APPROVED:
        raise NotFound("Product not found or not approved.")

    if _existing_link(db, affiliate_id, product_id):
        raise DuplicateAffiliateLink("Affiliate link already exists for this product.")

    max_attempts = attempts or settings.affiliate_code_attempts

    for attempt in range(1, max_attempts + 1):
        code = code_factory()
        link = AffiliateLink(
            affiliate_id=affiliate_id,
            product_id=product_id,
            code=code,
            clicks=0,
            conversions=0,
            commission_earned=0,
            is_active=True,
        )
        try:
            with db.begin_nested():
                db.add(link)
        except IntegrityError:
            # lost a race on the (affiliate, product) pair, or the code collided
            if _existing_link(db, affiliate_id, product_id):
                raise DuplicateAffiliateLink("Affiliate link already exists for this product.")
            logger.warning(
                "AFFILIATE: code collision, retrying | code=%s | attempt=%s/%s",
                code,
                attempt,
                max_attempts,
            )
            continue

        db.commit()
        db.refresh(link)
        logger.info(
            "AFFILIATE: link created | link_id=%s | affiliate_id=%s | product_id=%s | code=%s",
            link.id,
            affiliate_id,
            product_id,
            link.code,
        )
        return link

    raise MarketplaceError(f"Could not generate a unique affiliate code after {max_attempts} attempts.")


def deactivate_link(db: Session, *, link_id: int, affiliate_id: int) -> AffiliateLink:
    link = (
        db.query(AffiliateLink)
        .filter(AffiliateLink.id == link_id, AffiliateLink.affiliate_id == affiliate_id)
        .first()
    )
    if not link:
        raise NotFound("Affiliate link not found.")
    link.is_active = False
    db.commit()
    db.refresh(link)
    return link


def list_links(db: Session, affiliate_id: int) -> list[AffiliateLink]:
    return (
        db.query(AffiliateLink)
        .filter(AffiliateLink.affiliate_id == affiliate_id)
        .order_by(AffiliateLink.created_at.desc(), AffiliateLink.id.desc())
        .all()
    )


def summary(db: Session, affiliate_id: int) -> AffiliateSummary:
    row = (
        db.query(
            func.count(AffiliateLink.id),
            func.coalesce(func.sum(AffiliateLink.clicks), 0),
            func.coalesce(func.sum(AffiliateLink.conversions), 0),
            func.coalesce(func.sum(AffiliateLink.commission_earned), 0),
        )
        .filter(AffiliateLink.affiliate_id == affiliate_id)
        .one()
    )
    return AffiliateSummary(
        total_links=int(row[0]),
        total_clicks=int(row[1]),
        total_conversions=int(row[2]),
        total_earned=int(row[3]),
    )
