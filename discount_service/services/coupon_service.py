
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime, timezone
from fastapi import HTTPException

from discount_service.logger import get_logger
from discount_service.models.coupon import CampaignType, Coupon, CouponStatus, DiscountTier
from discount_service.schemas.coupon import (
    CouponCreate, CouponFilter, CouponResponse, CouponUpdate, DiscountTierCreate
)
from discount_service.services import coupon_rules

logger = get_logger("services.coupon_service")


def to_response(coupon: Coupon, now: Optional[datetime] = None) -> CouponResponse:
    response = CouponResponse.model_validate(coupon)
    response.is_currently_valid = coupon_rules.is_valid(coupon, now)
    return response


class CouponService:
    """Service class for coupon persistence and lifecycle operations"""

    @staticmethod
    def create_coupon(db: Session, coupon_data: CouponCreate) -> Coupon:
        start_date = CouponService._normalize(coupon_data.start_date)
        end_date = CouponService._normalize(coupon_data.end_date)
        CouponService._validate_dates(start_date, end_date)

        code = CouponService._clean_code(coupon_data.coupon_code)
        if code is not None:
            CouponService._ensure_code_available(db, code)

        fields = coupon_data.model_dump(exclude={"tiers", "start_date", "end_date", "coupon_code"})
        db_coupon = Coupon(
            **fields,
            coupon_code=code,
            start_date=start_date,
            end_date=end_date,
            tiers=CouponService._build_tiers(coupon_data.tiers),
        )
        coupon_rules.refresh_status(db_coupon)

        db.add(db_coupon)
        db.commit()
        db.refresh(db_coupon)
        logger.info("Coupon created with id %s for product %r", db_coupon.id, db_coupon.product_name)
        return db_coupon

    @staticmethod
    def get_coupon(db: Session, coupon_id: int) -> Optional[Coupon]:
        return db.query(Coupon).filter(Coupon.id == coupon_id).first()

    @staticmethod
    def get_coupon_or_404(db: Session, coupon_id: int) -> Coupon:
        coupon = CouponService.get_coupon(db, coupon_id)
        if not coupon:
            raise HTTPException(status_code=404, detail=f"Coupon with ID {coupon_id} not found")
        return coupon

    @staticmethod
    def get_coupons(
        db: Session, filters: CouponFilter, page_number: int = 1, page_size: int = 10
    ) -> Tuple[List[Coupon], int]:
        page_number = max(page_number, 1)
        page_size = min(max(page_size, 1), 500)

        q = db.query(Coupon)
        if filters.status is not None:
            q = q.filter(Coupon.status == filters.status)
        if filters.product_name:
            q = q.filter(Coupon.product_name.contains(filters.product_name))
        if filters.product_id:
            q = q.filter(Coupon.product_id == filters.product_id)
        if filters.coupon_code:
            q = q.filter(func.lower(Coupon.coupon_code) == filters.coupon_code.lower())
        if filters.type is not None:
            q = q.filter(Coupon.type == filters.type)
        if filters.is_active:
            now = datetime.now(timezone.utc)
            q = q.filter(
                Coupon.status == CouponStatus.ACTIVE,
                or_(Coupon.start_date.is_(None), Coupon.start_date <= now),
                or_(Coupon.end_date.is_(None), Coupon.end_date >= now),
            )
        if filters.start_date_from:
            q = q.filter(or_(Coupon.start_date.is_(None), Coupon.start_date >= CouponService._normalize(filters.start_date_from)))
        if filters.start_date_to:
            q = q.filter(or_(Coupon.start_date.is_(None), Coupon.start_date <= CouponService._normalize(filters.start_date_to)))
        if filters.end_date_from:
            q = q.filter(or_(Coupon.end_date.is_(None), Coupon.end_date >= CouponService._normalize(filters.end_date_from)))
        if filters.end_date_to:
            q = q.filter(or_(Coupon.end_date.is_(None), Coupon.end_date <= CouponService._normalize(filters.end_date_to)))

        total = q.count()
        coupons = (
            q.order_by(Coupon.created_at.desc(), Coupon.id.desc())
            .offset((page_number - 1) * page_size)
            .limit(page_size)
            .all()
        )
        CouponService.refresh_statuses(db, coupons)
        return coupons, total

    @staticmethod
    def update_coupon(db: Session, coupon_id: int, coupon_data: CouponUpdate) -> Coupon:
        db_coupon = CouponService.get_coupon_or_404(db, coupon_id)

        # Compute final dates then validate
        start_date = CouponService._normalize(coupon_data.start_date) or db_coupon.start_date
        end_date = CouponService._normalize(coupon_data.end_date) or db_coupon.end_date
        CouponService._validate_dates(start_date, end_date)

        code = CouponService._clean_code(coupon_data.coupon_code)
        if code is not None and code != db_coupon.coupon_code:
            CouponService._ensure_code_available(db, code, exclude_id=coupon_id)

        changes = coupon_data.model_dump(
            exclude_none=True, exclude={"tiers", "start_date", "end_date", "coupon_code"}
        )
        for field, value in changes.items():
            setattr(db_coupon, field, value)
        if coupon_data.coupon_code is not None:
            db_coupon.coupon_code = code
        db_coupon.start_date = start_date
        db_coupon.end_date = end_date
        if coupon_data.tiers is not None:
            db_coupon.tiers = CouponService._build_tiers(coupon_data.tiers)

        db_coupon.updated_at = datetime.now(timezone.utc)
        coupon_rules.refresh_status(db_coupon)

        db.commit()
        db.refresh(db_coupon)
        logger.info("Coupon %s updated", coupon_id)
        return db_coupon

    @staticmethod
    def delete_coupon(db: Session, coupon_id: int) -> bool:
        db_coupon = CouponService.get_coupon(db, coupon_id)
        if not db_coupon:
            return False
        db.delete(db_coupon)
        db.commit()
        logger.info("Coupon %s deleted", coupon_id)
        return True

    @staticmethod
    def disable_coupon(db: Session, coupon_id: int) -> Coupon:
        db_coupon = CouponService.get_coupon_or_404(db, coupon_id)
        db_coupon.status = CouponStatus.DISABLED
        db_coupon.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(db_coupon)
        logger.info("Coupon %s disabled", coupon_id)
        return db_coupon

    @staticmethod
    def enable_coupon(db: Session, coupon_id: int) -> Coupon:
        db_coupon = CouponService.get_coupon_or_404(db, coupon_id)
        # Lift the manual disable, then let dates and usage decide
        if db_coupon.status == CouponStatus.DISABLED:
            db_coupon.status = CouponStatus.ACTIVE
        coupon_rules.refresh_status(db_coupon)
        db_coupon.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(db_coupon)
        logger.info("Coupon %s enabled with status %s", coupon_id, db_coupon.status.value)
        return db_coupon

    @staticmethod
    def find_by_code(db: Session, code: str) -> Optional[Coupon]:
        return db.query(Coupon).filter(func.lower(Coupon.coupon_code) == code.strip().lower()).first()

    @staticmethod
    def find_for_product(db: Session, product_id: str = "", product_name: str = "") -> List[Coupon]:
        conditions = []
        if product_id:
            conditions.append(Coupon.product_id == product_id)
        if product_name:
            conditions.append(Coupon.product_name == product_name)
        if not conditions:
            return []
        return db.query(Coupon).filter(or_(*conditions)).order_by(Coupon.id).all()

    @staticmethod
    def get_automatic_campaigns(db: Session, campaign_type: Optional[CampaignType] = None) -> List[Coupon]:
        q = db.query(Coupon).filter(Coupon.is_automatic == True)  # noqa: E712
        if campaign_type is not None:
            q = q.filter(Coupon.campaign_type == campaign_type)
        return q.order_by(Coupon.priority.desc(), Coupon.id).all()

    @staticmethod
    def refresh_statuses(db: Session, coupons: List[Coupon]) -> None:
        now = datetime.now(timezone.utc)
        changed = False
        for coupon in coupons:
            before = coupon.status
            if coupon_rules.refresh_status(coupon, now) != before:
                changed = True
        if changed:
            db.commit()

    @staticmethod
    def _build_tiers(tiers: List[DiscountTierCreate]) -> List[DiscountTier]:
        return [DiscountTier(**tier.model_dump()) for tier in tiers]

    @staticmethod
    def _normalize(value: Optional[datetime]) -> Optional[datetime]:
        return coupon_rules.as_utc(value) if value is not None else None

    @staticmethod
    def _clean_code(code: Optional[str]) -> Optional[str]:
        if code is None:
            return None
        code = code.strip()
        return code or None

    @staticmethod
    def _validate_dates(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
        if start_date is not None and end_date is not None:
            if coupon_rules.as_utc(start_date) > coupon_rules.as_utc(end_date):
                raise HTTPException(status_code=400, detail="Start date must be before end date")

    @staticmethod
    def _ensure_code_available(db: Session, code: str, exclude_id: Optional[int] = None) -> None:
        q = db.query(Coupon).filter(func.lower(Coupon.coupon_code) == code.lower())
        if exclude_id is not None:
            q = q.filter(Coupon.id != exclude_id)
        if q.first() is not None:
            raise HTTPException(status_code=400, detail=f"Coupon code '{code}' already exists")
