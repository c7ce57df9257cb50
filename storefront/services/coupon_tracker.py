# storefront/services/coupon_tracker.py
"""
Coupon redemption tracker: the only writer of ``Coupon.used_count``.

A claim is one conditional UPDATE that checks active flag, validity window
and remaining uses and increments in the same statement.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy import or_, select, update

from ..errors import CouponExpiredError, CouponLimitExceededError, CouponNotFoundError
from ..extensions import db
from ..model import Coupon
from ..model.coupon import normalize_code
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Claim:
    code: str
    released: bool = False


class CouponTracker:
    def __init__(self, session=None, clock: Optional[Callable[[], datetime]] = None):
        self.session = session or db.session
        self.clock = clock or utcnow

    def claim(self, code: str) -> Claim:
        code = normalize_code(code)
        now = self.clock()
        stmt = (
            update(Coupon)
            .where(
                Coupon.code == code,
                Coupon.active.is_(True),
                Coupon.valid_from <= now,
                Coupon.valid_to >= now,
                or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
            )
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            self.session.rollback()
            self._raise_refusal(code, now)
        self.session.commit()
        logger.debug("coupon claimed: %s", code)
        return Claim(code=code)

    def release(self, claim: Claim | str) -> None:
        if isinstance(claim, Claim):
            if claim.released:
                return
            code = claim.code
        else:
            code = normalize_code(claim)
        stmt = (
            update(Coupon)
            .where(Coupon.code == code, Coupon.used_count > 0)
            .values(used_count=Coupon.used_count - 1)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
        self.session.commit()
        if isinstance(claim, Claim):
            claim.released = True
        logger.debug("coupon released: %s", code)

    def claim_all(self, codes: Iterable[str]) -> List[Claim]:
        """All-or-nothing: a failed claim releases the ones made before it."""
        done: List[Claim] = []
        try:
            for code in codes:
                done.append(self.claim(code))
        except Exception:
            self.release_all(done)
            raise
        return done

    def release_all(self, claims: Iterable[Claim]) -> None:
        for claim in reversed(list(claims)):
            self.release(claim)

    def _raise_refusal(self, code: str, now: datetime):
        coupon = self.session.execute(select(Coupon).where(Coupon.code == code)).scalar_one_or_none()
        if coupon is None or not coupon.active:
            raise CouponNotFoundError(code)
        if now < coupon.valid_from or now > coupon.valid_to:
            raise CouponExpiredError(code)
        raise CouponLimitExceededError(code)
