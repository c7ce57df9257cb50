# storefront/services/notifier.py
"""
In-app notifications for merchants and shoppers.

Callers treat these as fire-and-forget: settlement wraps every call and only
logs failures, so a broken notification never affects an order.
"""
from __future__ import annotations

import logging

from sqlalchemy import select

from ..extensions import db
from ..model import Notification, User
from ..model.user import ROLE_MERCHANT

logger = logging.getLogger(__name__)


class MerchantNotifier:
    def __init__(self, session=None):
        self.session = session or db.session

    def notify_merchant(self, summary: dict) -> int:
        merchants = self.session.execute(select(User).where(User.role == ROLE_MERCHANT)).scalars().all()
        for m in merchants:
            self.session.add(Notification(
                user_id=m.id,
                title=summary.get("title", "New Order Received!"),
                message=summary["message"],
                url=summary.get("url"),
            ))
        self.session.commit()
        logger.info("merchant notified: %s (%d recipients)", summary.get("order_code"), len(merchants))
        return len(merchants)

    def notify_customer(self, user_id: int, title: str, message: str, url: str | None = None) -> None:
        self.session.add(Notification(user_id=user_id, title=title, message=message, url=url))
        self.session.commit()
        logger.info("customer %s notified: %s", user_id, title)
