# storefront/services/inventory.py
"""
Inventory ledger: the only writer of ``Product.stock``.

Every change is one conditional UPDATE on one product row, committed on its
own, so two checkouts racing for the same unit are serialised by the row
itself and checkouts for different products never wait on each other.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from sqlalchemy import select, update

from ..errors import OutOfStockError
from ..extensions import db
from ..model import Product

logger = logging.getLogger(__name__)

RESERVED = "reserved"
COMMITTED = "committed"
RELEASED = "released"


@dataclass(slots=True)
class Reservation:
    product_id: int
    quantity: int
    state: str = RESERVED


class InventoryLedger:
    def __init__(self, session=None):
        self.session = session or db.session

    def reserve(self, product_id: int, quantity: int) -> Reservation:
        if quantity < 1:
            raise ValueError("quantity must be > 0")
        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.active.is_(True),
                Product.stock >= quantity,
            )
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            self.session.rollback()
            available = self.available(product_id)
            logger.info("reserve refused: product=%s requested=%s available=%s", product_id, quantity, available)
            raise OutOfStockError(product_id, quantity, available)
        self.session.commit()
        logger.debug("reserved: product=%s qty=%s", product_id, quantity)
        return Reservation(product_id=product_id, quantity=quantity)

    def commit(self, reservation: Reservation) -> Reservation:
        if reservation.state == RELEASED:
            raise ValueError(f"reservation for product {reservation.product_id} was already released")
        reservation.state = COMMITTED
        return reservation

    def release(self, reservation: Reservation) -> None:
        if reservation.state == RELEASED:
            return
        if reservation.state == COMMITTED:
            raise ValueError(f"reservation for product {reservation.product_id} is committed")
        stmt = (
            update(Product)
            .where(Product.id == reservation.product_id)
            .values(stock=Product.stock + reservation.quantity)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
        self.session.commit()
        reservation.state = RELEASED
        logger.debug("released: product=%s qty=%s", reservation.product_id, reservation.quantity)

    def reserve_all(self, lines: Iterable[tuple[int, int]]) -> List[Reservation]:
        """All-or-nothing over (product_id, quantity) pairs."""
        done: List[Reservation] = []
        try:
            for product_id, quantity in lines:
                done.append(self.reserve(product_id, quantity))
        except Exception:
            self.release_all(done)
            raise
        return done

    def release_all(self, reservations: Iterable[Reservation]) -> None:
        for reservation in reversed(list(reservations)):
            self.release(reservation)

    def available(self, product_id: int) -> int:
        stock = self.session.execute(select(Product.stock).where(Product.id == product_id)).scalar()
        return int(stock or 0)
