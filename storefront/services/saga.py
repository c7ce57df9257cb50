# storefront/services/saga.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

logger = logging.getLogger(__name__)


class Step(ABC):
    """One (do, undo) pair of a settlement attempt."""

    name = "Step"

    def __init__(self, order_code: str):
        self.order_code = order_code

    @abstractmethod
    def execute(self) -> None: ...

    def compensate(self) -> None:
        """Most steps that write shared state override this; the default has nothing to undo."""

    def run(self) -> None:
        logger.info("[order=%s] STEP %s", self.order_code, self.name)
        self.execute()
        logger.info("[order=%s] STEP %s OK", self.order_code, self.name)

    def run_compensation(self) -> None:
        logger.info("[order=%s] COMPENSATE %s", self.order_code, self.name)
        self.compensate()
        logger.info("[order=%s] COMPENSATE %s OK", self.order_code, self.name)


class Saga:
    """
    Runs steps front-to-back. On the first failure the completed steps are
    compensated back-to-front and the original exception is re-raised.
    A failing compensation is logged and the unwind carries on.
    """

    def __init__(self, order_code: str, steps: Sequence[Step]):
        self.order_code = order_code
        self.steps = list(steps)
        self.completed: List[Step] = []

    def execute(self) -> None:
        try:
            for step in self.steps:
                step.run()
                self.completed.append(step)
        except Exception as e:
            logger.warning("[order=%s] SAGA FAILED: %s", self.order_code, e)
            self.unwind()
            raise
        logger.info("[order=%s] SAGA OK", self.order_code)

    def unwind(self) -> None:
        for step in reversed(self.completed):
            try:
                step.run_compensation()
            except Exception:
                logger.exception("[order=%s] COMPENSATION FAILED at %s", self.order_code, step.name)
        self.completed.clear()
