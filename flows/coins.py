from __future__ import annotations
import logging
from typing import Optional

from .optimistic import Optimistic, revert

log = logging.getLogger(__name__)

class CoinWallet:
    """Locally shown coin balance, written back to the backend after the fact.

    Deductions show immediately; when the write fails the amount is added
    back, so the balance is eventually consistent rather than transactional.
    """

    def __init__(self, backend, user_id: Optional[str], balance: int = 0):
        self.backend = backend
        self.user_id = user_id
        self.state: Optimistic[int] = Optimistic(balance)

    @property
    def balance(self) -> int:
        return self.state.value

    async def load(self) -> int:
        if self.user_id:
            self.state = Optimistic(await self.backend.get_coin_balance(self.user_id))
        return self.balance

    def can_afford(self, amount: int) -> bool:
        return self.balance >= amount

    async def deduct(self, amount: int) -> bool:
        if not self.user_id or amount <= 0:
            return False
        self.state = self.state.propose(self.balance - amount)
        try:
            await self.backend.adjust_coin_balance(self.user_id, -amount)
        except Exception:
            log.exception("coin deduction of %d failed for %s", amount, self.user_id)
            # other deductions may have landed meanwhile
            self.state = revert(self.balance + amount)
            return False
        self.state = self.state.confirm()
        return True

    async def refund(self, amount: int) -> bool:
        if not self.user_id or amount <= 0:
            return False
        self.state = self.state.propose(self.balance + amount)
        try:
            await self.backend.adjust_coin_balance(self.user_id, amount)
        except Exception:
            # keep the local refund; the next load() reconciles with the backend
            log.exception("coin refund of %d failed for %s", amount, self.user_id)
            return False
        self.state = self.state.confirm()
        return True
