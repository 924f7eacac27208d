"""
Account expiration gate.

The retrieval engine only needs one question answered about an account:
has it expired. Any store that can answer it asynchronously plugs in through
the AccountStore protocol.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol

TRIAL_DAYS = 30


@dataclass
class Account:
    """Account record as far as expiration is concerned"""
    account_id: str
    created_at: datetime
    expired_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None, trial_days: int = TRIAL_DAYS) -> bool:
        """An explicit expiry date wins; otherwise the trial runs from creation."""
        now = now or datetime.now(timezone.utc)
        if self.expired_at is not None:
            return now > self.expired_at
        return now - self.created_at > timedelta(days=trial_days)


class AccountStore(Protocol):
    async def is_expired(self, account_id: str) -> bool:
        ...


class InMemoryAccountStore:
    """Account store backed by a dict. Unknown accounts are never expired."""

    def __init__(self, trial_days: int = TRIAL_DAYS):
        self._accounts: Dict[str, Account] = {}
        self._trial_days = trial_days

    def add(self, account: Account) -> None:
        self._accounts[account.account_id] = account

    def get(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    async def is_expired(self, account_id: str) -> bool:
        account = self._accounts.get(account_id)
        if account is None:
            return False
        return account.is_expired(trial_days=self._trial_days)
