"""Resolve the signed-in account and the premium features it unlocks."""

from __future__ import annotations

from bidscreen.domain.models import Account, Capability, Tier
from bidscreen.infrastructure.observability import get_logger
from bidscreen.infrastructure.remote import (
    AuthenticationRequired,
    RemoteStore,
    RemoteStoreError,
)


class AccountService:
    """Look up the current user's profile through the remote store.

    The resolved account is cached until :meth:`invalidate` is called, so
    repeated capability checks during one session cost a single lookup.
    """

    def __init__(
        self, remote: RemoteStore | None, *, premium_enabled: bool = True
    ) -> None:
        self._remote = remote
        self._premium_enabled = premium_enabled and remote is not None
        self._account: Account | None = None
        self._resolved = False
        self._logger = get_logger(__name__)

    @property
    def premium_enabled(self) -> bool:
        return self._premium_enabled

    def invalidate(self) -> None:
        self._account = None
        self._resolved = False

    async def current_account(self) -> Account | None:
        if self._remote is None:
            return None
        if self._resolved:
            return self._account
        user = await self._remote.get_current_user()
        if not user:
            account = None
        else:
            profile = await self._remote.get_profile(str(user["id"]))
            if profile is None:
                account = Account(user_id=str(user["id"]), email=user.get("email"), tier=Tier.FREE)
            else:
                account = Account.from_profile(profile, email=user.get("email"))
        self._account = account
        self._resolved = True
        return account

    async def require_account(self) -> Account:
        account = await self.current_account()
        if account is None:
            raise AuthenticationRequired("Sign in to use cloud storage")
        return account

    async def is_premium(self) -> bool:
        """True when premium features are on and the account qualifies.

        Lookup failures count as "not premium" so the caller lands in
        local mode instead of failing.
        """
        if not self._premium_enabled:
            return False
        try:
            account = await self.current_account()
        except (RemoteStoreError, AuthenticationRequired) as exc:
            self._logger.warning("Premium check failed, using free tier: %s", exc)
            return False
        return account is not None and account.is_premium

    async def has_capability(self, capability: Capability) -> bool:
        if not self._premium_enabled:
            return False
        try:
            account = await self.current_account()
        except (RemoteStoreError, AuthenticationRequired) as exc:
            self._logger.warning("Capability check for %s failed: %s", capability.value, exc)
            return False
        return account is not None and account.has_capability(capability)


__all__ = ["AccountService"]
