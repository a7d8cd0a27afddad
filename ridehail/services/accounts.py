"""Mock wallet sign-in: a user is created the first time an address connects."""

from __future__ import annotations

import logging
import random
from typing import Optional

from ridehail.domain.entities import now_ms
from ridehail.domain.enums import UserRole
from ridehail.domain.errors import NotFound
from ridehail.infrastructure.database import RideStore
from ridehail.infrastructure.models import UserModel
from ridehail.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)

SAMPLE_NAMES = [
    "Alex Rivera", "Jordan Chen", "Sam Williams", "Taylor Kim",
    "Morgan Davis", "Casey Lee", "Riley Johnson", "Quinn Murphy",
]


class AccountService:
    def __init__(self, store: RideStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()

    async def connect(self, wallet_address: str, role: UserRole) -> tuple[str, UserModel]:
        """Return ``(token, user)``.  An existing wallet keeps its role."""
        async with self.store.lock:
            async with self.store.session() as session:
                users = UserRepository(session)
                user = await users.get_by_wallet(wallet_address)
                if user is None:
                    user = await users.create(
                        UserModel(
                            wallet_address=wallet_address,
                            role=role,
                            name=self.rng.choice(SAMPLE_NAMES),
                            reputation=50 + self.rng.randrange(30),
                            completed_rides=0,
                            avg_rating=4.0 + self.rng.random() * 0.8,
                            balance=100 + self.rng.random() * 200,
                        )
                    )
                    logger.info("New %s %s for wallet %s", role.value, user.id,
                                wallet_address)
        # Not a credential; there is no session behind it
        token = f"token_{user.id}_{now_ms()}"
        return token, user

    async def profile(self, user_id: str) -> UserModel:
        async with self.store.lock:
            async with self.store.session() as session:
                user = await UserRepository(session).get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user
