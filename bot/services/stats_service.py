from __future__ import annotations

import logging

from database.models import StaffStat
from database.repositories import StaffStatsRepository
from utils.constants import MAX_LEADERBOARD_SIZE

LOGGER = logging.getLogger(__name__)


class StatsService:
    def __init__(self, staff_repo: StaffStatsRepository, max_limit: int = MAX_LEADERBOARD_SIZE) -> None:
        self.staff_repo = staff_repo
        self.max_limit = max_limit

    async def increment_claim(self, guild_id: int, user_id: int) -> int:
        count = await self.staff_repo.increment_claimed(guild_id, user_id)
        LOGGER.debug("Claim counter guild=%s user=%s count=%s", guild_id, user_id, count)
        return count

    async def get_claims(self, guild_id: int, user_id: int) -> int:
        stat = await self.staff_repo.get(guild_id, user_id)
        return stat.claimed_count if stat else 0

    async def top_claimers(self, guild_id: int, limit: int = 10) -> list[StaffStat]:
        bounded = max(1, min(limit, self.max_limit, MAX_LEADERBOARD_SIZE))
        return await self.staff_repo.leaderboard(guild_id, limit=bounded)

    async def reset_claims(self, guild_id: int, user_id: int | None = None) -> None:
        if user_id is not None:
            await self.staff_repo.reset_user(guild_id, user_id)
            LOGGER.info("Reset claim counter guild=%s user=%s", guild_id, user_id)
            return
        affected = await self.staff_repo.reset_guild(guild_id)
        LOGGER.info("Reset claim counters guild=%s rows=%s", guild_id, affected)
