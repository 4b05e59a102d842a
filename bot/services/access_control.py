from __future__ import annotations

from dataclasses import dataclass
from enum import Flag, auto

import discord

from services.gateway import Gateway
from services.ticket_context import TicketChannelContext
from utils.constants import TicketAction


class Actor(Flag):
    OWNER = auto()
    STAFF = auto()


ACTION_POLICY: dict[TicketAction, Actor] = {
    TicketAction.CLOSE: Actor.OWNER | Actor.STAFF,
    TicketAction.COME: Actor.OWNER | Actor.STAFF,
    TicketAction.CLAIM: Actor.STAFF,
}


@dataclass(frozen=True, slots=True)
class ActorAccess:
    is_owner: bool
    is_staff: bool

    def permits(self, action: TicketAction) -> bool:
        allowed = ACTION_POLICY.get(action)
        if allowed is None:
            return False
        if self.is_owner and Actor.OWNER in allowed:
            return True
        return self.is_staff and Actor.STAFF in allowed


class AccessControl:
    def __init__(self, gateway: Gateway) -> None:
        self.gateway = gateway

    async def authorize(
        self, guild: discord.Guild, actor_id: int, context: TicketChannelContext
    ) -> ActorAccess:
        staff_roles = set(context.panel.staff_role_ids)
        is_staff = False
        if staff_roles:
            member_roles = await self.gateway.fetch_role_membership(guild, actor_id)
            is_staff = not staff_roles.isdisjoint(member_roles)
        return ActorAccess(is_owner=actor_id == context.owner_id, is_staff=is_staff)
