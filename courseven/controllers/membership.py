from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Sequence, Set, Tuple

from courseven.controllers.base import (
    CurrentUserProvider,
    SessionController,
    with_member,
)
from courseven.core.events import AppEventBus, MembershipJoinedEvent
from courseven.core.store import Action, ControllerState
from courseven.domain.models import Membership
from courseven.domain.repositories import GroupRepository, MembershipRepository
from courseven.domain.usecases.membership import JoinGroupUseCase

LOGGER = logging.getLogger("courseven.controllers.membership")


@dataclass(frozen=True)
class MembershipState(ControllerState):
    my_group_ids: Tuple[str, ...] = ()
    group_member_counts: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class MyGroupsLoaded(Action):
    group_ids: Tuple[str, ...]


@dataclass(frozen=True)
class GroupJoined(Action):
    group_id: str


@dataclass(frozen=True)
class MemberCountsLoaded(Action):
    counts: Tuple[Tuple[str, int], ...]


class MembershipController(SessionController[MembershipState]):
    """Which groups the signed-in student belongs to, plus group sizes."""

    def __init__(
        self,
        *,
        join_group_use_case: JoinGroupUseCase,
        membership_repository: MembershipRepository,
        group_repository: GroupRepository,
        event_bus: AppEventBus,
        get_current_user_id: CurrentUserProvider,
    ) -> None:
        super().__init__(MembershipState(), get_current_user_id)
        self.join_group_use_case = join_group_use_case
        self.memberships = membership_repository
        self.groups = group_repository
        self.event_bus = event_bus
        self._loading_counts: Set[str] = set()

    def reduce(self, state: MembershipState, action: Action) -> MembershipState:
        match action:
            case MyGroupsLoaded(group_ids=group_ids):
                return replace(state, my_group_ids=group_ids)
            case GroupJoined(group_id=group_id):
                return replace(state, my_group_ids=with_member(state.my_group_ids, group_id))
            case MemberCountsLoaded(counts=counts):
                merged = dict(state.group_member_counts)
                merged.update(counts)
                return replace(state, group_member_counts=merged)
        return super().reduce(state, action)

    def has_joined(self, group_id: str) -> bool:
        return group_id in self.get_snapshot().my_group_ids

    async def preload_memberships_for_groups(self, group_ids: Sequence[str]) -> None:
        """Mark which of ``group_ids`` the current user already belongs to."""
        if not group_ids:
            return
        user_id = await self._get_current_user_id()
        if not user_id:
            return

        async def load() -> None:
            memberships = await self.memberships.get_memberships_by_user(user_id)
            joined = {membership.group_id for membership in memberships}
            self.dispatch(MyGroupsLoaded(tuple(gid for gid in group_ids if gid in joined)))

        await self._guard(load)

    async def preload_member_counts_for_groups(self, group_ids: Iterable[str]) -> None:
        targets = [gid for gid in dict.fromkeys(group_ids) if gid not in self._loading_counts]
        if not targets:
            return
        self._loading_counts.update(targets)

        async def count(group_id: str) -> Tuple[str, int]:
            members = await self.memberships.get_memberships_by_group(group_id)
            return group_id, len(members)

        async def load() -> None:
            counts = await asyncio.gather(*(count(gid) for gid in targets))
            self.dispatch(MemberCountsLoaded(tuple(counts)))

        try:
            await self._guard(load)
        finally:
            self._loading_counts.difference_update(targets)

    async def get_member_count(self, group_id: str) -> int:
        cached = self.get_snapshot().group_member_counts.get(group_id)
        if cached is not None:
            return cached

        async def load() -> int:
            members = await self.memberships.get_memberships_by_group(group_id)
            self.dispatch(MemberCountsLoaded(((group_id, len(members)),)))
            return len(members)

        return await self._guard(load, failure=0, track_loading=False) or 0

    async def join_group(self, group_id: str) -> Membership | None:
        async def join() -> Membership:
            user_id = await self._require_user_id()
            membership = await self.join_group_use_case.execute(user_id, group_id)
            self.dispatch(GroupJoined(group_id))
            members = await self.memberships.get_memberships_by_group(group_id)
            self.dispatch(MemberCountsLoaded(((group_id, len(members)),)))
            group = await self.groups.get_group_by_id(group_id)
            if group is not None:
                self.event_bus.publish(
                    MembershipJoinedEvent(group_id=group_id, course_id=group.course_id)
                )
            else:
                LOGGER.warning("Joined group %s could not be reloaded", group_id)
            return membership

        return await self._guard(join)


__all__ = ["MembershipController", "MembershipState"]
