from __future__ import annotations

from courseven.core.errors import ValidationFailure
from courseven.domain.models import Membership
from courseven.domain.repositories import (
    CategoryRepository,
    GroupRepository,
    MembershipRepository,
)


class JoinGroupUseCase:
    """Self-service join of a group in a manually grouped category."""

    def __init__(
        self,
        membership_repository: MembershipRepository,
        group_repository: GroupRepository,
        category_repository: CategoryRepository,
    ) -> None:
        self.memberships = membership_repository
        self.groups = group_repository
        self.categories = category_repository

    async def execute(self, user_id: str, group_id: str) -> Membership:
        if await self.memberships.is_user_member_of_group(user_id, group_id):
            raise ValidationFailure("You are already a member of this group")

        group = await self.groups.get_group_by_id(group_id)
        if group is None:
            raise ValidationFailure("Group not found")
        category = await self.categories.get_category_by_id(group.category_id)
        if category is None:
            raise ValidationFailure("Category not found")
        if category.grouping_method.lower() != "manual":
            raise ValidationFailure("Groups in this category are assigned randomly")

        for membership in await self.memberships.get_memberships_by_user(user_id):
            other = await self.groups.get_group_by_id(membership.group_id)
            if other is not None and other.category_id == category.id:
                raise ValidationFailure(f'You already belong to a group of "{category.name}"')

        limit = category.max_members_per_group
        if limit is not None and limit > 0:
            members = await self.memberships.get_memberships_by_group(group.id)
            if len(members) >= limit:
                raise ValidationFailure("This group is full")

        return await self.memberships.create_membership(
            Membership(id="", user_id=user_id, group_id=group_id)
        )


__all__ = ["JoinGroupUseCase"]
