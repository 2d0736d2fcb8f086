from __future__ import annotations

from courseven.core.errors import ValidationFailure
from courseven.domain.models import Group
from courseven.domain.repositories import GroupRepository


class CreateGroupUseCase:
    def __init__(self, repository: GroupRepository) -> None:
        self.repository = repository

    async def execute(self, *, name: str, category_id: str, course_id: str, teacher_id: str) -> Group:
        name = name.strip()
        if not name:
            raise ValidationFailure("Group name is required")
        group = Group(
            id="",
            name=name,
            category_id=category_id,
            course_id=course_id,
            teacher_id=teacher_id,
        )
        return await self.repository.create_group(group)


__all__ = ["CreateGroupUseCase"]
