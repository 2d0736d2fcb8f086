from __future__ import annotations

import math

from courseven.core.errors import ValidationFailure
from courseven.domain.models import Category, GroupingMethod
from courseven.domain.repositories import CategoryRepository


def normalise_max_members(value: float | int | None) -> int | None:
    """Finite values are kept as an int; anything else means "no limit"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


class CreateCategoryUseCase:
    def __init__(self, repository: CategoryRepository) -> None:
        self.repository = repository

    async def execute(
        self,
        *,
        name: str,
        course_id: str,
        teacher_id: str,
        grouping_method: GroupingMethod = "manual",
        description: str | None = None,
        max_members_per_group: float | int | None = None,
    ) -> Category:
        name = name.strip()
        if not name:
            raise ValidationFailure("Category name is required")
        category = Category(
            id="",
            name=name,
            description=(description or "").strip(),
            course_id=course_id,
            teacher_id=teacher_id,
            grouping_method=grouping_method,
            max_members_per_group=normalise_max_members(max_members_per_group),
        )
        return await self.repository.create_category(category)


__all__ = ["CreateCategoryUseCase", "normalise_max_members"]
