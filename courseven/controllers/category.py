from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping, Set, Tuple

from courseven.controllers.base import (
    CurrentUserProvider,
    SessionController,
    with_entry,
)
from courseven.core.store import Action, ControllerState
from courseven.domain.models import Category, GroupingMethod
from courseven.domain.repositories import CategoryRepository
from courseven.domain.usecases.category import CreateCategoryUseCase


@dataclass(frozen=True)
class CategoryState(ControllerState):
    categories_by_course: Mapping[str, Tuple[Category, ...]] = field(default_factory=dict)
    created_category: Category | None = None


@dataclass(frozen=True)
class CategoriesLoaded(Action):
    course_id: str
    categories: Tuple[Category, ...]


@dataclass(frozen=True)
class CategoryCreated(Action):
    category: Category


@dataclass(frozen=True)
class CategoryUpdated(Action):
    category: Category


@dataclass(frozen=True)
class CategoryRemoved(Action):
    course_id: str
    category_id: str


@dataclass(frozen=True)
class CreatedCategoryCleared(Action):
    pass


class CategoryController(SessionController[CategoryState]):
    def __init__(
        self,
        *,
        category_repository: CategoryRepository,
        create_category_use_case: CreateCategoryUseCase,
        get_current_user_id: CurrentUserProvider,
    ) -> None:
        super().__init__(CategoryState(), get_current_user_id)
        self.categories = category_repository
        self.create_category_use_case = create_category_use_case
        self._loading_course_ids: Set[str] = set()

    def reduce(self, state: CategoryState, action: Action) -> CategoryState:
        match action:
            case CategoriesLoaded(course_id=course_id, categories=categories):
                return replace(
                    state,
                    categories_by_course=with_entry(state.categories_by_course, course_id, categories),
                )
            case CategoryCreated(category=category):
                return replace(state, created_category=category)
            case CategoryUpdated(category=category):
                current = state.categories_by_course.get(category.course_id, ())
                updated = tuple(category if item.id == category.id else item for item in current)
                return replace(
                    state,
                    categories_by_course=with_entry(
                        state.categories_by_course, category.course_id, updated
                    ),
                )
            case CategoryRemoved(course_id=course_id, category_id=category_id):
                current = state.categories_by_course.get(course_id, ())
                return replace(
                    state,
                    categories_by_course=with_entry(
                        state.categories_by_course,
                        course_id,
                        tuple(item for item in current if item.id != category_id),
                    ),
                )
            case CreatedCategoryCleared():
                return replace(state, created_category=None)
        return super().reduce(state, action)

    def categories_for(self, course_id: str) -> Tuple[Category, ...]:
        return self.get_snapshot().categories_by_course.get(course_id, ())

    async def load_by_course(self, course_id: str, *, force: bool = False) -> None:
        if not course_id:
            return
        if course_id in self._loading_course_ids and not force:
            return
        key = f"course:{course_id}"
        ticket = self._begin_request(key)
        self._loading_course_ids.add(course_id)

        async def load() -> None:
            categories = await self.categories.get_categories_by_course(course_id)
            if self._is_current(key, ticket):
                self.dispatch(CategoriesLoaded(course_id, tuple(categories)))

        try:
            await self._guard(load)
        finally:
            if self._is_current(key, ticket):
                self._loading_course_ids.discard(course_id)

    async def create_category(
        self,
        *,
        name: str,
        course_id: str,
        grouping_method: GroupingMethod = "manual",
        description: str | None = None,
        max_members_per_group: float | int | None = None,
    ) -> Category | None:
        if self.is_loading:
            return None

        async def create() -> Category:
            teacher_id = await self._require_user_id()
            category = await self.create_category_use_case.execute(
                name=name,
                course_id=course_id,
                teacher_id=teacher_id,
                grouping_method=grouping_method,
                description=description,
                max_members_per_group=max_members_per_group,
            )
            self.dispatch(CategoryCreated(category))
            await self.load_by_course(course_id, force=True)
            return category

        return await self._guard(create)

    async def update_category(self, category: Category) -> Category | None:
        async def update() -> Category:
            updated = await self.categories.update_category(category)
            self.dispatch(CategoryUpdated(updated))
            return updated

        return await self._guard(update)

    async def delete_category(self, category_id: str, course_id: str) -> bool:
        async def delete() -> bool:
            await self.categories.delete_category(category_id)
            self.dispatch(CategoryRemoved(course_id, category_id))
            return True

        return bool(await self._guard(delete, failure=False))

    def clear_created_category(self) -> None:
        self.dispatch(CreatedCategoryCleared())


__all__ = ["CategoryController", "CategoryState"]
