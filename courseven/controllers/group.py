from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Mapping, Set, Tuple

from courseven.controllers.base import CurrentUserProvider, SessionController, with_entry
from courseven.core.store import Action, ControllerState
from courseven.domain.models import Group
from courseven.domain.repositories import GroupRepository
from courseven.domain.usecases.group import CreateGroupUseCase


@dataclass(frozen=True)
class GroupState(ControllerState):
    groups_by_course: Mapping[str, Tuple[Group, ...]] = field(default_factory=dict)
    groups_by_category: Mapping[str, Tuple[Group, ...]] = field(default_factory=dict)
    created_group: Group | None = None


@dataclass(frozen=True)
class CourseGroupsLoaded(Action):
    course_id: str
    groups: Tuple[Group, ...]


@dataclass(frozen=True)
class CategoryGroupsLoaded(Action):
    category_id: str
    groups: Tuple[Group, ...]


@dataclass(frozen=True)
class GroupCreated(Action):
    group: Group


@dataclass(frozen=True)
class GroupUpdated(Action):
    group: Group


@dataclass(frozen=True)
class GroupRemoved(Action):
    group_id: str
    course_id: str
    category_id: str


@dataclass(frozen=True)
class CreatedGroupCleared(Action):
    pass


def _replace_group(groups: Tuple[Group, ...], group: Group) -> Tuple[Group, ...]:
    return tuple(group if item.id == group.id else item for item in groups)


def _drop_group(groups: Tuple[Group, ...], group_id: str) -> Tuple[Group, ...]:
    return tuple(item for item in groups if item.id != group_id)


class GroupController(SessionController[GroupState]):
    def __init__(
        self,
        *,
        group_repository: GroupRepository,
        create_group_use_case: CreateGroupUseCase,
        get_current_user_id: CurrentUserProvider,
    ) -> None:
        super().__init__(GroupState(), get_current_user_id)
        self.groups = group_repository
        self.create_group_use_case = create_group_use_case
        self._loading_keys: Set[str] = set()

    def reduce(self, state: GroupState, action: Action) -> GroupState:
        match action:
            case CourseGroupsLoaded(course_id=course_id, groups=groups):
                return replace(
                    state, groups_by_course=with_entry(state.groups_by_course, course_id, groups)
                )
            case CategoryGroupsLoaded(category_id=category_id, groups=groups):
                return replace(
                    state,
                    groups_by_category=with_entry(state.groups_by_category, category_id, groups),
                )
            case GroupCreated(group=group):
                return replace(state, created_group=group)
            case GroupUpdated(group=group):
                return replace(
                    state,
                    groups_by_course=with_entry(
                        state.groups_by_course,
                        group.course_id,
                        _replace_group(state.groups_by_course.get(group.course_id, ()), group),
                    ),
                    groups_by_category=with_entry(
                        state.groups_by_category,
                        group.category_id,
                        _replace_group(state.groups_by_category.get(group.category_id, ()), group),
                    ),
                )
            case GroupRemoved(group_id=group_id, course_id=course_id, category_id=category_id):
                return replace(
                    state,
                    groups_by_course=with_entry(
                        state.groups_by_course,
                        course_id,
                        _drop_group(state.groups_by_course.get(course_id, ()), group_id),
                    ),
                    groups_by_category=with_entry(
                        state.groups_by_category,
                        category_id,
                        _drop_group(state.groups_by_category.get(category_id, ()), group_id),
                    ),
                )
            case CreatedGroupCleared():
                return replace(state, created_group=None)
        return super().reduce(state, action)

    def groups_for_course(self, course_id: str) -> Tuple[Group, ...]:
        return self.get_snapshot().groups_by_course.get(course_id, ())

    def groups_for_category(self, category_id: str) -> Tuple[Group, ...]:
        return self.get_snapshot().groups_by_category.get(category_id, ())

    async def load_by_course(self, course_id: str, *, force: bool = False) -> None:
        async def fetch() -> Action:
            groups = await self.groups.get_groups_by_course(course_id)
            return CourseGroupsLoaded(course_id, tuple(groups))

        await self._load(f"course:{course_id}", course_id, fetch, force=force)

    async def load_by_category(self, category_id: str, *, force: bool = False) -> None:
        async def fetch() -> Action:
            groups = await self.groups.get_groups_by_category(category_id)
            return CategoryGroupsLoaded(category_id, tuple(groups))

        await self._load(f"category:{category_id}", category_id, fetch, force=force)

    async def _load(
        self,
        key: str,
        parent_id: str,
        fetch: Callable[[], Awaitable[Action]],
        *,
        force: bool,
    ) -> None:
        if not parent_id:
            return
        if key in self._loading_keys and not force:
            return
        ticket = self._begin_request(key)
        self._loading_keys.add(key)

        async def load() -> None:
            action = await fetch()
            if self._is_current(key, ticket):
                self.dispatch(action)

        try:
            await self._guard(load)
        finally:
            if self._is_current(key, ticket):
                self._loading_keys.discard(key)

    async def create_group(self, *, name: str, course_id: str, category_id: str) -> Group | None:
        if self.is_loading:
            return None

        async def create() -> Group:
            teacher_id = await self._require_user_id()
            group = await self.create_group_use_case.execute(
                name=name,
                category_id=category_id,
                course_id=course_id,
                teacher_id=teacher_id,
            )
            self.dispatch(GroupCreated(group))
            await asyncio.gather(
                self.load_by_course(course_id, force=True),
                self.load_by_category(category_id, force=True),
            )
            return group

        return await self._guard(create)

    async def update_group(self, group: Group) -> Group | None:
        async def update() -> Group:
            updated = await self.groups.update_group(group)
            self.dispatch(GroupUpdated(updated))
            return updated

        return await self._guard(update)

    async def delete_group(self, group_id: str, course_id: str, category_id: str) -> bool:
        async def delete() -> bool:
            await self.groups.delete_group(group_id)
            self.dispatch(GroupRemoved(group_id, course_id, category_id))
            return True

        return bool(await self._guard(delete, failure=False))

    def clear_created_group(self) -> None:
        self.dispatch(CreatedGroupCleared())


__all__ = ["GroupController", "GroupState"]
