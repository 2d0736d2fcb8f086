"""Domain models stay frozen and the tree sticks to the Pydantic v2 API."""

from __future__ import annotations

import inspect
import re
from pathlib import Path
from typing import Iterable

import pytest
from pydantic import BaseModel, ValidationError

from courseven.domain import models
from courseven.domain.models import Course, Entity

TARGET_DIRS: tuple[str, ...] = ("courseven", "scripts", "tests")
LEGACY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("legacy decorator", re.compile(r"@(?:root_)?validator\b")),
    ("legacy import", re.compile(r"\bfrom\s+pydantic\s+import\b[^\n]*\bvalidator\b")),
    ("legacy config class", re.compile(r"^\s+class Config\s*:", re.MULTILINE)),
    ("legacy parsing", re.compile(r"\.parse_(?:obj|raw|file)\(")),
    ("legacy copy", re.compile(r"\.copy\(update=")),
)


def _python_files(base_dirs: Iterable[Path]) -> Iterable[Path]:
    for directory in base_dirs:
        if not directory.exists():
            continue
        yield from directory.rglob("*.py")


def _domain_models() -> list[type[BaseModel]]:
    return [
        obj
        for _, obj in inspect.getmembers(models, inspect.isclass)
        if issubclass(obj, BaseModel) and obj.__module__ == models.__name__ and obj is not Entity
    ]


def test_no_v1_pydantic_usage() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    target_roots = [repo_root / directory for directory in TARGET_DIRS]
    this_file = Path(__file__).resolve()
    offenders: list[str] = []

    for path in _python_files(target_roots):
        if path == this_file:
            continue
        text = path.read_text(encoding="utf-8")
        for label, pattern in LEGACY_PATTERNS:
            if pattern.search(text):
                relative_path = path.relative_to(repo_root)
                offenders.append(f"{relative_path} -> {label}")
                break

    if offenders:
        formatted = "\n".join(offenders)
        pytest.fail(f"Pydantic v1 usage detected:\n{formatted}")


def test_domain_models_are_frozen_entities() -> None:
    found = _domain_models()
    assert Course in found

    loose = [cls.__name__ for cls in found if not issubclass(cls, Entity) or not cls.model_config.get("frozen")]
    assert loose == []


def test_frozen_entities_reject_mutation() -> None:
    course = Course(id="c1", name="Algebra", join_code="ABC123", teacher_id="t1")
    with pytest.raises(ValidationError):
        course.name = "Geometry"
    assert course.model_copy(update={"name": "Geometry"}).name == "Geometry"
