"""Locator values and their resolution against a page."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from ..models import RoleNamePayload
from .base import InvalidLocatorError


@dataclass(frozen=True)
class Selector:
    """Engine-native selector string scoped to the page."""

    value: str


@dataclass(frozen=True)
class RoleName:
    """Element identified by accessibility role and accessible name."""

    role: str
    name: str


Locator = Union[Selector, RoleName]


def parse_locator(raw: object) -> Locator:
    """Convert a wire locator (string or ``{role, name}``) into a :data:`Locator`."""

    if isinstance(raw, (Selector, RoleName)):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            raise InvalidLocatorError("Locator selector must not be empty")
        return Selector(raw)
    if isinstance(raw, RoleNamePayload):
        raw = {"role": raw.role, "name": raw.name}
    if isinstance(raw, Mapping):
        role = raw.get("role")
        name = raw.get("name")
        if not isinstance(role, str) or not role.strip():
            raise InvalidLocatorError("Locator object requires a non-empty 'role'")
        if not isinstance(name, str):
            raise InvalidLocatorError("Locator object requires a string 'name'")
        return RoleName(role=role.strip(), name=name)
    raise InvalidLocatorError(
        f"Locator must be a selector string or a {{role, name}} object, got {type(raw).__name__}"
    )


def resolve_locator(page: Any, locator: Locator) -> Any:
    """Return a lazy engine locator for ``locator`` scoped to ``page``."""

    if isinstance(locator, Selector):
        return page.locator(locator.value)
    if isinstance(locator, RoleName):
        return page.get_by_role(locator.role, name=locator.name)
    raise InvalidLocatorError(f"Unsupported locator: {locator!r}")


def describe_locator(locator: Locator) -> str:
    if isinstance(locator, Selector):
        return locator.value
    return f"role={locator.role}[name={locator.name!r}]"
