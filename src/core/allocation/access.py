from typing import Iterable, Optional, Protocol


class AccessControl(Protocol):
    def is_admin(self, actor_id: Optional[str]) -> bool: ...


class StaticRoleAccessControl:
    def __init__(self, *, admin_ids: Iterable[str]) -> None:
        self._admin_ids = frozenset(item.strip() for item in admin_ids if item and item.strip())

    def is_admin(self, actor_id: Optional[str]) -> bool:
        if actor_id is None:
            return False
        return actor_id.strip() in self._admin_ids


def parse_admin_ids(raw: Optional[str]) -> list[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]
