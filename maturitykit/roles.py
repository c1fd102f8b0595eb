"""Roles, permissions and role-based access checks."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable


class RoleError(Exception):
    """Raised when a role or permission operation fails."""


class RoleNotFound(RoleError, LookupError):
    """Raised when no role matches the lookup."""

    def __init__(self, message: str = "role not found") -> None:
        super().__init__(message)


class PermissionNotFound(RoleError, LookupError):
    """Raised when no permission matches the lookup."""

    def __init__(self, message: str = "permission not found") -> None:
        super().__init__(message)


class AccessDenied(RoleError, PermissionError):
    """Raised when a user lacks the permission an operation needs."""

    def __init__(self, message: str = "access denied") -> None:
        super().__init__(message)


class RoleName(str, Enum):
    """The predefined roles."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Resource(str, Enum):
    """Things a permission applies to."""

    USER = "user"
    TEAM = "team"
    GROUP = "group"
    ASSESSMENT = "assessment"
    REPORT = "report"
    SYSTEM = "system"
    AUDIT = "audit"


class Action(str, Enum):
    """What a permission allows to be done to a resource."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"
    MANAGE = "manage"


@dataclass
class Permission:
    """Permission to perform an action on a resource."""

    resource: str
    action: str
    description: str = ""
    id: int = 0
    created_at: datetime | None = None


@dataclass
class Role:
    """A named role and the permissions it grants."""

    name: str
    description: str = ""
    id: int = 0
    created_at: datetime | None = None
    permissions: list[Permission] = field(default_factory=list)


def _to_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    return datetime.fromisoformat(str(value))


def _text(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _role_from_row(row: tuple) -> Role:
    ident, name, description, created_at = row
    return Role(
        id=ident,
        name=name,
        description=description or "",
        created_at=_to_datetime(created_at),
    )


def _permission_from_row(row: tuple) -> Permission:
    ident, resource, action, description, created_at = row
    return Permission(
        id=ident,
        resource=resource,
        action=action,
        description=description or "",
        created_at=_to_datetime(created_at),
    )


class _Queries:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def _fetch_one(self, query: str, params: Iterable[Any], what: str) -> tuple | None:
        try:
            return self._db.execute(query, tuple(_text(p) for p in params)).fetchone()
        except sqlite3.Error as exc:
            raise RoleError(f"failed to {what}: {exc}") from exc

    def _fetch_all(self, query: str, params: Iterable[Any], what: str) -> list[tuple]:
        try:
            return self._db.execute(query, tuple(_text(p) for p in params)).fetchall()
        except sqlite3.Error as exc:
            raise RoleError(f"failed to {what}: {exc}") from exc

    def _flag(self, query: str, params: Iterable[Any], what: str) -> bool:
        row = self._fetch_one(query, params, what)
        return bool(row and row[0])


_ROLE_COLUMNS = "id, name, description, created_at"


class RoleService(_Queries):
    """Database lookups of roles and their permissions.

    ``db`` is an SQLite connection holding the ``roles``, ``permissions``
    and ``role_permissions`` tables.
    """

    def __init__(self, db: sqlite3.Connection) -> None:
        super().__init__(db)

    def _with_permissions(self, role: Role) -> Role:
        role.permissions = self.get_role_permissions(role.id)
        return role

    def get_role(self, role_id: int) -> Role:
        """Return the role with the given id, with its permissions."""
        row = self._fetch_one(
            f"SELECT {_ROLE_COLUMNS} FROM roles WHERE id = ?", (role_id,), "get role"
        )
        if row is None:
            raise RoleNotFound()
        return self._with_permissions(_role_from_row(row))

    def get_role_by_name(self, name: str) -> Role:
        """Return the role with the given name, with its permissions."""
        row = self._fetch_one(
            f"SELECT {_ROLE_COLUMNS} FROM roles WHERE name = ?", (name,), "get role"
        )
        if row is None:
            raise RoleNotFound()
        return self._with_permissions(_role_from_row(row))

    def get_role_permissions(self, role_id: int) -> list[Permission]:
        """Return a role's permissions, ordered by resource and action."""
        rows = self._fetch_all(
            "SELECT p.id, p.resource, p.action, p.description, p.created_at "
            "FROM permissions p "
            "JOIN role_permissions rp ON p.id = rp.permission_id "
            "WHERE rp.role_id = ? ORDER BY p.resource, p.action",
            (role_id,),
            "get role permissions",
        )
        return [_permission_from_row(row) for row in rows]

    def list_roles(self) -> list[Role]:
        """Return every role, ordered by name, with its permissions."""
        rows = self._fetch_all(
            f"SELECT {_ROLE_COLUMNS} FROM roles ORDER BY name", (), "list roles"
        )
        return [self._with_permissions(_role_from_row(row)) for row in rows]


class RBACService(_Queries):
    """Access checks over the roles users hold in teams and groups."""

    def __init__(self, db: sqlite3.Connection) -> None:
        super().__init__(db)
        self._roles = RoleService(db)

    def check_user_permission(self, user_id: int, resource: str, action: str) -> bool:
        """Whether any of the user's team or group roles grants the permission."""
        return self._flag(
            "SELECT COUNT(*) > 0 FROM ("
            " SELECT p.id FROM user_teams ut"
            " JOIN role_permissions rp ON ut.role_id = rp.role_id"
            " JOIN permissions p ON rp.permission_id = p.id"
            " WHERE ut.user_id = ? AND p.resource = ? AND p.action = ?"
            " UNION"
            " SELECT p.id FROM user_groups ug"
            " JOIN role_permissions rp ON ug.role_id = rp.role_id"
            " JOIN permissions p ON rp.permission_id = p.id"
            " WHERE ug.user_id = ? AND p.resource = ? AND p.action = ?"
            ") AS combined_permissions",
            (user_id, resource, action, user_id, resource, action),
            "check user permission",
        )

    def get_user_permissions(self, user_id: int) -> list[Permission]:
        """Every distinct permission the user holds, ordered by resource and action."""
        rows = self._fetch_all(
            "SELECT DISTINCT p.id, p.resource, p.action, p.description, p.created_at "
            "FROM ("
            " SELECT p.* FROM user_teams ut"
            " JOIN role_permissions rp ON ut.role_id = rp.role_id"
            " JOIN permissions p ON rp.permission_id = p.id"
            " WHERE ut.user_id = ?"
            " UNION"
            " SELECT p.* FROM user_groups ug"
            " JOIN role_permissions rp ON ug.role_id = rp.role_id"
            " JOIN permissions p ON rp.permission_id = p.id"
            " WHERE ug.user_id = ?"
            ") AS p ORDER BY p.resource, p.action",
            (user_id, user_id),
            "get user permissions",
        )
        return [_permission_from_row(row) for row in rows]

    def get_user_roles(self, user_id: int) -> list[Role]:
        """Every distinct role the user holds in teams or groups, ordered by name."""
        rows = self._fetch_all(
            "SELECT DISTINCT r.id, r.name, r.description, r.created_at "
            "FROM ("
            " SELECT r.* FROM user_teams ut"
            " JOIN roles r ON ut.role_id = r.id WHERE ut.user_id = ?"
            " UNION"
            " SELECT r.* FROM user_groups ug"
            " JOIN roles r ON ug.role_id = r.id WHERE ug.user_id = ?"
            ") AS r ORDER BY r.name",
            (user_id, user_id),
            "get user roles",
        )
        roles = []
        for row in rows:
            role = _role_from_row(row)
            role.permissions = self._roles.get_role_permissions(role.id)
            roles.append(role)
        return roles

    def is_user_admin(self, user_id: int) -> bool:
        """Whether the user holds the admin role in any team or group."""
        admin = RoleName.ADMIN.value
        return self._flag(
            "SELECT COUNT(*) > 0 FROM ("
            " SELECT r.id FROM user_teams ut"
            " JOIN roles r ON ut.role_id = r.id"
            " WHERE ut.user_id = ? AND r.name = ?"
            " UNION"
            " SELECT r.id FROM user_groups ug"
            " JOIN roles r ON ug.role_id = r.id"
            " WHERE ug.user_id = ? AND r.name = ?"
            ") AS admin_roles",
            (user_id, admin, user_id, admin),
            "check admin status",
        )

    def check_team_permission(
        self, user_id: int, team_id: int, resource: str, action: str
    ) -> bool:
        """Whether the user holds the permission in the team or in its group."""
        if self._flag(
            "SELECT COUNT(*) > 0 FROM user_teams ut"
            " JOIN role_permissions rp ON ut.role_id = rp.role_id"
            " JOIN permissions p ON rp.permission_id = p.id"
            " WHERE ut.user_id = ? AND ut.team_id = ?"
            " AND p.resource = ? AND p.action = ?",
            (user_id, team_id, resource, action),
            "check team permission",
        ):
            return True
        return self._flag(
            "SELECT COUNT(*) > 0 FROM teams t"
            " JOIN user_groups ug ON t.group_id = ug.group_id"
            " JOIN role_permissions rp ON ug.role_id = rp.role_id"
            " JOIN permissions p ON rp.permission_id = p.id"
            " WHERE t.id = ? AND ug.user_id = ?"
            " AND p.resource = ? AND p.action = ?",
            (team_id, user_id, resource, action),
            "check group permission",
        )

    def get_user_team_role(self, user_id: int, team_id: int) -> Role:
        """The role the user holds in the team, with its permissions."""
        row = self._fetch_one(
            "SELECT r.id, r.name, r.description, r.created_at"
            " FROM user_teams ut JOIN roles r ON ut.role_id = r.id"
            " WHERE ut.user_id = ? AND ut.team_id = ?",
            (user_id, team_id),
            "get user team role",
        )
        if row is None:
            raise RoleError("user not found in team")
        role = _role_from_row(row)
        role.permissions = self._roles.get_role_permissions(role.id)
        return role