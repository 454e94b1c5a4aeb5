from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from bgsport.db import q, x
from bgsport.utils import iso_now

log = logging.getLogger(__name__)

ROLES = ("admin", "manager", "staff", "graphic", "accountant")

# Older rows were created with free-text roles; reports accept these spellings.
ADMIN_ROLE_ALIASES = frozenset({"admin", "sale-admin", "sale_admin"})
GRAPHIC_ROLE_ALIASES = frozenset({"graphic", "graphics", "designer"})


def _normalize_role(role: str) -> str:
    r = str(role or "").strip().lower()
    if r not in ROLES:
        raise ValueError(f"Invalid role. Use one of: {', '.join(ROLES)}.")
    return r


def _clean(value: Optional[str]) -> Optional[str]:
    s = str(value or "").strip()
    return s or None


def list_users(conn, *, role: Optional[str] = None, active: Optional[bool] = None, search: str = ""):
    sql = "SELECT * FROM users WHERE 1=1"
    params: list[Any] = []
    if role:
        sql += " AND role=?"
        params.append(str(role))
    if active is not None:
        sql += " AND is_active=?"
        params.append(1 if active else 0)
    s = str(search or "").strip().lower()
    if s:
        sql += " AND (LOWER(full_name) LIKE ? OR LOWER(COALESCE(phone,'')) LIKE ? OR LOWER(COALESCE(email,'')) LIKE ?)"
        params.extend([f"%{s}%"] * 3)
    sql += " ORDER BY created_at DESC, id DESC"
    return q(conn, sql, params)


def active_staff(conn, roles: Iterable[str] = ("admin", "graphic")):
    roles = list(roles)
    marks = ",".join("?" for _ in roles)
    return q(
        conn,
        f"SELECT id, full_name, role, is_active FROM users WHERE is_active=1 AND role IN ({marks}) ORDER BY full_name",
        roles,
    )


def get_user(conn, user_id: int):
    rows = q(conn, "SELECT * FROM users WHERE id=?", (int(user_id),))
    return rows[0] if rows else None


def create_user(
    conn,
    *,
    full_name: str,
    role: str = "staff",
    phone: Optional[str] = None,
    email: Optional[str] = None,
    notes: Optional[str] = None,
) -> int:
    name = str(full_name or "").strip()
    if not name:
        raise ValueError("Full name is required.")
    now = iso_now()
    user_id = x(
        conn,
        """
        INSERT INTO users (full_name, phone, email, role, is_active, notes, created_at, updated_at)
        VALUES (?, ?, ?, ?, 1, ?, ?, ?)
        """,
        (name, _clean(phone), _clean(email), _normalize_role(role), _clean(notes), now, now),
    )
    log.info("Created user %s (%s, %s)", user_id, name, role)
    return user_id


def update_user(
    conn,
    user_id: int,
    *,
    full_name: str,
    role: str,
    is_active: bool = True,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    notes: Optional[str] = None,
) -> None:
    name = str(full_name or "").strip()
    if not name:
        raise ValueError("Full name is required.")
    if get_user(conn, user_id) is None:
        raise ValueError("User not found.")
    x(
        conn,
        """
        UPDATE users
        SET full_name=?, phone=?, email=?, role=?, is_active=?, notes=?, updated_at=?
        WHERE id=?
        """,
        (name, _clean(phone), _clean(email), _normalize_role(role), int(bool(is_active)), _clean(notes), iso_now(), int(user_id)),
    )


def set_user_active(conn, user_id: int, active: bool) -> None:
    x(conn, "UPDATE users SET is_active=?, updated_at=? WHERE id=?", (int(bool(active)), iso_now(), int(user_id)))


def resolve_user(
    users: Iterable[Mapping[str, Any]],
    role: str,
    id_or_name: Any,
    *,
    name: Optional[str] = None,
) -> Optional[Mapping[str, Any]]:
    """
    Find a user by id, falling back to a case-insensitive full-name match
    (against `name` when given, else against `id_or_name`).

    Only users carrying `role` are returned. An id that matches a user with
    another role resolves to None; it does not fall through to the name.
    """
    key = str(id_or_name if id_or_name is not None else "").strip()
    fallback = str(name if name is not None else key).strip().lower()
    users = list(users)

    picked = next((u for u in users if key and str(u["id"]) == key), None)
    if picked is None and fallback:
        picked = next(
            (u for u in users if str(u["full_name"]).strip().lower() == fallback and u["role"] == role),
            None,
        )
    if picked is None or picked["role"] != role:
        return None
    return picked
