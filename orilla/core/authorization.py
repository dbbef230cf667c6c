from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from orilla.database import SessionLocal
from orilla.deps.auth import optional_auth, require_auth
from orilla.models.user import User


class SystemRole(Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    USER = "user"


_RANK = {
    SystemRole.USER: 1,
    SystemRole.ADMIN: 2,
    SystemRole.SUPER_ADMIN: 3,
}


@dataclass(frozen=True)
class Actor:
    id: str
    system_role: SystemRole = SystemRole.USER


def is_system_admin(actor: Optional[Actor]) -> bool:
    return actor is not None and actor.system_role in (SystemRole.ADMIN, SystemRole.SUPER_ADMIN)


def load_actor(db: Session, user_id: str) -> Optional[Actor]:
    user = db.query(User).filter(User.id == str(user_id)).first()
    if user is None:
        return None
    try:
        role = SystemRole(str(user.role))
    except ValueError:
        role = SystemRole.USER
    return Actor(id=user.id, system_role=role)


def _resolve(user_id: str) -> Actor:
    db = SessionLocal()
    try:
        actor = load_actor(db, user_id)
    finally:
        db.close()
    if actor is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return actor


def get_current_actor(user_id: str = Depends(require_auth)) -> Actor:
    return _resolve(user_id)


def get_optional_actor(user_id: Optional[str] = Depends(optional_auth)) -> Optional[Actor]:
    if user_id is None:
        return None
    return _resolve(user_id)


def require_system_role(role: SystemRole):
    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if _RANK[actor.system_role] < _RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient role")
        return actor

    return dependency
