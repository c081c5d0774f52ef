from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from assesscore.database import get_db
from assesscore.errors import Forbidden
from assesscore.models.user import User

# токены выдаёт внешний сервис аутентификации; здесь токен = id пользователя
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


@dataclass(frozen=True)
class Principal:
    id: str
    email: str
    role: str
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> Principal:
    user = db.get(User, token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return Principal(id=user.id, email=user.email, role=user.role, name=user.name)


def require_role(*roles: str):
    """Зависимость FastAPI: пускает только указанные роли."""
    def checker(user: Principal = Depends(get_current_user)) -> Principal:
        if user.role not in roles:
            raise Forbidden("Access denied. Insufficient permissions.")
        return user
    return checker


def can_manage(principal: Principal, owner_id: str | None) -> bool:
    """Создатель ресурса или администратор."""
    return principal.is_admin or (owner_id is not None and principal.id == owner_id)


def require_manage(principal: Principal, owner_id: str | None) -> None:
    if not can_manage(principal, owner_id):
        raise Forbidden("Unauthorized")
