from fastapi import APIRouter, Depends

from assesscore.utils.auth import Principal, get_current_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me")
def get_profile(user: Principal = Depends(get_current_user)):
    """
    Профиль текущего пользователя. Вход и выпуск токенов -- во внешнем сервисе.
    """
    return {
        "success": True,
        "message": "OK",
        "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role},
    }
