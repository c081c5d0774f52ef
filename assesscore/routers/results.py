from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from assesscore.database import get_db
from assesscore.utils import scoring
from assesscore.utils.auth import Principal, get_current_user, require_role

router = APIRouter(prefix="/api/results", tags=["Results"])


# /admin/all объявлен раньше, чем общий маршрут
@router.get("/admin/all")
def all_results(db: Session = Depends(get_db), user: Principal = Depends(require_role("admin"))):
    return {"success": True, "message": "OK", "results": scoring.all_results(db)}


@router.get("")
def my_results(db: Session = Depends(get_db), user: Principal = Depends(get_current_user)):
    return {"success": True, "message": "OK", "results": scoring.results_for_candidate(db, user.id)}
