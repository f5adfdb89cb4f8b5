from fastapi import APIRouter, Depends
from sqlalchemy import text

from ..db import get_session, is_postgres
from ..schemas import StatusResponse


router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
def get_status():
    return StatusResponse()


@router.get("/status/db", response_model=dict)
def db_status(session=Depends(get_session)):
    ok = True
    details = {"backend": "postgres" if is_postgres() else "other"}
    try:
        session.exec(text("SELECT 1"))
    except Exception as e:  # noqa: BLE001
        ok = False
        details["error"] = str(e)
    return {"ok": ok, "details": details}
