from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlmodel import Session

from ..db.engine import get_session
from ..services.payment_gateways import get_supported_gateways

router = APIRouter()


@router.get("/health", tags=["System"])
def get_system_health(session: Session = Depends(get_session)):
    """
    Returns the system health status including:
    - Database reachability
    - Supported payment gateways
    """
    try:
        session.connection().execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        database = f"error: {e}"

    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "gateways": get_supported_gateways(),
    }
