from fastapi import APIRouter, Depends

from app.core.app_state import AppState
from app.routers.utils.dependencies import get_app_state

router = APIRouter(
    prefix="/system",
    tags=["system"],
    responses={404: {"description": "Not found"}},
)


@router.get("/health", response_model=dict)
def health(state: AppState = Depends(get_app_state)) -> dict:
    """Liveness plus database reachability and live session count."""
    database_ok = state.database.check_connection()
    return {
        "status": "ok" if database_ok else "degraded",
        "app": state.settings.app_name,
        "environment": state.settings.environment,
        "database": database_ok,
        "sessions": len(state.supervisor.list_sessions()),
        "subscribers": state.hub.subscriber_count,
    }
