from fastapi import APIRouter, HTTPException

from repairshop.dependencies.auth import CurrentUser
from repairshop.dependencies.shop import DocumentStoreDep
from repairshop.gateway import GatewayError

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/db", summary="Document store connectivity")
async def ping_db(store: DocumentStoreDep, user: CurrentUser) -> dict[str, str]:
    try:
        await store.test_connection()
    except GatewayError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "ok", "user": user.user_id}
