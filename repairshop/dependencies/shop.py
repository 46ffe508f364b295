from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from repairshop.dependencies.auth import CurrentUser
from repairshop.gateway import PostgresDocumentStore
from repairshop.session import SessionRegistry, ShopSession


async def get_session_registry(request: Request) -> SessionRegistry:
    registry = getattr(request.app.state, "sessions", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Shop sessions are not configured")
    return registry


async def get_shop_session(
    user: CurrentUser,
    registry: Annotated[SessionRegistry, Depends(get_session_registry)],
) -> ShopSession:
    return await registry.get(user.user_id)


async def get_document_store(request: Request) -> PostgresDocumentStore:
    store = getattr(request.app.state, "document_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Document store is not configured")
    return store


ShopSessionDep = Annotated[ShopSession, Depends(get_shop_session)]
DocumentStoreDep = Annotated[PostgresDocumentStore, Depends(get_document_store)]
