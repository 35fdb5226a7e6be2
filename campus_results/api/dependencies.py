# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

Dependencies are used to:
- Get database sessions
- Get the authenticated caller

Example:
    @router.get("/results")
    async def list_results(
        db: AsyncSession = Depends(get_db),
        caller: Caller = Depends(require_caller),
    ):
        ...
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_results.api.middleware.auth import get_caller
from campus_results.core.policy import Caller
from campus_results.infrastructure.database.connection import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request.

    Yields:
        AsyncSession; anything left uncommitted is rolled back on exit.
    """
    async with get_session() as session:
        yield session


def require_caller(request: Request) -> Caller:
    """Require an authenticated caller.

    Raises:
        HTTPException: 401 if the request carried no valid bearer token.
    """
    caller = get_caller(request)
    if caller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return caller


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentCaller = Annotated[Caller, Depends(require_caller)]
