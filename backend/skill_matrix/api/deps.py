"""
API Dependencies

Database session, authenticated user (local HS256 tokens or Supabase JWKS)
and the per-request access control service.
"""

import uuid
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlmodel import Session

from skill_matrix.application.services.access_service import AccessControlService
from skill_matrix.application.services.hierarchy_service import HierarchyService
from skill_matrix.application.services.rating_service import RatingMutationService
from skill_matrix.core import security
from skill_matrix.core.config import settings
from skill_matrix.core.db import engine
from skill_matrix.core.observability import get_logger, set_user_id
from skill_matrix.core.supabase_jwt import verify_token as verify_supabase_jwt
from skill_matrix.domain.access.evaluator import AccessEvaluator
from skill_matrix.infrastructure.events.change_feed import ChangeFeed
from skill_matrix.infrastructure.events.registry import get_change_feed
from skill_matrix.models import TokenPayload, User

logger = get_logger(__name__)

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/access-token"
)


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]
TokenDep = Annotated[str, Depends(reusable_oauth2)]
ChangeFeedDep = Annotated[ChangeFeed, Depends(get_change_feed)]


def authenticate_token(session: Session, token: str) -> User:
    """Resolve a bearer token to an active user or raise ``HTTPException``."""
    try:
        if settings.USE_SUPABASE_AUTH:
            payload = verify_supabase_jwt(token)
        else:
            payload = security.decode_access_token(token)
            # Supabase tokens carry no 'type'; local ones must be access tokens
            if payload.get("type") not in (None, "access"):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Invalid token type",
                )
        token_data = TokenPayload(**payload)
        user_id = uuid.UUID(str(token_data.sub))
    except (InvalidTokenError, ValidationError, ValueError) as e:
        logger.warning("Token validation failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )

    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    set_user_id(str(user.id))
    return user


def get_current_user(session: SessionDep, token: TokenDep) -> User:
    return authenticate_token(session, token)


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_current_active_admin(current_user: CurrentUser) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=403, detail="The user doesn't have enough privileges"
        )
    return current_user


AdminUser = Annotated[User, Depends(get_current_active_admin)]


def get_access_service(
    session: SessionDep, current_user: CurrentUser, feed: ChangeFeedDep
) -> AccessControlService:
    return AccessControlService(session, current_user, feed)


AccessServiceDep = Annotated[AccessControlService, Depends(get_access_service)]


def get_access_evaluator(access: AccessServiceDep) -> AccessEvaluator:
    return access.evaluator


EvaluatorDep = Annotated[AccessEvaluator, Depends(get_access_evaluator)]


def get_hierarchy_service(
    session: SessionDep, evaluator: EvaluatorDep, feed: ChangeFeedDep
) -> HierarchyService:
    return HierarchyService(session, evaluator, feed)


HierarchyServiceDep = Annotated[HierarchyService, Depends(get_hierarchy_service)]


def get_rating_service(session: SessionDep, feed: ChangeFeedDep) -> RatingMutationService:
    return RatingMutationService(session, feed)


RatingServiceDep = Annotated[RatingMutationService, Depends(get_rating_service)]
