"""FastAPI dependencies: caller identity and service wiring.

Repositories are in-memory module singletons unless DATABASE_URL is set,
in which case each request gets PostgreSQL repos bound to one session
that commits when the handler returns and rolls back on error.  Write
requests invalidate the analytics cache after that commit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from academy.db.engine import async_session_factory, session_scope
from academy.models.principal import Principal
from academy.models.user import ROLES
from academy.repos.content_repo import ContentRepo, InMemoryContentRepo
from academy.repos.payment_repo import InMemoryPaymentRepo, PaymentRepo
from academy.repos.pg_content_repo import PgContentRepo
from academy.repos.pg_payment_repo import PgPaymentRepo
from academy.repos.pg_progress_repo import PgProgressRepo
from academy.repos.pg_quiz_repo import PgQuizRepo
from academy.repos.pg_user_repo import PgUserRepo
from academy.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from academy.repos.quiz_repo import InMemoryQuizRepo, QuizRepo
from academy.repos.user_repo import InMemoryUserRepo, UserRepo
from academy.services import token_service
from academy.services.analytics_aggregator import AnalyticsAggregator
from academy.services.cache import cache_service, invalidate_analytics
from academy.services.content_service import ContentService
from academy.services.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# --- In-memory stores (used when no DATABASE_URL is configured) ---

user_repo = InMemoryUserRepo()
content_repo = InMemoryContentRepo()
progress_repo = InMemoryProgressRepo()
payment_repo = InMemoryPaymentRepo()
quiz_repo = InMemoryQuizRepo()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the calling Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        user_id = UUID(claims["sub"])
    except ValueError:
        logger.warning("Token rejected, sub is not a UUID: %s", claims["sub"])
        raise _unauthorized("Invalid token subject") from None

    role = claims.get("role", "student")
    if role not in ROLES:
        logger.warning("Token rejected, unknown role=%s user=%s", role, user_id)
        raise _unauthorized("Invalid token role")

    principal = Principal(user_id=user_id, role=role)
    logger.debug("Token validated for user=%s role=%s", user_id, role)
    return principal


@dataclass(frozen=True, slots=True)
class Repos:
    users: UserRepo
    content: ContentRepo
    progress: ProgressRepo
    payments: PaymentRepo
    quizzes: QuizRepo


_READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


async def get_repos(request: Request) -> AsyncGenerator[Repos, None]:
    """Request-scoped repositories.

    A write request that finishes without an error drops the cached
    analytics reports once its transaction has committed, so a concurrent
    report cannot re-cache rows from before the commit.
    """
    if async_session_factory is None:
        yield Repos(
            users=user_repo,
            content=content_repo,
            progress=progress_repo,
            payments=payment_repo,
            quizzes=quiz_repo,
        )
    else:
        async with session_scope() as session:
            yield Repos(
                users=PgUserRepo(session),
                content=PgContentRepo(session),
                progress=PgProgressRepo(session),
                payments=PgPaymentRepo(session),
                quizzes=PgQuizRepo(session),
            )

    if request.method not in _READ_METHODS:
        await invalidate_analytics(cache_service)


def get_tracker(repos: Annotated[Repos, Depends(get_repos)]) -> ProgressTracker:
    return ProgressTracker(
        users=repos.users, content=repos.content, progress=repos.progress
    )


def get_aggregator(
    repos: Annotated[Repos, Depends(get_repos)],
) -> AnalyticsAggregator:
    return AnalyticsAggregator(
        users=repos.users,
        content=repos.content,
        progress=repos.progress,
        payments=repos.payments,
        quizzes=repos.quizzes,
    )


def get_content_service(
    repos: Annotated[Repos, Depends(get_repos)],
) -> ContentService:
    return ContentService(content=repos.content)
