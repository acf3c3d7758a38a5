"""
FastAPI dependencies.

Authentication plus providers for the matching components. Routes depend on
these providers so tests can swap them through `app.dependency_overrides`.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from backend.app.core.config import settings, MatchingConfig
from backend.app.core.jwt import decode_access_token
from backend.app.core.reliability import CircuitBreaker
from backend.app.db.session import AsyncSessionLocal, IS_SQLITE
from backend.app.db.store import SqlAlchemyStore
from backend.app.domain.matching.lifecycle import MatchLifecycleManager
from backend.app.domain.pricing.pricing_calculator import PricingCalculator
from backend.app.services.notification_dispatcher import NotificationDispatcher
from backend.app.services.notification_service import InAppNotifier

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"

store = SqlAlchemyStore(AsyncSessionLocal, serialize_writes=IS_SQLITE)

notification_dispatcher = NotificationDispatcher(
    queue_size=settings.notification_queue_size,
    workers=settings.notification_workers,
    circuit_breaker=CircuitBreaker(
        failure_threshold=settings.notifier_failure_threshold,
        reset_timeout=settings.notifier_reset_timeout,
        name="notifier",
    ),
)

matching_config = MatchingConfig.from_settings(settings)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Returns:
        Decoded token payload containing at least `user_id`

    Raises:
        HTTPException: 401 if the token is missing, invalid or has no user_id
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("user_id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == ADMIN_ROLE


def get_store() -> SqlAlchemyStore:
    return store


def get_matching_config() -> MatchingConfig:
    return matching_config


def get_notification_dispatcher() -> NotificationDispatcher:
    return notification_dispatcher


def get_pricing_calculator(
    store: SqlAlchemyStore = Depends(get_store),
    config: MatchingConfig = Depends(get_matching_config),
) -> PricingCalculator:
    return PricingCalculator(store, config)


def get_match_manager(
    store: SqlAlchemyStore = Depends(get_store),
    config: MatchingConfig = Depends(get_matching_config),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> MatchLifecycleManager:
    return MatchLifecycleManager(
        store=store,
        config=config,
        notifier=InAppNotifier(store),
        dispatcher=dispatcher,
    )
