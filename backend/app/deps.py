"""
FastAPI dependency providers.
Routes depend on these; tests replace them via app.dependency_overrides.
"""

from fastapi import Depends

from backend.app.db.postgres_client import get_db
from backend.app.db.redis_client import get_async_redis
from backend.app.repositories.events import EventStore
from backend.app.repositories.forms import FormRepository
from backend.app.repositories.submissions import SubmissionStore
from backend.app.services.analytics_service import AnalyticsService
from backend.app.services.cache import AggregateCache
from backend.app.services.events_service import EventService
from backend.app.services.submissions_service import SubmissionService


def get_form_repository() -> FormRepository:
    return FormRepository(get_db())


def get_event_store() -> EventStore:
    return EventStore(get_db())


def get_submission_store() -> SubmissionStore:
    return SubmissionStore(get_db())


async def get_aggregate_cache() -> AggregateCache:
    return AggregateCache(await get_async_redis())


def get_analytics_service(
    forms: FormRepository = Depends(get_form_repository),
    events: EventStore = Depends(get_event_store),
    submissions: SubmissionStore = Depends(get_submission_store),
    cache: AggregateCache = Depends(get_aggregate_cache),
) -> AnalyticsService:
    return AnalyticsService(forms, events, submissions, cache)


def get_event_service(
    forms: FormRepository = Depends(get_form_repository),
    events: EventStore = Depends(get_event_store),
) -> EventService:
    return EventService(forms, events)


def get_submission_service(
    forms: FormRepository = Depends(get_form_repository),
    submissions: SubmissionStore = Depends(get_submission_store),
) -> SubmissionService:
    return SubmissionService(forms, submissions)
