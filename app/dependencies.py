"""Application dependency wiring."""

from __future__ import annotations

from functools import lru_cache

from redis import Redis

from app.core.config import settings
from app.lenses import default_lenses
from app.providers import LLMProvider, provider_from_settings
from app.repositories.redis_store import RedisRunStore
from app.services.brief import BriefSynthesizer
from app.services.clarification import ClarificationAggregator
from app.services.orchestrator import LensOrchestrator
from app.services.runs import DecisionRunService
from app.telemetry import EventSink, sink_from_settings


@lru_cache
def get_redis_client() -> Redis:
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
    )


@lru_cache
def get_store() -> RedisRunStore:
    return RedisRunStore(get_redis_client(), key_prefix=settings.runs_key_prefix)


@lru_cache
def get_llm_provider() -> LLMProvider:
    return provider_from_settings()


@lru_cache
def get_event_sink() -> EventSink:
    return sink_from_settings()


@lru_cache
def get_orchestrator() -> LensOrchestrator:
    lenses = default_lenses(
        get_llm_provider(),
        temperature=settings.lens_temperature,
        max_tokens=settings.lens_max_tokens,
    )
    return LensOrchestrator(lenses)


@lru_cache
def get_brief_synthesizer() -> BriefSynthesizer:
    return BriefSynthesizer(
        get_llm_provider(),
        temperature=settings.brief_temperature,
        max_tokens=settings.brief_max_tokens,
    )


@lru_cache
def get_run_service() -> DecisionRunService:
    return DecisionRunService(
        get_store(),
        get_orchestrator(),
        ClarificationAggregator(),
        get_brief_synthesizer(),
        sink=get_event_sink(),
    )
