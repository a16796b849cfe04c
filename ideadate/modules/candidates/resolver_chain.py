"""
modules/candidates/resolver_chain.py
------------------------------------
Remote-first candidate resolution with a local fallback.

Order of preference per search:
  1. remote resolver, kept only when it returns at least MIN_REMOTE_RESULTS
  2. local dataset resolver
  3. nothing ("none")

Resolver exceptions never escape the chain. They are logged, reduced to a
short single-line error string and reported through ResolverTelemetry.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ideadate import config
from ideadate.modules.candidates.google_resolver import GoogleCandidateResolver
from ideadate.modules.candidates.local_resolver import LocalCandidateResolver
from ideadate.modules.candidates.resolver import Candidate, CandidateResolver, SearchArgs
from ideadate.schemas.plan import ResolverTelemetry

logger = logging.getLogger(__name__)

MIN_REMOTE_RESULTS = 3
MAX_ERROR_LENGTH = 120

_WHITESPACE = re.compile(r"\s+")


def sanitize_resolver_error(error: object) -> Optional[str]:
    """Collapse whitespace and cap at MAX_ERROR_LENGTH characters."""
    if error is None:
        return None
    text = _WHITESPACE.sub(" ", str(error)).strip()
    if not text:
        text = type(error).__name__ if isinstance(error, BaseException) else "unknown error"
    if len(text) > MAX_ERROR_LENGTH:
        text = text[: MAX_ERROR_LENGTH - 3] + "..."
    return text


class ResolverChain:
    """
    Callable resolver that tries *remote* then *local*.

    ``last_telemetry`` describes the most recent search; ``__call__`` keeps
    the plain resolver signature so the chain can be passed anywhere a
    CandidateResolver is accepted.
    """

    def __init__(
        self,
        remote: Optional[CandidateResolver] = None,
        local: Optional[CandidateResolver] = None,
    ) -> None:
        self.remote = remote
        self.local = local
        self.last_telemetry = ResolverTelemetry()

    async def __call__(self, args: SearchArgs) -> list[Candidate]:
        candidates, telemetry = await self.resolve(args)
        self.last_telemetry = telemetry
        return candidates

    async def resolve(self, args: SearchArgs) -> tuple[list[Candidate], ResolverTelemetry]:
        error: Optional[str] = None

        if self.remote is not None:
            try:
                remote = list(await self.remote(args))
            except Exception as exc:
                error = sanitize_resolver_error(exc)
                logger.warning("[ResolverChain] remote resolver failed: %s", error)
                remote = []
            if len(remote) >= MIN_REMOTE_RESULTS:
                return remote, ResolverTelemetry(used="remote", count=len(remote), error=error)
            logger.debug("[ResolverChain] remote returned %d (< %d), falling back",
                         len(remote), MIN_REMOTE_RESULTS)

        if self.local is not None:
            try:
                local = list(await self.local(args))
            except Exception as exc:
                error = sanitize_resolver_error(exc)
                logger.warning("[ResolverChain] local resolver failed: %s", error)
                local = []
            if local:
                return local, ResolverTelemetry(used="local", count=len(local), error=error)

        return [], ResolverTelemetry(used="none", count=0, error=error)


def build_default_chain() -> ResolverChain:
    """Chain wired from USE_REMOTE_RESOLVER / USE_LOCAL_RESOLVER."""
    remote = GoogleCandidateResolver() if config.USE_REMOTE_RESOLVER else None
    local = LocalCandidateResolver() if config.USE_LOCAL_RESOLVER else None
    logger.info("[ResolverChain] remote=%s local=%s", remote is not None, local is not None)
    return ResolverChain(remote=remote, local=local)
