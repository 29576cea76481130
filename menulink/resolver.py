import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from . import outcomes
from .config import Settings
from .links import viewer_url
from .outcomes import Outcome, OutcomeKind
from .schemas import PdfDocument

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Awaitable[Outcome]]


class ResolutionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    OTHER = "other"

    @property
    def terminal(self) -> bool:
        return self not in (ResolutionState.IDLE, ResolutionState.LOADING)


_STATE_FOR = {
    OutcomeKind.READY: ResolutionState.READY,
    OutcomeKind.NOT_FOUND: ResolutionState.NOT_FOUND,
    OutcomeKind.INACTIVE: ResolutionState.INACTIVE,
    OutcomeKind.OTHER: ResolutionState.OTHER,
}


@dataclass(frozen=True)
class Snapshot:
    slug: Optional[str]
    state: ResolutionState
    payload: Any = None
    message: str = ""


IDLE = Snapshot(slug=None, state=ResolutionState.IDLE)


class ResolutionMachine:
    def __init__(self):
        self._ticket = 0
        self._snapshot = IDLE

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def ticket(self) -> int:
        return self._ticket

    def begin(self, slug: str) -> int:
        self._ticket += 1
        self._snapshot = Snapshot(slug=slug, state=ResolutionState.LOADING)
        return self._ticket

    def settle(self, ticket: int, outcome: Outcome) -> bool:
        if ticket != self._ticket:
            logger.debug("discarding stale outcome %s (ticket %d, current %d)", outcome.kind.value, ticket, self._ticket)
            return False
        self._snapshot = Snapshot(
            slug=self._snapshot.slug,
            state=_STATE_FOR[outcome.kind],
            payload=outcome.payload,
            message=outcome.message,
        )
        return True

    def reset(self) -> None:
        self._ticket += 1
        self._snapshot = IDLE


class TenantResolver:
    def __init__(self, fetch: Fetch, name: str = "menu"):
        self.name = name
        self._fetch = fetch
        self._machine = ResolutionMachine()
        self._task: Optional[asyncio.Task] = None

    @property
    def snapshot(self) -> Snapshot:
        return self._machine.snapshot

    def request(self, slug: str) -> asyncio.Task:
        """Start a lookup for ``slug``, superseding any lookup in flight."""
        self.cancel()
        ticket = self._machine.begin(slug)
        logger.debug("%s lookup #%d for %r", self.name, ticket, slug)
        self._task = asyncio.create_task(self._run(ticket, slug))
        return self._task

    async def resolve(self, slug: str) -> Optional[Snapshot]:
        """Look up ``slug`` and wait for it to settle.

        Returns ``None`` when a newer lookup replaced this one before it
        finished; the caller's view is gone in that case.
        """
        task = self.request(slug)
        ticket = self._machine.ticket
        await asyncio.wait({task})
        if task.cancelled() or self._machine.ticket != ticket:
            return None
        return self.snapshot

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def reset(self) -> None:
        self.cancel()
        self._machine.reset()

    async def _run(self, ticket: int, slug: str) -> None:
        try:
            outcome = await self._fetch(slug)
        except asyncio.CancelledError:
            logger.debug("%s lookup #%d for %r cancelled", self.name, ticket, slug)
            raise
        except Exception:
            logger.exception("%s lookup for %r failed", self.name, slug)
            outcome = outcomes.other()
        self._machine.settle(ticket, outcome)


@dataclass(frozen=True)
class DocumentBundle:
    document: PdfDocument
    viewer_url: str


def menu_resolver(backend) -> TenantResolver:
    return TenantResolver(backend.fetch_restaurant, name="menu")


def document_resolver(backend, settings: Settings) -> TenantResolver:
    async def fetch(slug: str) -> Outcome:
        outcome = await backend.fetch_pdf(slug)
        if not outcome.ok:
            return outcome
        document = outcome.payload
        return outcomes.ready(DocumentBundle(document=document, viewer_url=viewer_url(document.file_path, settings)))

    return TenantResolver(fetch, name="document")
