import asyncio

import pytest

from menulink import outcomes
from menulink.outcomes import Outcome, OutcomeKind
from menulink.resolver import IDLE, ResolutionMachine, ResolutionState, TenantResolver


class GatedFetch:
    """Fetch that blocks each slug until the test releases it."""

    def __init__(self):
        self.gates = {}
        self.results = {}
        self.started = []
        self.cancelled = []

    def release(self, slug, outcome):
        self.results[slug] = outcome
        self.gates.setdefault(slug, asyncio.Event()).set()

    async def __call__(self, slug):
        self.started.append(slug)
        gate = self.gates.setdefault(slug, asyncio.Event())
        try:
            await gate.wait()
        except asyncio.CancelledError:
            self.cancelled.append(slug)
            raise
        return self.results[slug]

    async def wait_started(self, slug):
        while slug not in self.started:
            await asyncio.sleep(0)


def test_machine_starts_idle():
    machine = ResolutionMachine()
    assert machine.snapshot is IDLE
    assert not machine.snapshot.state.terminal


def test_machine_applies_current_ticket():
    machine = ResolutionMachine()
    ticket = machine.begin("taco-place")
    assert machine.snapshot.state is ResolutionState.LOADING
    assert machine.settle(ticket, outcomes.ready({"name": "Taco Place"}))
    snapshot = machine.snapshot
    assert snapshot.state is ResolutionState.READY
    assert snapshot.slug == "taco-place"
    assert snapshot.payload == {"name": "Taco Place"}


def test_machine_discards_stale_ticket():
    machine = ResolutionMachine()
    first = machine.begin("a")
    second = machine.begin("b")
    assert not machine.settle(first, Outcome(OutcomeKind.NOT_FOUND, message="Restaurant not found"))
    assert machine.snapshot.slug == "b"
    assert machine.snapshot.state is ResolutionState.LOADING
    assert machine.settle(second, outcomes.ready("B"))
    assert machine.snapshot.payload == "B"


def test_machine_reset_invalidates_in_flight_lookup():
    machine = ResolutionMachine()
    ticket = machine.begin("a")
    machine.reset()
    assert not machine.settle(ticket, outcomes.ready("A"))
    assert machine.snapshot is IDLE


@pytest.mark.parametrize(
    "outcome, state",
    [
        (Outcome(OutcomeKind.NOT_FOUND, message="Restaurant not found"), ResolutionState.NOT_FOUND),
        (Outcome(OutcomeKind.INACTIVE, message="Membership is not active"), ResolutionState.INACTIVE),
        (outcomes.other(), ResolutionState.OTHER),
    ],
)
def test_machine_terminal_states_carry_message(outcome, state):
    machine = ResolutionMachine()
    machine.settle(machine.begin("x"), outcome)
    assert machine.snapshot.state is state
    assert machine.snapshot.state.terminal
    assert machine.snapshot.message == outcome.message


@pytest.mark.anyio
async def test_resolve_returns_settled_snapshot():
    fetch = GatedFetch()
    fetch.release("taco-place", outcomes.ready("menu"))
    resolver = TenantResolver(fetch)
    snapshot = await resolver.resolve("taco-place")
    assert snapshot.state is ResolutionState.READY
    assert snapshot.payload == "menu"


@pytest.mark.anyio
async def test_newer_lookup_wins_even_if_older_would_finish_later():
    fetch = GatedFetch()
    resolver = TenantResolver(fetch)

    first = asyncio.ensure_future(resolver.resolve("a"))
    await fetch.wait_started("a")
    second = asyncio.ensure_future(resolver.resolve("b"))
    await fetch.wait_started("b")

    fetch.release("b", outcomes.ready("B"))
    fetch.release("a", outcomes.ready("A"))

    assert await first is None
    snapshot = await second
    assert snapshot.slug == "b"
    assert snapshot.payload == "B"
    assert fetch.cancelled == ["a"]
    assert resolver.snapshot.payload == "B"


@pytest.mark.anyio
async def test_failing_fetch_settles_as_other():
    async def broken(slug):
        raise RuntimeError("boom")

    resolver = TenantResolver(broken)
    snapshot = await resolver.resolve("taco-place")
    assert snapshot.state is ResolutionState.OTHER
    assert snapshot.message == outcomes.TRANSPORT_FAILURE_MESSAGE


@pytest.mark.anyio
async def test_reset_cancels_and_returns_to_idle():
    fetch = GatedFetch()
    resolver = TenantResolver(fetch)
    pending = asyncio.ensure_future(resolver.resolve("a"))
    await fetch.wait_started("a")
    resolver.reset()
    assert await pending is None
    assert resolver.snapshot is IDLE
    assert fetch.cancelled == ["a"]
