"""WizardEngine: runs step graphs, one session per operator.

Sessions live in an explicit table keyed by session id. Each session has its
own lock, so transitions of one session never interleave (single-flight):
a second input waits until the first transition's reply is produced.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Protocol

from tunebot.errors import GraphError, PersistFault, SessionNotFoundError, StepFault
from wizard.graph import (
    Choice,
    InputEvent,
    Reply,
    StepDefinition,
    StepGraph,
    StepResult,
    TransitionKind,
    CANCEL_VALUE,
)

logger = logging.getLogger(__name__)

CANCELLED_TEXT = "❌ Configuration cancelled. Your existing settings remain unchanged."
SAVED_TEXT = "✅ Configuration saved."
REJECTED_TEXT = "⚠️ Invalid input. Please try again."
RETRY_CHOICES = (Choice("🔁 Retry", "retry"), Choice("❌ Cancel", CANCEL_VALUE))


class CommitTarget(Protocol):
    """Where terminal steps commit (ConfigStore)."""

    async def commit(self, fragment: Mapping[str, Any]) -> Any: ...


@dataclass
class WizardSession:
    session_id: str
    graph_id: str
    active_step: str
    accumulator: dict[str, Any] = field(default_factory=dict)
    closed: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class WizardEngine:
    """Graph-driven step sequencer. Transport-agnostic: takes InputEvents, returns Replies."""

    def __init__(self, store: CommitTarget) -> None:
        self._store = store
        self._graphs: dict[str, StepGraph] = {}
        self._sessions: dict[str, WizardSession] = {}

    def register(self, graph: StepGraph) -> None:
        self._graphs[graph.id] = graph

    @property
    def graph_ids(self) -> list[str]:
        return list(self._graphs)

    def graph(self, graph_id: str) -> StepGraph:
        try:
            return self._graphs[graph_id]
        except KeyError:
            raise GraphError(f"Unknown wizard {graph_id!r}") from None

    # ------------------------------------------------------------------ #
    # Session table                                                        #
    # ------------------------------------------------------------------ #

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def active_step(self, session_id: str) -> str:
        return self._get(session_id).active_step

    def accumulator(self, session_id: str) -> dict[str, Any]:
        """Copy of the session's accumulator."""
        return dict(self._get(session_id).accumulator)

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def _get(self, session_id: str) -> WizardSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _close(self, session: WizardSession) -> None:
        session.closed = True
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]

    # ------------------------------------------------------------------ #
    # Operations                                                           #
    # ------------------------------------------------------------------ #

    async def start(self, session_id: str, graph_id: str) -> Reply:
        """Open a session at the graph's entry step, replacing any open one."""
        graph = self.graph(graph_id)
        old = self._sessions.get(session_id)
        if old is not None:
            async with old.lock:
                self._close(old)
            logger.info("Session %s: replaced open %s wizard", session_id, old.graph_id)

        session = WizardSession(session_id, graph.id, graph.entry)
        self._sessions[session_id] = session
        logger.info("Session %s: starting %s wizard", session_id, graph.id)
        async with session.lock:
            return await self._enter(session, graph, graph.entry)

    async def handle(self, session_id: str, event: InputEvent) -> Reply:
        """Run one transition for session_id. Raises SessionNotFoundError."""
        session = self._get(session_id)
        async with session.lock:
            if session.closed:
                raise SessionNotFoundError(session_id)
            if event.is_cancel:
                self._close(session)
                logger.info("Session %s: %s wizard cancelled", session_id, session.graph_id)
                return Reply(CANCELLED_TEXT)
            graph = self.graph(session.graph_id)
            step = graph.step(session.active_step)
            logger.info(
                "🛠 %s/%s: processing %s input", graph.id, step.id, event.kind.value
            )
            return await self._run(session, graph, step, event)

    async def cancel(self, session_id: str) -> Reply:
        return await self.handle(session_id, InputEvent.cancel())

    # ------------------------------------------------------------------ #
    # Transitions                                                          #
    # ------------------------------------------------------------------ #

    async def _enter(self, session: WizardSession, graph: StepGraph, step_id: str) -> Reply:
        session.active_step = step_id
        step = graph.step(step_id)
        prompt = step.render(session.accumulator)
        if not step.auto:
            return prompt
        return prompt.then(await self._run(session, graph, step, InputEvent.none()))

    async def _run(
        self,
        session: WizardSession,
        graph: StepGraph,
        step: StepDefinition,
        event: InputEvent,
    ) -> Reply:
        try:
            value = step.validator(event) if step.validator else event.payload
            result = await step.handler(value, MappingProxyType(session.accumulator))
        except StepFault as e:
            logger.info("%s/%s: input rejected: %s", graph.id, step.id, e)
            return self._reprompt(session, step, str(e))
        return await self._apply(session, graph, step, result)

    async def _apply(
        self,
        session: WizardSession,
        graph: StepGraph,
        step: StepDefinition,
        result: StepResult,
    ) -> Reply:
        kind = result.transition.kind
        if kind is TransitionKind.REPEAT:
            return self._reprompt(session, step, result.reply or REJECTED_TEXT)

        if kind is TransitionKind.TERMINATE:
            return await self._terminate(session, graph, step, result)

        if kind is TransitionKind.ADVANCE:
            target = step.next
            if target is None:
                raise GraphError(f"{graph.id}: step {step.id!r} has no next step")
        else:
            target = result.transition.target
            if target not in step.branches:
                raise GraphError(
                    f"{graph.id}: step {step.id!r} has no declared branch to {target!r}"
                )

        session.accumulator.update(result.updates)
        next_reply = await self._enter(session, graph, target)
        return Reply(result.reply or "").then(next_reply)

    async def _terminate(
        self,
        session: WizardSession,
        graph: StepGraph,
        step: StepDefinition,
        result: StepResult,
    ) -> Reply:
        if not result.transition.commit:
            self._close(session)
            logger.info("Session %s: %s wizard discarded", session.session_id, graph.id)
            return Reply(result.reply or CANCELLED_TEXT)

        staged = {**session.accumulator, **result.updates}
        fragment = {k: v for k, v in staged.items() if k in graph.owns}
        try:
            await self._store.commit(fragment)
        except PersistFault as e:
            logger.error("Session %s: commit failed: %s", session.session_id, e)
            return self._reprompt(
                session, step, f"⚠️ Failed to save configuration: {e}\n\nPlease try again."
            )
        self._close(session)
        logger.info(
            "💾 Session %s: %s wizard committed %s",
            session.session_id,
            graph.id,
            sorted(fragment),
        )
        return Reply(result.reply or SAVED_TEXT)

    def _reprompt(self, session: WizardSession, step: StepDefinition, message: str) -> Reply:
        if step.auto:
            return Reply(message, RETRY_CHOICES)
        return Reply(message).then(step.render(session.accumulator))
