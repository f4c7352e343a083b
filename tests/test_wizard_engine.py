"""Tests for WizardEngine: transitions, single-flight, cancel, commit faults."""

import asyncio
from typing import Any, Mapping

import pytest

from conftest import FakeStore
from tunebot.errors import GraphError, ProvisioningFault, SessionNotFoundError
from wizard import validators
from wizard.engine import CANCELLED_TEXT, WizardEngine
from wizard.graph import (
    CANCEL_VALUE,
    Choice,
    InputEvent,
    Reply,
    StepDefinition,
    StepGraph,
    StepResult,
    advance,
    jump_to,
    repeat,
    terminate,
)


async def _name(value: str, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(advance(), f"Hi {value}", {"name": value})


async def _color(value: str, acc: Mapping[str, Any]) -> StepResult:
    if value == "other":
        return StepResult(jump_to("custom"))
    return StepResult(jump_to("done"), updates={"color": value})


async def _custom(value: str, acc: Mapping[str, Any]) -> StepResult:
    if value == "again":
        return StepResult(repeat(), "Try another", {"color": "ignored"})
    return StepResult(advance(), updates={"color": value})


async def _done(value: str, acc: Mapping[str, Any]) -> StepResult:
    if value == "save":
        return StepResult(terminate(commit=True), "Saved", {"extra": "not owned"})
    return StepResult(terminate(commit=False), "Discarded")


def build_graph() -> StepGraph:
    return StepGraph(
        "demo",
        entry="name",
        owns=frozenset({"name", "color"}),
        steps=[
            StepDefinition("name", Reply("Your name?"), _name, validators.text(), next="color"),
            StepDefinition(
                "color",
                Reply("Color?", (Choice("Red", "red"), Choice("Other", "other"))),
                _color,
                validators.choice_of("red", "other"),
                branches=frozenset({"custom", "done"}),
            ),
            StepDefinition("custom", Reply("Which color?"), _custom, validators.text(), next="done"),
            StepDefinition(
                "done",
                lambda acc: Reply(f"Save {acc.get('color')}?", (Choice("Save", "save"), Choice("Drop", "drop"))),
                _done,
                validators.choice_of("save", "drop"),
            ),
        ],
    )


@pytest.fixture
def engine(fake_store: FakeStore) -> WizardEngine:
    e = WizardEngine(fake_store)
    e.register(build_graph())
    return e


class TestWizardEngineTransitions:
    """advance / jump / repeat / terminate."""

    @pytest.mark.asyncio
    async def test_start_returns_entry_prompt(self, engine: WizardEngine) -> None:
        """start() opens a session at the entry step."""
        reply = await engine.start("s1", "demo")
        assert reply.text == "Your name?"
        assert engine.has_session("s1")
        assert engine.active_step("s1") == "name"
        assert engine.graph_ids == ["demo"]

    @pytest.mark.asyncio
    async def test_advance_joins_ack_and_next_prompt(self, engine: WizardEngine) -> None:
        """The acknowledgement and the next prompt arrive as one reply."""
        await engine.start("s1", "demo")
        reply = await engine.handle("s1", InputEvent.text("Ann"))
        assert reply.text == "Hi Ann\n\nColor?"
        assert [c.value for c in reply.choices] == ["red", "other"]
        assert engine.active_step("s1") == "color"
        assert engine.accumulator("s1") == {"name": "Ann"}

    @pytest.mark.asyncio
    async def test_validation_fault_repeats_step(self, engine: WizardEngine) -> None:
        """Rejected input leaves the step and accumulator untouched."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        reply = await engine.handle("s1", InputEvent.choice("green"))
        assert "Please pick one" in reply.text
        assert reply.text.endswith("Color?")
        assert engine.active_step("s1") == "color"
        assert engine.accumulator("s1") == {"name": "Ann"}

    @pytest.mark.asyncio
    async def test_jump_follows_declared_branch(self, engine: WizardEngine) -> None:
        """jump_to lands on the branch chosen by the handler."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        await engine.handle("s1", InputEvent.choice("other"))
        assert engine.active_step("s1") == "custom"

    @pytest.mark.asyncio
    async def test_repeat_discards_updates(self, engine: WizardEngine) -> None:
        """Updates returned with repeat are not applied."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        await engine.handle("s1", InputEvent.choice("other"))
        reply = await engine.handle("s1", InputEvent.text("again"))
        assert reply.text == "Try another\n\nWhich color?"
        assert "color" not in engine.accumulator("s1")

    @pytest.mark.asyncio
    async def test_commit_filters_to_owned_keys(
        self, engine: WizardEngine, fake_store: FakeStore
    ) -> None:
        """Only keys the graph owns reach the store; the session closes."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        await engine.handle("s1", InputEvent.choice("red"))
        reply = await engine.handle("s1", InputEvent.choice("save"))
        assert reply.text == "Saved"
        assert fake_store.commits == [{"name": "Ann", "color": "red"}]
        assert not engine.has_session("s1")

    @pytest.mark.asyncio
    async def test_terminate_without_commit(self, engine: WizardEngine, fake_store: FakeStore) -> None:
        """terminate(commit=False) discards the accumulator."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        await engine.handle("s1", InputEvent.choice("red"))
        reply = await engine.handle("s1", InputEvent.choice("drop"))
        assert reply.text == "Discarded"
        assert fake_store.commits == []
        assert not engine.has_session("s1")

    @pytest.mark.asyncio
    async def test_persist_fault_keeps_session(self, engine: WizardEngine, fake_store: FakeStore) -> None:
        """A failed commit reports, keeps the step and the accumulator."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        await engine.handle("s1", InputEvent.choice("red"))
        fake_store.fail_next = True
        reply = await engine.handle("s1", InputEvent.choice("save"))
        assert "Failed to save" in reply.text
        assert "disk full" in reply.text
        assert engine.active_step("s1") == "done"
        assert engine.accumulator("s1") == {"name": "Ann", "color": "red"}

        await engine.handle("s1", InputEvent.choice("save"))
        assert fake_store.commits == [{"name": "Ann", "color": "red"}]


class TestWizardEngineSessions:
    """Session table, cancel and single-flight."""

    @pytest.mark.asyncio
    async def test_cancel_destroys_session(self, engine: WizardEngine, fake_store: FakeStore) -> None:
        """Cancel from any step: no commit, session gone."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        reply = await engine.cancel("s1")
        assert reply.text == CANCELLED_TEXT
        assert not engine.has_session("s1")
        assert fake_store.commits == []

    @pytest.mark.asyncio
    async def test_cancel_choice_value(self, engine: WizardEngine) -> None:
        """A menu choice carrying the cancel value cancels."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.choice(CANCEL_VALUE))
        assert not engine.has_session("s1")

    @pytest.mark.asyncio
    async def test_handle_without_session(self, engine: WizardEngine) -> None:
        """Input for an unknown session raises SessionNotFoundError."""
        with pytest.raises(SessionNotFoundError):
            await engine.handle("nobody", InputEvent.text("hi"))

    @pytest.mark.asyncio
    async def test_start_replaces_open_session(self, engine: WizardEngine) -> None:
        """Starting again resets the session to the entry step."""
        await engine.start("s1", "demo")
        await engine.handle("s1", InputEvent.text("Ann"))
        await engine.start("s1", "demo")
        assert engine.active_step("s1") == "name"
        assert engine.accumulator("s1") == {}

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self, engine: WizardEngine) -> None:
        """Two operators never see each other's answers."""
        await engine.start("a", "demo")
        await engine.start("b", "demo")
        await engine.handle("a", InputEvent.text("Ann"))
        assert engine.active_step("b") == "name"
        assert engine.accumulator("b") == {}
        assert engine.session_count == 2

    @pytest.mark.asyncio
    async def test_unknown_graph(self, engine: WizardEngine) -> None:
        """Starting an unregistered wizard is a GraphError."""
        with pytest.raises(GraphError):
            await engine.start("s1", "missing")

    @pytest.mark.asyncio
    async def test_single_flight(self, fake_store: FakeStore) -> None:
        """A second input waits for the first transition and sees its result."""
        log: list[str] = []
        gate = asyncio.Event()

        async def slow(value: str, acc: Mapping[str, Any]) -> StepResult:
            log.append(f"first:{value}")
            await gate.wait()
            log.append("first:done")
            return StepResult(advance(), updates={"first": value})

        async def second(value: str, acc: Mapping[str, Any]) -> StepResult:
            log.append(f"second:{value}:{acc.get('first')}")
            return StepResult(terminate(), updates={"second": value})

        graph = StepGraph(
            "slow",
            entry="a",
            owns=frozenset({"first", "second"}),
            steps=[
                StepDefinition("a", Reply("A?"), slow, next="b"),
                StepDefinition("b", Reply("B?"), second),
            ],
        )
        engine = WizardEngine(fake_store)
        engine.register(graph)
        await engine.start("s", "slow")

        t1 = asyncio.create_task(engine.handle("s", InputEvent.text("1")))
        t2 = asyncio.create_task(engine.handle("s", InputEvent.text("2")))
        for _ in range(5):
            await asyncio.sleep(0)
        assert log == ["first:1"]

        gate.set()
        await asyncio.gather(t1, t2)
        assert log == ["first:1", "first:done", "second:2:1"]
        assert fake_store.commits == [{"first": "1", "second": "2"}]


class TestWizardEngineAutoSteps:
    """Side-effect steps."""

    @pytest.mark.asyncio
    async def test_auto_step_runs_on_entry_and_retries(self, fake_store: FakeStore) -> None:
        """A failing auto step stays put with Retry; the next input re-runs it."""
        attempts: list[int] = []

        async def work(_: Any, acc: Mapping[str, Any]) -> StepResult:
            attempts.append(len(attempts))
            if len(attempts) == 1:
                raise ProvisioningFault("server down")
            return StepResult(terminate(), "done", {"ok": True})

        async def ask(value: str, acc: Mapping[str, Any]) -> StepResult:
            return StepResult(advance())

        graph = StepGraph(
            "auto",
            entry="ask",
            owns=frozenset({"ok"}),
            steps=[
                StepDefinition("ask", Reply("Go?"), ask, next="work"),
                StepDefinition("work", Reply("Working..."), work, auto=True),
            ],
        )
        engine = WizardEngine(fake_store)
        engine.register(graph)
        await engine.start("s", "auto")

        reply = await engine.handle("s", InputEvent.text("go"))
        assert reply.text == "Working...\n\nserver down"
        assert [c.value for c in reply.choices] == ["retry", CANCEL_VALUE]
        assert engine.active_step("s") == "work"
        assert fake_store.commits == []

        reply = await engine.handle("s", InputEvent.choice("retry"))
        assert reply.text == "done"
        assert fake_store.commits == [{"ok": True}]
        assert attempts == [0, 1]


class TestStepGraph:
    """Graph construction checks."""

    def test_duplicate_step(self) -> None:
        """Two steps with one id are rejected."""
        step = StepDefinition("a", Reply("A"), _name)
        with pytest.raises(GraphError, match="duplicate"):
            StepGraph("g", "a", [step, step], frozenset())

    def test_unknown_entry(self) -> None:
        """The entry step must exist."""
        with pytest.raises(GraphError, match="entry"):
            StepGraph("g", "zzz", [StepDefinition("a", Reply("A"), _name)], frozenset())

    def test_unknown_target(self) -> None:
        """next and branches must point at defined steps."""
        with pytest.raises(GraphError, match="unknown"):
            StepGraph(
                "g",
                "a",
                [StepDefinition("a", Reply("A"), _name, branches=frozenset({"nowhere"}))],
                frozenset(),
            )

    @pytest.mark.asyncio
    async def test_undeclared_jump_is_rejected(self, fake_store: FakeStore) -> None:
        """A handler jumping outside its branches is a GraphError."""

        async def rogue(value: str, acc: Mapping[str, Any]) -> StepResult:
            return StepResult(jump_to("b"))

        graph = StepGraph(
            "g",
            "a",
            [StepDefinition("a", Reply("A"), rogue), StepDefinition("b", Reply("B"), rogue)],
            frozenset(),
        )
        engine = WizardEngine(fake_store)
        engine.register(graph)
        await engine.start("s", "g")
        with pytest.raises(GraphError, match="no declared branch"):
            await engine.handle("s", InputEvent.text("x"))
