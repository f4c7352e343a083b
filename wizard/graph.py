"""Step graph primitives: input events, replies, transitions, steps and graphs.

Graphs are fixed in code. Every transition a step can take is declared on
the step (next / branches) and checked when the graph is built.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Mapping

from tunebot.errors import GraphError

CANCEL_VALUE = "__cancel__"


class InputKind(str, Enum):
    TEXT = "text"
    CHOICE = "choice"
    CANCEL = "cancel"
    NONE = "none"  # synthetic, used when an auto step is entered


@dataclass(frozen=True)
class InputEvent:
    """Operator input as delivered by a transport."""

    kind: InputKind
    payload: str = ""

    @classmethod
    def text(cls, payload: str) -> "InputEvent":
        return cls(InputKind.TEXT, payload)

    @classmethod
    def choice(cls, value: str) -> "InputEvent":
        return cls(InputKind.CHOICE, value)

    @classmethod
    def cancel(cls) -> "InputEvent":
        return cls(InputKind.CANCEL)

    @classmethod
    def none(cls) -> "InputEvent":
        return cls(InputKind.NONE)

    @property
    def is_cancel(self) -> bool:
        return self.kind is InputKind.CANCEL or (
            self.kind is InputKind.CHOICE and self.payload == CANCEL_VALUE
        )


@dataclass(frozen=True)
class Choice:
    label: str
    value: str


@dataclass(frozen=True)
class Reply:
    """Output for the operator: text plus an optional choice menu."""

    text: str
    choices: tuple[Choice, ...] = ()

    def then(self, other: "Reply") -> "Reply":
        """Concatenate texts; the menu is the one of the later reply."""
        if not self.text:
            return other
        if not other.text:
            return Reply(self.text, other.choices)
        return Reply(f"{self.text}\n\n{other.text}", other.choices)


class TransitionKind(str, Enum):
    ADVANCE = "advance"
    JUMP = "jump"
    TERMINATE = "terminate"
    REPEAT = "repeat"


@dataclass(frozen=True)
class Transition:
    kind: TransitionKind
    target: str | None = None
    commit: bool = False


def advance() -> Transition:
    return Transition(TransitionKind.ADVANCE)


def jump_to(step_id: str) -> Transition:
    return Transition(TransitionKind.JUMP, target=step_id)


def terminate(commit: bool = True) -> Transition:
    return Transition(TransitionKind.TERMINATE, commit=commit)


def repeat() -> Transition:
    return Transition(TransitionKind.REPEAT)


@dataclass(frozen=True)
class StepResult:
    """What a handler decided. updates are applied only if the step is left."""

    transition: Transition
    reply: str | None = None
    updates: Mapping[str, Any] = field(default_factory=dict)


Validator = Callable[[InputEvent], Any]
Handler = Callable[[Any, Mapping[str, Any]], Awaitable[StepResult]]
Prompt = Reply | Callable[[Mapping[str, Any]], Reply]


@dataclass(frozen=True)
class StepDefinition:
    """One step. Shared read-only by every session of its graph.

    validator turns the raw InputEvent into the value passed to handler and
    raises ValidationFault on bad input. auto steps run their handler as soon
    as they are entered (side effects) and again on any input after a repeat.
    """

    id: str
    prompt: Prompt
    handler: Handler
    validator: Validator | None = None
    next: str | None = None
    branches: frozenset[str] = frozenset()
    auto: bool = False

    def render(self, accumulator: Mapping[str, Any]) -> Reply:
        return self.prompt(accumulator) if callable(self.prompt) else self.prompt


class StepGraph:
    """Directed structure of steps with one entry step."""

    def __init__(
        self,
        graph_id: str,
        entry: str,
        steps: Iterable[StepDefinition],
        owns: frozenset[str],
    ) -> None:
        self.id = graph_id
        self.entry = entry
        self.owns = frozenset(owns)
        self._steps: dict[str, StepDefinition] = {}
        for step in steps:
            if step.id in self._steps:
                raise GraphError(f"{graph_id}: duplicate step {step.id!r}")
            self._steps[step.id] = step
        self._check()

    def _check(self) -> None:
        if self.entry not in self._steps:
            raise GraphError(f"{self.id}: entry step {self.entry!r} not defined")
        for step in self._steps.values():
            targets = set(step.branches)
            if step.next:
                targets.add(step.next)
            unknown = targets - set(self._steps)
            if unknown:
                raise GraphError(
                    f"{self.id}: step {step.id!r} points to unknown {sorted(unknown)}"
                )

    def step(self, step_id: str) -> StepDefinition:
        try:
            return self._steps[step_id]
        except KeyError:
            raise GraphError(f"{self.id}: unknown step {step_id!r}") from None

    @property
    def step_ids(self) -> list[str]:
        return list(self._steps)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._steps
