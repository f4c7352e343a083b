"""Terminal transport: drives one wizard session with questionary prompts."""

import re
import subprocess
import sys

import questionary
from questionary import Style

from wizard.engine import WizardEngine
from wizard.graph import CANCEL_VALUE, InputEvent, Reply

STYLE = Style(
    [
        ("qmark", "fg:cyan bold"),
        ("question", "bold"),
        ("answer", "fg:green bold"),
        ("pointer", "fg:cyan bold"),
        ("highlighted", "fg:cyan bold"),
        ("selected", "fg:green"),
    ]
)

CONSOLE_SESSION = "console"


def plain(text: str) -> str:
    """Strip the *bold* markers replies use for chat transports."""
    return re.sub(r"\*([^*\n]+)\*", r"\1", text)


async def ask(reply: Reply) -> InputEvent:
    """Prompt for the next input. Ctrl+C / Esc yield a cancel event."""
    if reply.choices:
        choices = [questionary.Choice(c.label, value=c.value) for c in reply.choices]
        if all(c.value != CANCEL_VALUE for c in reply.choices):
            choices.append(questionary.Choice("❌ Cancel", value=CANCEL_VALUE))
        value = await questionary.select("Choose:", choices=choices, style=STYLE).ask_async()
        return InputEvent.cancel() if value is None else InputEvent.choice(value)

    value = await questionary.text("›", style=STYLE).ask_async()
    return InputEvent.cancel() if value is None else InputEvent.text(value)


async def run_console(
    engine: WizardEngine,
    graph_id: str,
    session_id: str = CONSOLE_SESSION,
) -> Reply:
    """Run graph_id to completion in the terminal. Returns the final reply."""
    reply = await engine.start(session_id, graph_id)
    while engine.has_session(session_id):
        print(f"\n{plain(reply.text)}\n")
        event = await ask(reply)
        reply = await engine.handle(session_id, event)
    print(f"\n{plain(reply.text)}\n")
    return reply


def reset_terminal_for_input() -> None:
    """Restore the terminal after questionary / prompt_toolkit may have left it in raw mode."""
    if not sys.stdin.isatty() or sys.platform == "win32":
        return
    try:
        subprocess.run(["stty", "sane"], stdin=sys.stdin, capture_output=True, timeout=2)
    except (OSError, subprocess.SubprocessError):
        pass
