"""browser_tuning wizard: walks through every Playwright launch option and
commits them together after a summary."""

from typing import Any, Mapping

from tunebot.config.models import BROWSER_KEYS, DEFAULT_VIDEO_DIR
from tunebot.errors import ValidationFault
from wizard import validators
from wizard.graph import (
    Choice,
    InputEvent,
    InputKind,
    Reply,
    StepDefinition,
    StepGraph,
    StepResult,
    advance,
    jump_to,
    terminate,
)

BROWSER_TUNING = "browser_tuning"

BROWSERS = (
    Choice("🌐 Chromium", "chromium"),
    Choice("🦊 Firefox", "firefox"),
    Choice("🍎 WebKit", "webkit"),
)

VIEWPORTS = (
    Choice("📱 375x667 (Mobile)", "375x667"),
    Choice("💻 1280x720 (HD)", "1280x720"),
    Choice("🖥 1920x1080 (Full HD)", "1920x1080"),
    Choice("✏️ Custom", "custom"),
)

USER_AGENT_CHOICES = (Choice("📱 Default", "default"), Choice("✏️ Custom", "custom"))
VIDEO_DIR_CHOICES = (Choice("📁 Default", "default"), Choice("✏️ Custom", "custom"))
CONFIRM_CHOICES = (Choice("💾 Save", "save"), Choice("❌ Cancel", "discard"))


def _yes_no(yes: str, no: str = "🚫 No") -> tuple[Choice, ...]:
    return (Choice(yes, "yes"), Choice(no, "no"))


def _on_off(flag: bool) -> str:
    return "Enabled" if flag else "Disabled"


def _user_agent_choice(event: InputEvent) -> tuple[str, str | None]:
    """Default / Custom from the menu, or a user agent typed straight away."""
    if event.kind is InputKind.TEXT:
        raw = event.payload.strip()
        if raw.lower() in ("default", "custom"):
            return raw.lower(), None
        if raw:
            return "typed", raw
    elif event.kind is InputKind.CHOICE and event.payload in ("default", "custom"):
        return event.payload, None
    raise ValidationFault('⚠️ Please select "Default" or "Custom", or type a user agent.')


def summary(acc: Mapping[str, Any]) -> Reply:
    video = acc.get("recordVideo")
    video_text = f"Enabled ({video['dir']})" if isinstance(video, Mapping) else "Disabled"
    lines = [
        "📋 *Configuration summary*",
        "",
        f"🌐 Browser: *{acc.get('browserName')}*",
        f"🕵️ Stealth mode: *{_on_off(acc.get('enableStealth', False))}*",
        f"🖥 Headless mode: *{_on_off(acc.get('headless', False))}*",
        f"⏱ Slow motion: *{acc.get('slowMo')}ms*",
        f"📱 User agent: *{acc.get('userAgent') or 'Default'}*",
        f"📐 Viewport: *{acc.get('viewportWidth')}x{acc.get('viewportHeight')}*",
        f"📸 Initial screenshot: *{_on_off(acc.get('takeInitialScreenshot', False))}*",
        f"🎥 Video recording: *{video_text}*",
        f"🔒 Ignore HTTPS errors: *{_on_off(acc.get('ignoreHTTPSErrors', False))}*",
        "",
        "Save this configuration?",
    ]
    return Reply("\n".join(lines), CONFIRM_CHOICES)


async def on_browser(name: str, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(advance(), f"✅ You selected: *{name}*", {"browserName": name})


async def on_stealth(flag: bool, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(advance(), f"✅ Stealth mode: *{_on_off(flag)}*", {"enableStealth": flag})


async def on_headless(flag: bool, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(advance(), f"✅ Headless mode: *{_on_off(flag)}*", {"headless": flag})


async def on_slow_mo(delay: int, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(advance(), f"✅ Slow motion delay: *{delay}ms*", {"slowMo": delay})


async def on_user_agent(picked: tuple[str, str | None], acc: Mapping[str, Any]) -> StepResult:
    mode, typed = picked
    if mode == "default":
        return StepResult(jump_to("viewport"), "✅ User agent: *Default*")
    if mode == "custom":
        return StepResult(jump_to("user_agent_custom"))
    return StepResult(jump_to("viewport"), f"✅ User agent set: *{typed[:30]}...*", {"userAgent": typed})


async def on_user_agent_custom(agent: str, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(advance(), f"✅ User agent set: *{agent[:30]}...*", {"userAgent": agent})


async def on_viewport(preset: str, acc: Mapping[str, Any]) -> StepResult:
    if preset == "custom":
        return StepResult(jump_to("viewport_custom"))
    width, height = (int(v) for v in preset.split("x"))
    return StepResult(
        jump_to("screenshot"),
        f"✅ Viewport set: *{width}x{height}*",
        {"viewportWidth": width, "viewportHeight": height},
    )


async def on_viewport_custom(size: tuple[int, int], acc: Mapping[str, Any]) -> StepResult:
    width, height = size
    return StepResult(
        advance(),
        f"✅ Viewport set: *{width}x{height}*",
        {"viewportWidth": width, "viewportHeight": height},
    )


async def on_screenshot(flag: bool, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(
        advance(), f"✅ Initial screenshot: *{_on_off(flag)}*", {"takeInitialScreenshot": flag}
    )


async def on_video(flag: bool, acc: Mapping[str, Any]) -> StepResult:
    if flag:
        return StepResult(jump_to("video_dir"))
    return StepResult(jump_to("https_errors"), "✅ Video recording: *Disabled*", {"recordVideo": False})


async def on_video_dir(mode: str, acc: Mapping[str, Any]) -> StepResult:
    if mode == "custom":
        return StepResult(jump_to("video_dir_custom"))
    return StepResult(
        jump_to("https_errors"),
        f"✅ Video directory set: *{DEFAULT_VIDEO_DIR}*",
        {"recordVideo": {"dir": DEFAULT_VIDEO_DIR}},
    )


async def on_video_dir_custom(directory: str, acc: Mapping[str, Any]) -> StepResult:
    directory = directory or DEFAULT_VIDEO_DIR
    return StepResult(
        advance(),
        f"✅ Video directory set: *{directory}*",
        {"recordVideo": {"dir": directory}},
    )


async def on_https_errors(flag: bool, acc: Mapping[str, Any]) -> StepResult:
    return StepResult(
        advance(), f"✅ Ignore HTTPS errors: *{_on_off(flag)}*", {"ignoreHTTPSErrors": flag}
    )


async def on_confirm(decision: str, acc: Mapping[str, Any]) -> StepResult:
    if decision == "save":
        return StepResult(
            terminate(commit=True),
            "✅ Configuration saved! The browser will use the new settings on its next launch.",
        )
    return StepResult(
        terminate(commit=False),
        "❌ Configuration cancelled. Your existing settings remain unchanged.",
    )


def build_browser_tuning() -> StepGraph:
    steps = [
        StepDefinition(
            id="browser",
            prompt=Reply(
                "👋 *Welcome to the Playwright Setup Wizard!*\n\n"
                "Let's configure your browser. First, choose the browser type:",
                BROWSERS,
            ),
            validator=validators.choice_of(*(c.value for c in BROWSERS)),
            handler=on_browser,
            next="stealth",
        ),
        StepDefinition(
            id="stealth",
            prompt=Reply(
                "Would you like to enable stealth mode to avoid detection?",
                _yes_no("🕵️ Yes"),
            ),
            validator=validators.yes_no(),
            handler=on_stealth,
            next="headless",
        ),
        StepDefinition(
            id="headless",
            prompt=Reply("Would you like to run the browser in headless mode?", _yes_no("🖥 Yes")),
            validator=validators.yes_no(),
            handler=on_headless,
            next="slow_mo",
        ),
        StepDefinition(
            id="slow_mo",
            prompt=Reply(
                "Enter slow motion delay in milliseconds (e.g., 50 for 50ms, or 0 for none):"
            ),
            validator=validators.non_negative_int(),
            handler=on_slow_mo,
            next="user_agent",
        ),
        StepDefinition(
            id="user_agent",
            prompt=Reply(
                'Enter a custom user agent string or select "Default":',
                USER_AGENT_CHOICES,
            ),
            validator=_user_agent_choice,
            handler=on_user_agent,
            branches=frozenset({"viewport", "user_agent_custom"}),
        ),
        StepDefinition(
            id="user_agent_custom",
            prompt=Reply(
                '✏️ Please enter a custom user agent string (e.g., "Mozilla/5.0 '
                '(Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) '
                'Chrome/91.0.4472.124 Safari/537.36"):'
            ),
            validator=validators.text(message="⚠️ The user agent cannot be empty. Try again."),
            handler=on_user_agent_custom,
            next="viewport",
        ),
        StepDefinition(
            id="viewport",
            prompt=Reply('Choose a viewport size or select "Custom" to enter manually:', VIEWPORTS),
            validator=validators.choice_of(*(c.value for c in VIEWPORTS)),
            handler=on_viewport,
            branches=frozenset({"viewport_custom", "screenshot"}),
        ),
        StepDefinition(
            id="viewport_custom",
            prompt=Reply(
                '✏️ Please enter the viewport size in the format "width height" (e.g., "1280 720"):'
            ),
            validator=validators.positive_int_pair(),
            handler=on_viewport_custom,
            next="screenshot",
        ),
        StepDefinition(
            id="screenshot",
            prompt=Reply(
                "Would you like to take an initial screenshot when launching the browser?",
                _yes_no("📸 Yes"),
            ),
            validator=validators.yes_no(),
            handler=on_screenshot,
            next="video",
        ),
        StepDefinition(
            id="video",
            prompt=Reply("Would you like to record a video of browser actions?", _yes_no("🎥 Yes")),
            validator=validators.yes_no(),
            handler=on_video,
            branches=frozenset({"video_dir", "https_errors"}),
        ),
        StepDefinition(
            id="video_dir",
            prompt=Reply(
                f'🎥 Choose the directory for video recordings or press "Default" '
                f'to use "{DEFAULT_VIDEO_DIR}":',
                VIDEO_DIR_CHOICES,
            ),
            validator=validators.choice_of("default", "custom"),
            handler=on_video_dir,
            branches=frozenset({"video_dir_custom", "https_errors"}),
        ),
        StepDefinition(
            id="video_dir_custom",
            prompt=Reply(
                '✏️ Please enter a custom directory for video recordings (e.g., "./videos"):'
            ),
            validator=validators.text(allow_empty=True),
            handler=on_video_dir_custom,
            next="https_errors",
        ),
        StepDefinition(
            id="https_errors",
            prompt=Reply("Would you like to ignore HTTPS errors?", _yes_no("🔒 Yes")),
            validator=validators.yes_no(),
            handler=on_https_errors,
            next="confirm",
        ),
        StepDefinition(
            id="confirm",
            prompt=summary,
            validator=validators.choice_of("save", "discard"),
            handler=on_confirm,
        ),
    ]
    return StepGraph(
        BROWSER_TUNING,
        entry="browser",
        steps=steps,
        owns=BROWSER_KEYS,
    )
