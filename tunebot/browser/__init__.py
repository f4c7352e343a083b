"""Browser launcher driven by the browser projection."""

from tunebot.browser.manager import BrowserManager, context_options

__all__ = ["BrowserManager", "context_options"]
