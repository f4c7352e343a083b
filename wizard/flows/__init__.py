"""Built-in wizards."""

from wizard.flows.browser_tuning import BROWSER_TUNING, build_browser_tuning
from wizard.flows.provider_setup import PROVIDER_SETUP, build_provider_setup

__all__ = [
    "BROWSER_TUNING",
    "PROVIDER_SETUP",
    "build_browser_tuning",
    "build_provider_setup",
]
