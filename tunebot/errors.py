"""Fault kinds raised and handled across tunebot. None of them is fatal to the process."""


class TunebotError(Exception):
    """Base class for all tunebot faults."""


class ConfigLoadFault(TunebotError):
    """Backing document unreadable or malformed at startup. Store falls back to defaults."""


class ConfigReloadFault(TunebotError):
    """Backing document unreadable or malformed after a successful initial load."""


class PersistFault(TunebotError):
    """Writing the backing document failed; the commit did not happen."""


class InitializationFault(TunebotError):
    """A consumer could not apply a new projection."""


class StepFault(TunebotError):
    """Recoverable fault inside a wizard step. The engine turns it into a repeat."""


class ValidationFault(StepFault):
    """Malformed step input."""


class ProvisioningFault(StepFault):
    """A side-effect step (e.g. model install) failed."""


class GraphError(TunebotError):
    """Step graph is inconsistent (unknown step, undeclared branch)."""


class SessionNotFoundError(TunebotError, KeyError):
    """No wizard session is open for the given id."""

    def __str__(self) -> str:
        return f"No wizard session for {self.args[0]!r}" if self.args else "No wizard session"
