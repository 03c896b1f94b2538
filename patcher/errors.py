from typing import Optional


class PatchError(Exception):
    """Base class for everything the patcher raises on purpose."""


class ConfigError(PatchError):
    """Invalid or unreadable fix configuration."""


class ExtractionError(PatchError):
    """
    A stage of identifier extraction failed.

    `stage` is one of the class constants below (NO_HANDLER,
    AMBIGUOUS_HANDLER, ...) so callers can report which part of the
    expected structure went missing.
    """

    NO_HANDLER = "no-handler-match"
    AMBIGUOUS_HANDLER = "ambiguous-handler"
    NO_POLICY_VARIABLE = "no-policy-variable"
    NO_SECURE_VARIABLE = "no-secure-variable"
    NO_SCHEDULING_HOOK = "no-scheduling-hook"
    AMBIGUOUS_SCHEDULING_HOOK = "ambiguous-scheduling-hook"

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage

    @property
    def is_ambiguity(self) -> bool:
        return self.stage == self.AMBIGUOUS_SCHEDULING_HOOK


class AmbiguousTargetError(PatchError):
    """The matched handler text is not uniquely located in the file."""

    def __init__(self, count: int, message: Optional[str] = None):
        super().__init__(message or f"Target found {count} times (expected 1)")
        self.count = count
