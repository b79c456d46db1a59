"""Exception types shared by the adapters, the aggregator and orchestration."""

import traceback
from datetime import datetime, timezone


class PayloadShapeError(ValueError):
    """Payload is not an object for its declared source kind."""


class MissingFieldsError(ValueError):
    """Payload lacks one or more required identity fields."""

    def __init__(self, message: str, fields: list[str]):
        super().__init__(message)
        self.fields = list(fields)


class InvalidKeyError(ValueError):
    """Key does not follow the upper snake case naming rule."""


# Message fragments mapped to recovery steps, checked in order.
RECOVERY_PATTERNS = [
    (("enoent", "no such file", "file not found"), [
        "Verify the file or directory exists",
        "Check the path for typos",
    ]),
    (("eacces", "permission denied", "permission"), [
        "Check file and directory permissions",
        "Verify the GitHub token has the required scopes",
    ]),
    (("eexist", "already exists"), [
        "Remove or rename the existing file",
        "Choose a different output path",
    ]),
    (("econnrefused", "connection refused", "connection"), [
        "Verify network connectivity to GitHub",
        "Check proxy settings",
    ]),
    (("timeout", "timed out"), [
        "Retry the operation",
        "Increase api.request_timeout in the config file",
    ]),
    (("json", "parse", "decode"), [
        "Check the payload is valid JSON",
        "Verify the source kind matches the payload shape",
    ]),
    (("no module named", "module not found"), [
        "Install the project dependencies with: pip install -e .",
    ]),
]

GENERIC_RECOVERY = [
    "Check the error message for details",
    "Retry the operation",
]


class OrchestratorError(Exception):
    """Terminal failure carrying recovery instructions for the caller.

    Wraps the original exception so its type and stack survive into the
    stop-signal block written by ResultAggregator.
    """

    def __init__(
        self,
        error: BaseException | str,
        recovery_instructions: list[str],
        context: dict | None = None,
        debug_info: dict | None = None,
    ):
        if not recovery_instructions:
            raise ValueError("OrchestratorError requires at least one recovery instruction")
        original = error if isinstance(error, BaseException) else Exception(str(error))
        super().__init__(str(original))
        self.original_error = original
        self.recovery_instructions = list(recovery_instructions)
        self.context = dict(context or {})
        self.debug_info = dict(debug_info or {})
        self.timestamp = datetime.now(timezone.utc)

    @property
    def message(self) -> str:
        return str(self.original_error)

    @property
    def error_type(self) -> str:
        return type(self.original_error).__name__ or "UnknownError"

    @property
    def stack(self) -> str:
        tb = self.original_error.__traceback__ or self.__traceback__
        if tb is None:
            return ""
        return "".join(traceback.format_tb(tb))

    def add_context(self, key: str, value) -> "OrchestratorError":
        self.context[key] = value
        return self

    @classmethod
    def from_error(cls, error, context: dict | None = None, command: str | None = None):
        """Wrap any exception, choosing recovery steps from its message."""
        if isinstance(error, OrchestratorError):
            for key, value in (context or {}).items():
                error.add_context(key, value)
            return error

        message = str(error).lower()
        instructions = None
        for fragments, steps in RECOVERY_PATTERNS:
            if any(fragment in message for fragment in fragments):
                instructions = list(steps)
                break
        if instructions is None:
            instructions = list(GENERIC_RECOVERY)

        instructions.append("Review the debug log for full error context")
        instructions.append("Check the stack trace for the failing call")
        if command:
            instructions.append(f"Run: {command} --help")

        return cls(error, instructions, context)
