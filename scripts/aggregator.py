"""Result aggregation and the KEY=value output protocol."""

import logging
from enum import Enum

from errors import InvalidKeyError, OrchestratorError
from keys import is_valid_key
from normalize import format_timestamp, format_value

log = logging.getLogger(__name__)

ACTION_RESULTS = ("success", "failed", "skipped")

FAILURE_BANNER = "================== COMMAND EXECUTION FAILED =================="
STOP_SIGNAL = "STOP PROCESSING - DO NOT CONTINUE WITH OPERATION"


def _line(key, value) -> str:
    value = format_value(value).replace("\n", "\\n")
    return f"{key}={value}"


class ResultAggregator:
    """Collects key/value facts, an action log and at most one terminal error.

    One instance per run. Pairs keep first-insertion order; re-adding a key
    overwrites its value in place. Once an error is set the aggregator stays
    failed, but every fact gathered before or after is still serialized.
    """

    def __init__(self):
        self._data = {}
        self._actions = []
        self._files = []
        self._instructions = []
        self._error = None

    # Data

    def add_data(self, key, value) -> "ResultAggregator":
        if not is_valid_key(key):
            raise InvalidKeyError(
                f"Invalid data key {key!r}: keys must be upper snake case (A-Z, 0-9, _)"
            )
        if isinstance(key, Enum):
            key = key.value
        self._data[key] = format_value(value)
        return self

    def add_data_bulk(self, mapping: dict) -> "ResultAggregator":
        for key, value in mapping.items():
            self.add_data(key, value)
        return self

    def get_data(self) -> dict[str, str]:
        return dict(self._data)

    # Logs

    def add_action(self, event: str, result: str, details: str = "",
                   duration_ms: int | None = None) -> "ResultAggregator":
        if result not in ACTION_RESULTS:
            raise ValueError(f"Unknown action result {result!r}, expected one of {ACTION_RESULTS}")
        self._actions.append({
            "event": event,
            "result": result,
            "details": details,
            "duration_ms": duration_ms,
        })
        return self

    def add_file(self, path: str, operation: str, size: int | None = None) -> "ResultAggregator":
        self._files.append({"path": str(path), "operation": operation, "size": size})
        return self

    def add_instruction(self, instruction: str) -> "ResultAggregator":
        self._instructions.append(instruction)
        return self

    def get_actions(self) -> list[dict]:
        return [dict(action) for action in self._actions]

    def get_files(self) -> list[dict]:
        return [dict(entry) for entry in self._files]

    def get_instructions(self) -> list[str]:
        return list(self._instructions)

    # Error state

    def set_error(self, error, context: dict | None = None) -> "ResultAggregator":
        """Record a terminal error; the first one set is kept."""
        if self._error is not None:
            log.debug(f"Error already recorded, ignoring: {error}")
            return self
        self._error = OrchestratorError.from_error(error, context)
        log.error(f"{self._error.error_type}: {self._error.message}")
        return self

    def has_error(self) -> bool:
        return self._error is not None

    def get_error(self) -> OrchestratorError | None:
        return self._error

    def merge(self, other: "ResultAggregator") -> "ResultAggregator":
        """Fold another aggregator in; its pairs win on collision, our error wins over its."""
        self._data.update(other._data)
        self._actions.extend(dict(action) for action in other._actions)
        self._files.extend(dict(entry) for entry in other._files)
        self._instructions.extend(other._instructions)
        if self._error is None and other._error is not None:
            self._error = other._error
        return self

    def exit_code(self) -> int:
        return 1 if self.has_error() else 0

    # Output

    def serialize(self) -> str:
        lines = []
        if self._error is not None:
            lines.extend(self._error_block())
            lines.append("")
        lines.extend(self._summary_block())

        if self._actions:
            lines.append("")
            lines.append("=== ACTION LOG ===")
            for i, action in enumerate(self._actions):
                lines.append(_line(f"ACTION_{i}_EVENT", action["event"]))
                lines.append(_line(f"ACTION_{i}_RESULT", action["result"]))
                lines.append(_line(f"ACTION_{i}_DETAILS", action["details"]))
                if action["duration_ms"] is not None:
                    lines.append(_line(f"ACTION_{i}_DURATION_MS", action["duration_ms"]))

        if self._files:
            lines.append("")
            lines.append("=== FILE OPERATIONS ===")
            for i, entry in enumerate(self._files):
                lines.append(_line(f"FILE_{i}_PATH", entry["path"]))
                lines.append(_line(f"FILE_{i}_OPERATION", entry["operation"]))
                if entry["size"] is not None:
                    lines.append(_line(f"FILE_{i}_SIZE", entry["size"]))
            lines.append(_line("TOTAL_FILES", len(self._files)))

        lines.append("")
        lines.append("=== DATA ===")
        lines.extend(_line(key, value) for key, value in self._data.items())

        if self._instructions and self._error is None:
            lines.append("")
            lines.append("=== INSTRUCTIONS FOR LLM ===")
            lines.extend(self._instructions)

        return "\n".join(lines)

    def _summary_block(self) -> list[str]:
        results = [action["result"] for action in self._actions]
        return [
            "=== EXECUTION SUMMARY ===",
            _line("EXECUTION_STATUS", "FAILED" if self._error else "SUCCESS"),
            _line("TOTAL_ACTIONS", len(results)),
            _line("ACTIONS_SUCCEEDED", results.count("success")),
            _line("ACTIONS_FAILED", results.count("failed")),
            _line("ACTIONS_SKIPPED", results.count("skipped")),
        ]

    def _error_block(self) -> list[str]:
        error = self._error
        lines = [
            FAILURE_BANNER,
            STOP_SIGNAL,
            "",
            "=== ERROR DETAILS ===",
            _line("ERROR_TYPE", error.error_type),
            _line("ERROR_MESSAGE", error.message),
            _line("ERROR_TIMESTAMP", format_timestamp(error.timestamp)),
        ]
        if error.context:
            lines.append("")
            lines.append("=== ERROR CONTEXT ===")
            lines.extend(_line(key, value) for key, value in error.context.items())
        debug = dict(error.debug_info)
        if error.stack:
            debug.setdefault("STACK", error.stack.rstrip())
        if debug:
            lines.append("")
            lines.append("=== DEBUG INFO ===")
            lines.extend(_line(key, value) for key, value in debug.items())
        lines.append("")
        lines.append("=== RECOVERY INSTRUCTIONS ===")
        lines.extend(f"- {step}" for step in error.recovery_instructions)
        return lines
