"""
Mock adapter — universal test double for adapter operations.

Stands in for a real tool (npm, git) without touching the system.
Configurable to fail specific actions or whole operations.
"""

from __future__ import annotations

from upgrader.adapters.base import Adapter, ExecutionContext
from upgrader.core.models.action import Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing.

    By default, returns success for everything. Failures can be
    configured per action ID or per ``operation`` param.
    """

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: dict[str, Receipt] = {}
        self._operation_failures: dict[str, str] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    def operations(self) -> list[str]:
        """The ``operation`` param of every call, in order."""
        return [c.action.params.get("operation", "") for c in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Set a custom response for a specific action ID."""
        self._responses[action_id] = receipt

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Configure a specific action to fail."""
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
            return_code=1,
        )

    def fail_operation(self, operation: str, error: str = "Mock failure") -> None:
        """Configure every action with this ``operation`` param to fail."""
        self._operation_failures[operation] = error

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        if context.action.id in self._responses:
            return self._responses[context.action.id]

        operation = context.action.params.get("operation", "")
        if operation in self._operation_failures:
            return Receipt.failure(
                adapter=self._name,
                action_id=context.action.id,
                error=self._operation_failures[operation],
                return_code=1,
            )

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=self._default_output,
            return_code=0,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Clear call log and configured failures."""
        self._call_log.clear()
        self._responses.clear()
        self._operation_failures.clear()
