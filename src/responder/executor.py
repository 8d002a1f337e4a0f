import json
import logging
from abc import ABC, abstractmethod

from responder.errors import ToolExecutionError
from responder.tools import Tool

logger = logging.getLogger(__name__)

CANNED_RESULT = "Executed."


class ToolExecutor(ABC):
    """Performs a tool's side effect and reports the result as text."""

    @abstractmethod
    async def execute(self, name: str, arguments: str) -> str:
        ...


class CannedToolExecutor(ToolExecutor):
    """Executor that runs nothing and reports success for every call."""

    def __init__(self, result: str = CANNED_RESULT):
        self.result = result

    async def execute(self, name: str, arguments: str) -> str:
        logger.info(f"Skipping execution of {name}, returning canned result")
        return self.result


class RegistryToolExecutor(ToolExecutor):
    """Executor that calls registered :class:`Tool` functions."""

    def __init__(self, tools: list[Tool]):
        self.tool_registry = {t.name: t for t in tools}

    async def execute(self, name: str, arguments: str) -> str:
        tool_obj = self.tool_registry.get(name)
        if tool_obj is None:
            raise ToolExecutionError(f"tool '{name}' not found")

        try:
            params = json.loads(arguments) if arguments else {}
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"invalid arguments: {e}") from e
        if not isinstance(params, dict):
            raise ToolExecutionError("arguments must be a JSON object")

        logger.info(f"Calling {name} with {params}")
        result = await tool_obj(**params)
        return result if isinstance(result, str) else json.dumps(result)
