"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

import logging
from collections.abc import Callable
from time import perf_counter
from typing import Any

from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, ConfigDict, ValidationError

from queued_agent.errors import (
    DuplicateTool,
    InvalidToolArguments,
    ToolExecutionError,
    UnknownTool,
)
from queued_agent.types import ToolTrace

logger = logging.getLogger(__name__)


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[BaseModel], str]

    def validate_arguments(self, payload: dict[str, Any]) -> BaseModel:
        try:
            return self.args_schema.model_validate(payload)
        except ValidationError as exc:
            raise InvalidToolArguments(
                f"Invalid arguments for tool {self.name}: {exc.errors(include_url=False)}"
            ) from exc

    def openai_schema(self) -> dict[str, Any]:
        """OpenAI-style function schema advertised to the language model."""
        tool = convert_to_openai_tool(self.args_schema)
        tool["function"]["name"] = self.name
        tool["function"]["description"] = self.description
        return tool


class ToolRegistry:
    """Maps tool names to specs; the only path from the model to a handler."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Callable[[ToolTrace], None] | None = None

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise DuplicateTool(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each successful tool execution."""
        self._observer = observer

    def invoke(self, name: str, payload: dict[str, Any]) -> str:
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownTool(f"Unknown tool: {name}")
        arguments = spec.validate_arguments(payload)

        start = perf_counter()
        try:
            output = spec.handler(arguments)
        except Exception as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            raise ToolExecutionError(f"Tool {name} failed: {exc}") from exc
        latency_ms = (perf_counter() - start) * 1000.0

        if self._observer is not None:
            self._observer(
                ToolTrace(
                    name=spec.name,
                    input_payload=payload,
                    output_preview=output[:320],
                    latency_ms=latency_ms,
                )
            )
        return output

    def tool_schemas(self) -> list[dict[str, Any]]:
        return [spec.openai_schema() for spec in self._tools.values()]
