import inspect
import json
import re
from abc import ABC, abstractmethod
from typing import Callable, Literal, get_args, get_origin

from pydantic import BaseModel, Field

from responder.message import Message

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
    tuple: "array",
    type(None): "null",
}


def _param_schema(annotation) -> dict:
    if get_origin(annotation) is Literal:
        choices = list(get_args(annotation))
        return {"type": _JSON_TYPES.get(type(choices[0]), "string"),
                "enum": choices}
    return {"type": _JSON_TYPES.get(annotation, "string")}


class Tool(BaseModel):
    """A Python function exposed to the model as a function tool.

    The schema is derived from the signature: annotated parameters map
    to JSON types, ``Literal`` annotations become enums and parameters
    without a default are required. The docstring is the description.
    """

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    model_config = {"arbitrary_types_allowed": True}

    def __init__(self, func: Callable, **kwargs):
        super().__init__(
            func=func,
            name=kwargs.pop("name", func.__name__),
            description=kwargs.pop(
                "description", inspect.getdoc(func) or ""
            ),
            **kwargs,
        )

    def parameters_schema(self) -> dict:
        properties = {}
        required = []
        for name, param in inspect.signature(self.func).parameters.items():
            properties[name] = _param_schema(param.annotation)
            if param.default is inspect.Parameter.empty:
                required.append(name)
        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    def model_dump(self, **kwargs):
        """Return the OpenAI function-tool schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }

    def model_dump_json(self, **kwargs):
        return json.dumps(self.model_dump())

    async def __call__(self, **kwargs):
        result = self.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def get_current_weather(
    location: str, unit: Literal["celsius", "fahrenheit"] = "celsius"
):
    """Get the current weather in a given location.

    ``location`` is the city and state, e.g. San Francisco, CA.
    """
    return f"Weather lookup for {location} is not configured ({unit})."


def control_air_conditioner(
    temperature: float, unit: Literal["celsius", "fahrenheit"] = "celsius"
):
    """Set the room air conditioner to the given temperature."""
    return f"Air conditioner set to {temperature} {unit}."


DEFAULT_TOOLS = [Tool(get_current_weather), Tool(control_air_conditioner)]


class ToolSuggestion(BaseModel):
    name: str
    similarity: float
    schema_: dict = Field(default_factory=dict, alias="schema")

    model_config = {"populate_by_name": True}


class ToolCatalog(ABC):
    """Ranks known tool definitions against recent conversation text."""

    @abstractmethod
    async def suggest(
        self, query: str, limit: int = 5
    ) -> list[ToolSuggestion]:
        ...


_WORD = re.compile(r"[a-z0-9]+")


def _words(text: str) -> set[str]:
    return set(_WORD.findall(text.lower().replace("_", " ")))


class InMemoryToolCatalog(ToolCatalog):
    """Catalog ranking tools by word overlap with the query."""

    def __init__(self, tools: list[Tool]):
        self.tools = list(tools)

    async def suggest(
        self, query: str, limit: int = 5
    ) -> list[ToolSuggestion]:
        query_words = _words(query)
        scored = []
        for t in self.tools:
            tool_words = _words(f"{t.name} {t.description}")
            union = query_words | tool_words
            if not union:
                continue
            score = len(query_words & tool_words) / len(union)
            if score > 0:
                scored.append(ToolSuggestion(
                    name=t.name, similarity=score, schema=t.model_dump(),
                ))
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored[:limit]


def build_query(messages: list[Message]) -> str:
    """Flatten messages into ``role: content`` lines for tool retrieval."""
    return "\n".join(
        f"{m.role.value}: {m.content}" for m in messages if m.content
    )
