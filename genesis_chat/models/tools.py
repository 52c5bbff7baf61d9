"""Models for the remote tool server and the payloads it produces."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field


class ToolDescriptor(BaseModel):
    """A tool advertised by the MCP server."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")

    class Config:
        populate_by_name = True
        extra = "ignore"


class ToolContent(BaseModel):
    """One content item of a tool result. Text items may carry serialized JSON."""

    type: str
    text: str | None = None

    class Config:
        extra = "ignore"


class ToolResult(BaseModel):
    """Result envelope returned by `tools/call`."""

    content: list[ToolContent] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    class Config:
        populate_by_name = True
        extra = "ignore"

    def texts(self) -> list[str]:
        """Return the non-empty text fragments in order."""
        return [item.text for item in self.content if item.type == "text" and item.text]


class ToolInvocation(BaseModel):
    """A tool call requested by the model through the meta-tool."""

    tool_name: str = Field(description="The name of the tool to execute")
    arguments: str = Field(
        description="The arguments for the tool as a JSON string. MUST be a valid JSON string.",
    )


@dataclass(frozen=True)
class TransactionPayload:
    """A transaction found in a tool output or reply text.

    Identified only by a truthy `transaction` key; every other key is kept
    as-is so the UI receives exactly what the tool server produced.
    """

    fields: dict[str, Any]

    @classmethod
    def from_json(cls, value: Any) -> "TransactionPayload | None":
        """Wrap a decoded JSON value if it is an object carrying a transaction."""
        if isinstance(value, dict) and value.get("transaction"):
            return cls(fields=value)
        return None

    @property
    def transaction(self) -> str:
        return self.fields["transaction"]

    @property
    def mint_secret_key(self) -> str | None:
        return self.fields.get("mintSecretKey")

    @property
    def message(self) -> str | None:
        return self.fields.get("message")

    @property
    def base_mint(self) -> str | None:
        return self.fields.get("baseMint")

    def as_dict(self) -> dict[str, Any]:
        return dict(self.fields)
