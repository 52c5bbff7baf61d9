"""Transaction extraction from tool outputs and reply text.

Tool outputs reach us in several shapes, depending on the tool server version
and on how the meta-tool flattened them:

- a plain error string (``Error: ...`` / ``Error executing ...``)
- a JSON object carrying a ``transaction`` key
- a JSON array of ``{"type": "text", "text": "<json>"}`` items (legacy MCP content)
- anything else, JSON or not

Each shape has its own parser; `classify_tool_output` tries them in order.
Nothing in this module raises on malformed input: a parse failure only means
there is no payload at that location.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from genesis_chat.models.llm import AgentStep, OrchestrationResult
from genesis_chat.models.tools import TransactionPayload
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_PREFIXES = ("Error:", "Error executing")
LEGACY_ERROR_PREFIX = "Error:"

FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)

PREPARED_TRANSACTION_TEXT = (
    "I've prepared the transaction to create your token. Please sign it to complete the process."
)
NO_TOOL_DATA_TEXT = "I processed your request but the tool didn't return any data. Please try again."
NO_RESPONSE_TEXT = "I wasn't able to come up with a response. Please try rephrasing your request."


@dataclass(frozen=True)
class ErrorOutput:
    message: str


@dataclass(frozen=True)
class TransactionOutput:
    payload: TransactionPayload


@dataclass(frozen=True)
class LegacyContentOutput:
    """Items recognised inside a legacy content array, in order."""

    items: tuple[ErrorOutput | TransactionOutput, ...]


@dataclass(frozen=True)
class UnparsedOutput:
    """Output that is not JSON at all."""

    raw: str


@dataclass(frozen=True)
class OpaqueOutput:
    """Valid JSON that carries neither a payload nor an error."""

    raw: str


ToolOutput = ErrorOutput | TransactionOutput | LegacyContentOutput | UnparsedOutput | OpaqueOutput


def output_to_string(output: Any) -> str:
    """Normalize a raw tool output to the string form the parsers work on."""
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output)
    except (TypeError, ValueError):
        return str(output)


def _try_json(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return False, None


def parse_error_output(raw: str) -> ErrorOutput | None:
    if raw.startswith(ERROR_PREFIXES):
        return ErrorOutput(raw)
    return None


def parse_transaction_output(decoded: Any) -> TransactionOutput | None:
    payload = TransactionPayload.from_json(decoded)
    return TransactionOutput(payload) if payload else None


def parse_legacy_content_output(decoded: Any) -> LegacyContentOutput | None:
    if not isinstance(decoded, list):
        return None

    items: list[ErrorOutput | TransactionOutput] = []
    for item in decoded:
        if not isinstance(item, dict) or item.get("type") != "text":
            continue
        text = item.get("text")
        if not text or not isinstance(text, str):
            continue
        if text.startswith(LEGACY_ERROR_PREFIX):
            items.append(ErrorOutput(text))
            continue
        ok, inner = _try_json(text)
        if ok and (found := parse_transaction_output(inner)):
            items.append(found)
    return LegacyContentOutput(tuple(items))


def classify_tool_output(raw: str) -> ToolOutput:
    """Determine the shape of one non-empty tool output."""
    error = parse_error_output(raw)
    if error:
        return error

    ok, decoded = _try_json(raw)
    if not ok:
        return UnparsedOutput(raw)

    for parser in (parse_transaction_output, parse_legacy_content_output):
        shape = parser(decoded)
        if shape is not None:
            return shape
    return OpaqueOutput(raw)


@dataclass
class Extraction:
    """What the step history revealed. Later findings overwrite earlier ones."""

    transaction: TransactionPayload | None = None
    tool_error: str | None = None
    had_tool_calls: bool = False
    last_tool_output: str | None = None

    def record(self, shape: ToolOutput) -> None:
        if isinstance(shape, ErrorOutput):
            self.tool_error = shape.message
        elif isinstance(shape, TransactionOutput):
            self.transaction = shape.payload
        elif isinstance(shape, LegacyContentOutput):
            for item in shape.items:
                self.record_item(item)
        elif isinstance(shape, UnparsedOutput) and "Error" in shape.raw:
            self.tool_error = shape.raw

    def record_item(self, item: ErrorOutput | TransactionOutput) -> None:
        if isinstance(item, ErrorOutput):
            self.tool_error = item.message
        else:
            self.transaction = item.payload


def extract_from_steps(steps: list[AgentStep]) -> Extraction:
    """Walk every tool call of every step, oldest first."""
    extraction = Extraction()
    for step in steps:
        for call in step.tool_calls:
            extraction.had_tool_calls = True
            raw = output_to_string(call.output)
            if not raw:
                continue
            extraction.last_tool_output = raw
            extraction.record(classify_tool_output(raw))
    return extraction


def _decode_payload(text: str) -> TransactionPayload | None:
    ok, decoded = _try_json(text)
    return TransactionPayload.from_json(decoded) if ok else None


def _scan_bare_objects(text: str) -> TransactionPayload | None:
    decoder = json.JSONDecoder()
    index = text.find("{")
    while index != -1:
        try:
            value, _ = decoder.raw_decode(text, index)
        except ValueError:
            value = None
        payload = TransactionPayload.from_json(value)
        if payload:
            return payload
        index = text.find("{", index + 1)
    return None


def find_transaction_in_text(text: str) -> TransactionPayload | None:
    """Find a transaction object in free text, preferring fenced code blocks."""
    if not text or "transaction" not in text:
        return None

    for match in FENCED_BLOCK.finditer(text):
        payload = _decode_payload(match.group(1))
        if payload:
            return payload

    return _scan_bare_objects(text)


def compose_reply_text(text: str, extraction: Extraction) -> str:
    """Return the model's text, or synthesize one when the model produced none."""
    if text:
        return text

    if extraction.transaction:
        pretty = json.dumps(extraction.transaction.as_dict(), indent=2)
        return f"{PREPARED_TRANSACTION_TEXT}\n\n```json\n{pretty}\n```"
    if extraction.tool_error:
        return f"There was an issue: {extraction.tool_error}"
    if extraction.had_tool_calls:
        if extraction.last_tool_output:
            return f"Tool result: {extraction.last_tool_output}"
        return NO_TOOL_DATA_TEXT
    return NO_RESPONSE_TEXT


@dataclass(frozen=True)
class ExtractedReply:
    content: str
    transaction: TransactionPayload | None


def extract_transaction(result: OrchestrationResult) -> ExtractedReply:
    """Produce the reply text and any transaction payload for an orchestration result.

    The step history is searched first; the reply text is only scanned when
    the steps yielded nothing.
    """
    extraction = extract_from_steps(result.steps)
    content = compose_reply_text(result.text, extraction)

    transaction = extraction.transaction
    if transaction is None:
        transaction = find_transaction_in_text(content)
        if transaction is not None:
            logger.debug("Found transaction payload in reply text")

    if extraction.tool_error and transaction is None:
        logger.info(f"Tool error without a payload: {extraction.tool_error[:200]}")

    return ExtractedReply(content=content, transaction=transaction)
