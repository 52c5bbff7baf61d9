"""Reply classification for the UI."""

import json

from genesis_chat.models.chat import ChatReply, ReplyContent, ReplyResult
from genesis_chat.models.tools import TransactionPayload

CREATE_TOOL_NAME = "create_genesis_account"
SWAP_TOOL_NAME = "swap"


def infer_tool_name(payload: TransactionPayload) -> str:
    """Guess which remote tool produced a payload.

    Creation results echo the base mint; swap results do not. This is a label
    for the UI, not an authoritative classification: a payload with neither
    mint nor swap fields is labelled a swap.
    """
    return CREATE_TOOL_NAME if payload.base_mint else SWAP_TOOL_NAME


def classify_reply(content: str, transaction: TransactionPayload | None) -> ChatReply:
    """Build the chat reply, attaching the payload as a single-item tool result."""
    if transaction is None:
        return ChatReply(type="text", content=content)

    return ChatReply(
        type="tool_result",
        content=content,
        tool=infer_tool_name(transaction),
        result=ReplyResult(content=[ReplyContent(text=json.dumps(transaction.as_dict()))]),
    )
