"""LangGraph orchestration of the chat tool-call loop."""
