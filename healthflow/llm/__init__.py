"""
LLM package - chat model client.
"""

from healthflow.llm.client import ChatModel

__all__ = ["ChatModel"]
