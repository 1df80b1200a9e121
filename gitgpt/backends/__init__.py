"""Transport implementations for different LLM providers."""

from gitgpt.backends.base import Transport

__all__ = ["Transport", "OpenAITransport"]


# Lazy import so the package can be imported without creating a client
def __getattr__(name: str):
    if name == "OpenAITransport":
        from gitgpt.backends.openai import OpenAITransport
        return OpenAITransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
