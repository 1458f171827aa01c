"""
LLM module - Provider abstraction used by document summarization.
"""

from .base import BaseLLM

__all__ = ["BaseLLM", "create_llm"]


def create_llm(provider: str, **kwargs) -> BaseLLM:
    """
    Factory function to create LLM instance based on provider.

    Args:
        provider: LLM provider name ("ollama", "claude")
        **kwargs: Provider-specific configuration

    Returns:
        BaseLLM implementation instance

    Raises:
        ValueError: If provider is unknown
    """
    if provider == "claude":
        from .claude import ClaudeLLM

        return ClaudeLLM(**kwargs)
    if provider == "ollama":
        from .ollama import OllamaLLM

        return OllamaLLM(**kwargs)
    raise ValueError(f"Unknown LLM provider: {provider}")
