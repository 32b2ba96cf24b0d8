"""unillm-core: conversation state normalization across LLM providers."""

__version__ = "0.1.0"
