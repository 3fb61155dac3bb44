"""Public schema exports."""

from .token import TokenExchangeResponse

__all__ = ["TokenExchangeResponse"]
