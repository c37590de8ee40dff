"""Token counting for completion-runtime."""

from .counter import CharEstimateTokenizer, TiktokenCounter, estimate_tokens, get_default_counter

__all__ = ["CharEstimateTokenizer", "TiktokenCounter", "estimate_tokens", "get_default_counter"]
