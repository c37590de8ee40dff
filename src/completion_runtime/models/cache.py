"""Prompt-caching capability model."""

from __future__ import annotations

import math
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class CacheType(StrEnum):
    """How a provider exposes prompt caching."""

    NONE = "none"
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class CacheCapability(BaseModel):
    """Caching behaviour of a model family.

    Parameters:
        type: Whether caching is unavailable, transparent or breakpoint-driven.
        min_tokens: Estimated conversation size below which caching is skipped.
        write_cost_multiplier: Input price multiplier for cache writes.
        read_cost_multiplier: Input price multiplier for cache reads.
    """

    model_config = ConfigDict(frozen=True)

    type: CacheType = CacheType.NONE
    min_tokens: float = Field(default=math.inf, ge=0)
    write_cost_multiplier: float = 1.0
    read_cost_multiplier: float = 1.0

    @property
    def supports_caching(self) -> bool:
        return self.type is not CacheType.NONE

    def cache_write_cost(self, base_cost: float) -> float:
        return base_cost * self.write_cost_multiplier

    def cache_read_cost(self, base_cost: float) -> float:
        return base_cost * self.read_cost_multiplier
