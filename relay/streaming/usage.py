"""Token usage accounting for one chat request.

A request may span several model streams (the initial one plus one
continuation per tool call). Each stream reports its own usage; the
accumulator sums them and produces the cost line items sent to metering.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Usage:
    """Token counts reported by one model stream."""

    prompt_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage | None) -> Usage:
        if other is None:
            return self
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass(frozen=True)
class CostItem:
    """One metered line item, e.g. ``gemini-3-flash-tokens-input``."""

    cost_name: str
    quantity: int

    def to_dict(self) -> dict[str, str | int]:
        return {"costName": self.cost_name, "quantity": self.quantity}


class UsageAccumulator:
    """Sum ``Usage`` values across every stream of a request."""

    def __init__(self) -> None:
        self._usage = Usage()
        self.streams = 0

    def add(self, usage: Usage | None) -> None:
        """Add one stream's usage. ``None`` counts as zero."""
        self.streams += 1
        self._usage = self._usage + usage

    @property
    def prompt_tokens(self) -> int:
        return self._usage.prompt_tokens

    @property
    def output_tokens(self) -> int:
        return self._usage.output_tokens

    @property
    def token_count(self) -> int:
        """Prompt plus output tokens, the figure persisted with the message."""
        return self._usage.prompt_tokens + self._usage.output_tokens

    @property
    def usage(self) -> Usage:
        return self._usage

    def cost_items(self, prefix: str) -> list[CostItem]:
        """Cost line items for metering; zero quantities are omitted."""
        items = [
            CostItem(f"{prefix}-input", self.prompt_tokens),
            CostItem(f"{prefix}-output", self.output_tokens),
        ]
        return [item for item in items if item.quantity > 0]
