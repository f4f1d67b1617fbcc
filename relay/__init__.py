"""Chat relay: streams model responses over SSE and orchestrates tool calls."""

__version__ = "0.1.0"
