"""Line-buffered token emitter.

Model text arrives in arbitrary fragments. Ordinary prose is passed through
as soon as it arrives; only complete lines are classified against the button
grammar, and runs of button lines are withheld until it is known whether
they are the tail of the response.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from relay.streaming.buttons import could_start_button_line, extract_buttons, is_button_line
from relay.streaming.events import Button


@dataclass
class EmitterResult:
    """Output of ``LineBufferedEmitter.finalize``.

    ``visible`` holds the fragments still to be shown. ``buttons`` is empty
    when the withheld block turned out not to be button markup, in which
    case that block is part of ``visible``.
    """

    visible: list[str] = field(default_factory=list)
    buttons: list[Button] = field(default_factory=list)


class LineBufferedEmitter:
    """Split a fragment stream into visible output and a withheld button block.

    Feed fragments via ``consume()`` and forward the returned strings to the
    client in order. Call ``finalize()`` once the stream has ended.
    """

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._line_buffer = ""
        self._held = ""
        self._finalized = False

    @property
    def full_response(self) -> str:
        """Every fragment consumed so far, concatenated."""
        return "".join(self._chunks)

    @property
    def held(self) -> str:
        return self._held

    def consume(self, fragment: str) -> list[str]:
        """Consume a fragment and return the visible fragments to emit."""
        if self._finalized:
            raise RuntimeError("consume() called after finalize()")
        if not fragment:
            return []

        self._chunks.append(fragment)
        self._line_buffer += fragment
        out: list[str] = []

        while "\n" in self._line_buffer:
            line, _, self._line_buffer = self._line_buffer.partition("\n")
            self._classify(line + "\n", out)

        if self._line_buffer and not could_start_button_line(self._line_buffer):
            self._flush_held(out)
            out.append(self._line_buffer)
            self._line_buffer = ""

        return out

    def finalize(self) -> EmitterResult:
        """Classify the last partial line and resolve the withheld block."""
        if self._finalized:
            raise RuntimeError("finalize() called twice")
        self._finalized = True

        result = EmitterResult()
        if self._line_buffer:
            self._classify(self._line_buffer, result.visible)
            self._line_buffer = ""

        if self._held:
            result.buttons = extract_buttons(self._held)
            if not result.buttons:
                self._flush_held(result.visible)
            self._held = ""

        return result

    def drain(self) -> list[str]:
        """Release everything still buffered as visible text, without parsing buttons."""
        self._finalized = True
        out: list[str] = []
        self._flush_held(out)
        if self._line_buffer:
            out.append(self._line_buffer)
            self._line_buffer = ""
        return out

    def _classify(self, line: str, out: list[str]) -> None:
        # Any other line, blank ones included, ends the run and releases it.
        if is_button_line(line):
            self._held += line
            return
        self._flush_held(out)
        out.append(line)

    def _flush_held(self, out: list[str]) -> None:
        if self._held:
            out.append(self._held)
            self._held = ""
