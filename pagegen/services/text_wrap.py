from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Literal

IsOverEval = Callable[[str], bool]
WrapMode = Literal["word", "char"]

WRAP_MODES: tuple[str, ...] = ("word", "char")

# Alternation order matters: "\r\n" is split by "\r" first, then "\n",
# so CRLF input yields an empty hard line between the two halves.
_HARD_BREAK_RE = re.compile(r"\r|\n|\r\n")


@dataclass(frozen=True)
class WrappedLine:
    text: str
    hard_line_index: int
    soft_line_index: int
    overflow_before: int

    @property
    def stack_index(self) -> int:
        return self.hard_line_index + self.soft_line_index + self.overflow_before


def measure_text_width(font, text: str, size: float, character_spacing: float) -> float:
    return font.width_of_text_at_size(text, size) + (len(text) - 1) * character_spacing


def make_is_over(font, size: float, character_spacing: float, box_width_pt: float) -> IsOverEval:
    def is_over(test_string: str) -> bool:
        return box_width_pt <= measure_text_width(font, test_string, size, character_spacing)

    return is_over


def split_hard_lines(text: str) -> list[str]:
    return _HARD_BREAK_RE.split(text)


def split_into_fitting_lines(paragraph: str, is_over: IsOverEval) -> list[str]:
    """Greedy word wrap of one paragraph.

    Words are joined with single spaces while ``is_over(current + " " + word)``
    stays false. The candidate is measured untrimmed, lines are trimmed only when
    flushed. A single word wider than the box is never split; it ends up alone on
    its own (overflowing) line.
    """
    lines: list[str] = []
    current = ""
    for word in paragraph.split(" "):
        candidate = current + " " + word
        if not is_over(candidate):
            current = candidate
            continue
        flushed = current.strip()
        if flushed:
            lines.append(flushed)
        current = word

    last = current.strip()
    if last:
        lines.append(last)
    return lines


def get_overflow_char_position(line: str, is_over: IsOverEval) -> int | None:
    """Index of the first prefix length at which ``line`` no longer fits, or None."""
    for i in range(len(line) + 1):
        if is_over(line[:i]):
            return i
    return None


def get_split_position(line: str, is_over: IsOverEval) -> int:
    over_pos = get_overflow_char_position(line, is_over)
    if over_pos is None:
        return len(line)

    pos = over_pos
    while pos >= 0 and (pos >= len(line) or line[pos] != " "):
        pos -= 1

    # No usable whitespace: break just before the overflowing character.
    return pos if pos > 0 else over_pos - 1


def split_by_char_precision(paragraph: str, is_over: IsOverEval) -> list[str]:
    lines: list[str] = []
    rest = paragraph
    while rest.strip():
        pos = max(get_split_position(rest, is_over), 1)
        segment = rest[:pos].strip()
        if segment:
            lines.append(segment)
        rest = rest[pos:]
    return lines


def wrap_paragraph(paragraph: str, is_over: IsOverEval, mode: WrapMode = "word") -> list[str]:
    if mode == "char":
        return split_by_char_precision(paragraph, is_over)
    return split_into_fitting_lines(paragraph, is_over)


def layout_lines(text: str, is_over: IsOverEval, mode: WrapMode = "word") -> list[WrappedLine]:
    """Wrap every hard line of ``text`` and number the results for vertical stacking.

    The fold carries ``overflow``: how many extra soft lines earlier paragraphs
    produced beyond their first, so later paragraphs shift down accordingly.
    Empty paragraphs draw nothing but still consume a hard-line index.
    """
    out: list[WrappedLine] = []
    overflow = 0
    for hard_index, paragraph in enumerate(split_hard_lines(text)):
        soft_lines = wrap_paragraph(paragraph, is_over, mode)
        for soft_index, line in enumerate(soft_lines):
            out.append(
                WrappedLine(
                    text=line,
                    hard_line_index=hard_index,
                    soft_line_index=soft_index,
                    overflow_before=overflow,
                )
            )
        if soft_lines:
            overflow += len(soft_lines) - 1
    return out


def line_offset(line: WrappedLine, size: float, line_height: float) -> float:
    """Distance below the first baseline at which ``line`` is drawn."""
    centering = 0.0 if line_height == 0 else ((line_height - 1) * size) / 2
    return line_height * size * line.stack_index + centering
