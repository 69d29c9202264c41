"""Single-line editor used for node titles and the search prompt.

Offsets count code points. A word is a maximal run of characters other than
the space character; punctuation does not break words. After every edit or
cursor move the visible window is shifted by the smallest amount that keeps
the cursor inside it.
"""

from __future__ import annotations


def normalize_paste(text: str) -> str:
    """Flatten pasted text to one line: newline -> space, tab -> two spaces."""
    return text.replace("\r", "").replace("\n", " ").replace("\t", "  ")


class LineEditor:
    def __init__(self, text: str = "", width: int = 40, cursor: int | None = None) -> None:
        self.text = text
        self.width = max(1, width)
        self.cursor = len(text) if cursor is None else max(0, min(len(text), cursor))
        self.window_start = 0
        self._scroll()

    def __repr__(self) -> str:
        return f"LineEditor(text={self.text!r}, cursor={self.cursor}, window_start={self.window_start})"

    # -- viewport ------------------------------------------------------------

    def _scroll(self) -> None:
        # Leave one cell for the caret after the last character.
        latest_start = max(0, len(self.text) + 1 - self.width)
        self.window_start = min(self.window_start, latest_start)
        if self.cursor < self.window_start:
            self.window_start = self.cursor
        elif self.cursor >= self.window_start + self.width:
            self.window_start = self.cursor - self.width + 1

    def set_width(self, width: int) -> None:
        self.width = max(1, width)
        self._scroll()

    def visible_text(self) -> str:
        return self.text[self.window_start : self.window_start + self.width]

    @property
    def cursor_column(self) -> int:
        return self.cursor - self.window_start

    # -- word boundaries -----------------------------------------------------

    def _word_start_before(self, offset: int) -> int:
        while offset > 0 and self.text[offset - 1] == " ":
            offset -= 1
        while offset > 0 and self.text[offset - 1] != " ":
            offset -= 1
        return offset

    def _word_end_after(self, offset: int) -> int:
        length = len(self.text)
        while offset < length and self.text[offset] != " ":
            offset += 1
        while offset < length and self.text[offset] == " ":
            offset += 1
        return offset

    def _delete_range(self, start: int, end: int) -> None:
        self.text = self.text[:start] + self.text[end:]
        self.cursor = start
        self._scroll()

    # -- editing -------------------------------------------------------------

    def insert(self, value: str) -> None:
        if not value:
            return
        self.text = self.text[: self.cursor] + value + self.text[self.cursor :]
        self.cursor += len(value)
        self._scroll()

    def paste(self, value: str) -> None:
        self.insert(normalize_paste(value))

    def delete_before(self) -> None:
        if self.cursor > 0:
            self._delete_range(self.cursor - 1, self.cursor)

    def delete_after(self) -> None:
        if self.cursor < len(self.text):
            self._delete_range(self.cursor, self.cursor + 1)

    def delete_word_before(self) -> None:
        """Remove the spaces left of the cursor, then the word before them."""
        if self.cursor > 0:
            self._delete_range(self._word_start_before(self.cursor), self.cursor)

    def delete_word_after(self) -> None:
        if self.cursor < len(self.text):
            self._delete_range(self.cursor, self._word_end_after(self.cursor))

    def delete_to_start(self) -> None:
        self._delete_range(0, self.cursor)

    def delete_to_end(self) -> None:
        self._delete_range(self.cursor, len(self.text))

    # -- movement ------------------------------------------------------------

    def _move_to(self, offset: int) -> None:
        self.cursor = max(0, min(len(self.text), offset))
        self._scroll()

    def move_left(self) -> None:
        self._move_to(self.cursor - 1)

    def move_right(self) -> None:
        self._move_to(self.cursor + 1)

    def move_home(self) -> None:
        self._move_to(0)

    def move_end(self) -> None:
        self._move_to(len(self.text))

    def move_word_left(self) -> None:
        self._move_to(self._word_start_before(self.cursor))

    def move_word_right(self) -> None:
        self._move_to(self._word_end_after(self.cursor))
