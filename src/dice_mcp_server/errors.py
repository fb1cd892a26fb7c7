from __future__ import annotations


class ParseError(ValueError):
    """User-facing dice expression errors (fail-fast, no partial result).

    ``position`` indexes into the normalized expression (lowercased, whitespace
    stripped) and is ``None`` for errors that are not tied to one character,
    such as bound violations detected after a term has been read.
    """

    def __init__(self, code: str, message: str, position: int | None = None) -> None:
        self.code = code
        self.message = message
        self.position = position
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.position is not None:
            text += f" at position {self.position}"
        return text
