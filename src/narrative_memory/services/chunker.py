"""Word-window chunking for the active tier."""

from narrative_memory.core.errors import ConfigurationError


class Chunker:
    """Splits text into overlapping windows of whole words.

    Windows hold ``size`` words and start every ``size - overlap`` words. Text of at
    most ``size`` words (including empty text) comes back as a single window.
    """

    def __init__(self, size: int = 250, overlap: int = 50):
        if size <= 0:
            raise ConfigurationError(f"Chunk size must be positive, got {size}")
        if overlap < 0 or overlap >= size:
            raise ConfigurationError(f"Chunk overlap must be in [0, {size}), got {overlap}")
        self.size = size
        self.overlap = overlap

    @property
    def step(self) -> int:
        return self.size - self.overlap

    def chunk(self, text: str) -> list[str]:
        words = text.split()
        if len(words) <= self.size:
            return [" ".join(words)]

        return [" ".join(words[start : start + self.size]) for start in range(0, len(words), self.step)]
