"""Fixed-size overlapping character windows for embedding."""

from services.ingestion.TextExtractor import normalize_whitespace

CHUNK_SIZE = 1200    # characters per chunk
CHUNK_OVERLAP = 200  # characters shared by consecutive chunks


def chunk_text(text: str, chunk_size: int = CHUNK_SIZE, overlap: int = CHUNK_OVERLAP) -> list[str]:
    """Split text into consecutive windows of chunk_size characters.

    Each window starts chunk_size - overlap characters after the previous one;
    the last window ends at the end of the text and may be shorter.

    Args:
        text (str): Raw text, whitespace-normalised before splitting.
        chunk_size (int): Window length in characters.
        overlap (int): Characters shared by consecutive windows.

    Returns:
        list[str]: Ordered chunks; empty for empty or whitespace-only input.

    Raises:
        ValueError: If chunk_size is not positive or overlap is not in [0, chunk_size).
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(f"overlap must be in [0, chunk_size), got overlap={overlap}, chunk_size={chunk_size}.")

    text = normalize_whitespace(text)
    if not text:
        return []

    step = chunk_size - overlap
    chunks: list[str] = []
    start = 0
    while True:
        end = min(start + chunk_size, len(text))
        chunks.append(text[start:end])
        if end >= len(text):
            break
        start += step
    return chunks
