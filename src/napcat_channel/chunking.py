"""
Default text chunkers for outbound messages.
"""

from typing import Optional

DEFAULT_TEXT_LIMIT = 2000


def chunk_text(text: str, limit: int) -> list[str]:
    """Hard cut every `limit` characters."""
    if not text:
        return []
    if limit <= 0 or len(text) <= limit:
        return [text]
    return [text[i:i + limit] for i in range(0, len(text), limit)]


def chunk_by_newline(text: str, limit: int) -> list[str]:
    """Pack whole lines up to `limit`; lines longer than the limit are hard cut."""
    if not text:
        return []
    if limit <= 0 or len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        if len(current) + len(line) <= limit:
            current += line
            continue
        if current:
            chunks.append(current)
            current = ""
        if len(line) <= limit:
            current = line
        else:
            pieces = chunk_text(line, limit)
            chunks.extend(pieces[:-1])
            current = pieces[-1]
    if current:
        chunks.append(current)
    return chunks


def chunk_text_with_mode(text: str, limit: int, mode: Optional[str] = None) -> list[str]:
    if mode == "newline":
        return chunk_by_newline(text, limit)
    return chunk_text(text, limit)
