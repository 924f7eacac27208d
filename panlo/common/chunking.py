"""
Text chunking for document ingestion.

A stored fragment keeps its text in record metadata, which the vector store
caps per record. Documents are split on spaces so every chunk stays within
that cap when encoded as UTF-8.
"""

from typing import List

MAX_CHUNK_BYTES = 40960


def _utf8_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _split_oversized_word(word: str, max_bytes: int) -> List[str]:
    """Hard-split a single word that alone exceeds the limit"""
    pieces = []
    current: List[str] = []
    size = 0
    for char in word:
        char_size = _utf8_len(char)
        if current and size + char_size > max_bytes:
            pieces.append("".join(current))
            current = []
            size = 0
        current.append(char)
        size += char_size
    if current:
        pieces.append("".join(current))
    return pieces


def split_text_into_chunks(text: str, max_bytes: int = MAX_CHUNK_BYTES) -> List[str]:
    """
    Split text into chunks of at most max_bytes UTF-8 bytes.

    Words are kept whole where possible and rejoined with single spaces.
    Empty or whitespace-only text yields no chunks.
    """
    if max_bytes <= 0:
        raise ValueError("max_bytes must be positive")

    chunks: List[str] = []
    current = ""
    for word in text.split():
        if _utf8_len(word) > max_bytes:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_split_oversized_word(word, max_bytes))
            continue

        candidate = f"{current} {word}" if current else word
        if _utf8_len(candidate) > max_bytes:
            chunks.append(current)
            current = word
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks
