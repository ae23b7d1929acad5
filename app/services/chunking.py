"""
Split normalized text into chunks the speech provider accepts.
"""
import re
from typing import List

from app.config import MAX_CHUNK_LENGTH

SENTENCE_DELIMITERS = re.compile(r'[.!?]+')
SENTENCE_SEPARATOR = '. '


def split_sentences(text: str) -> List[str]:
    """Split text on sentence punctuation, dropping blank sentences."""
    sentences = (s.strip() for s in SENTENCE_DELIMITERS.split(text))
    return [s for s in sentences if s]


def split_text_into_chunks(text: str, max_length: int = MAX_CHUNK_LENGTH) -> List[str]:
    """
    Greedily pack sentences into chunks of at most max_length characters.

    Sentences are joined with '. '. When the next sentence would overflow the
    current chunk, the chunk is closed and a new one started. A sentence that
    is longer than max_length on its own is split at word boundaries; its
    last piece stays open so following sentences can join it.

    Args:
        text: Normalized text
        max_length: Upper bound on chunk length, separators included

    Returns:
        Ordered list of non-empty chunks
    """
    if max_length < 1:
        raise ValueError(f'max_length must be positive, got {max_length}')

    chunks: List[str] = []
    current = ''

    for sentence in split_sentences(text):
        if not current and len(sentence) <= max_length:
            current = sentence
            continue

        if current and len(current) + len(SENTENCE_SEPARATOR) + len(sentence) <= max_length:
            current = f'{current}{SENTENCE_SEPARATOR}{sentence}'
            continue

        if current:
            chunks.append(current)
            current = ''

        if len(sentence) <= max_length:
            current = sentence
        else:
            pieces = _split_words(sentence, max_length)
            chunks.extend(pieces[:-1])
            current = pieces[-1]

    if current:
        chunks.append(current)

    return chunks


def _split_words(sentence: str, max_length: int) -> List[str]:
    """Pack the words of an oversized sentence into max_length pieces."""
    pieces: List[str] = []
    current = ''

    for word in sentence.split():
        # Only a word that cannot fit in any chunk is cut
        while len(word) > max_length:
            if current:
                pieces.append(current)
                current = ''
            pieces.append(word[:max_length])
            word = word[max_length:]
        if not word:
            continue

        if current and len(current) + 1 + len(word) > max_length:
            pieces.append(current)
            current = word
        else:
            current = f'{current} {word}' if current else word

    if current:
        pieces.append(current)

    return pieces
