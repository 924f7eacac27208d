"""Tests for byte-bounded text chunking."""

import pytest

from panlo.common.chunking import split_text_into_chunks


class TestSplitTextIntoChunks:

    def test_short_text_single_chunk(self):
        assert split_text_into_chunks("hello   world\n") == ["hello world"]

    def test_empty_text_no_chunks(self):
        assert split_text_into_chunks("") == []
        assert split_text_into_chunks("   \n\t") == []

    def test_respects_byte_limit(self):
        chunks = split_text_into_chunks("aaa bbb ccc ddd", max_bytes=7)

        assert chunks == ["aaa bbb", "ccc ddd"]

    def test_counts_utf8_bytes_not_characters(self):
        # each "日本" is 6 bytes; two words plus a space would be 13
        chunks = split_text_into_chunks("日本 日本 日本", max_bytes=12)

        assert chunks == ["日本", "日本", "日本"]
        assert all(len(c.encode("utf-8")) <= 12 for c in chunks)

    def test_oversized_word_is_hard_split(self):
        chunks = split_text_into_chunks("x" * 25, max_bytes=10)

        assert chunks == ["x" * 10, "x" * 10, "x" * 5]

    def test_oversized_multibyte_word_not_split_mid_character(self):
        chunks = split_text_into_chunks("é" * 5, max_bytes=3)

        assert chunks == ["é"] * 5

    def test_words_survive_round_trip(self):
        text = " ".join(f"word{i}" for i in range(500))

        chunks = split_text_into_chunks(text, max_bytes=100)

        assert " ".join(chunks) == text
        assert all(len(c.encode("utf-8")) <= 100 for c in chunks)

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            split_text_into_chunks("text", max_bytes=0)

    def test_long_unspaced_text(self):
        # CJK text has no spaces, so the whole document is one word
        text = "漢" * 200_000

        chunks = split_text_into_chunks(text)

        assert "".join(chunks) == text
        assert len(chunks) == 15
        assert all(len(c.encode("utf-8")) <= 40960 for c in chunks)
        assert len(chunks[0]) == 13653
