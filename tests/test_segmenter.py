"""Tests for overlapping character windows."""

import pytest

from site_qa.rag.segmenter import segment


@pytest.mark.unit
class TestSegment:
    """Test segment()."""

    def test_windows_overlap_by_k(self):
        """Test consecutive windows share exactly `overlap` characters."""
        windows = segment("abcdefghij", 4, 1)

        assert windows == ["abcd", "defg", "ghij"]

    def test_windows_reconstruct_text(self):
        """Test that dropping each overlap reassembles the input."""
        text = "The quick brown fox jumps over the lazy dog. " * 20
        overlap = 7
        windows = segment(text, 50, overlap)

        rebuilt = windows[0] + "".join(window[overlap:] for window in windows[1:])
        assert rebuilt == text
        assert all(len(window) <= 50 for window in windows)

    def test_short_text_single_window(self):
        assert segment("short", 700, 120) == ["short"]

    def test_blank_text_returns_nothing(self):
        assert segment("   \n\t ", 10, 2) == []
        assert segment("", 10, 2) == []

    def test_multibyte_characters_kept_whole(self):
        """Test that windows count code points, not bytes."""
        windows = segment("äöüßéèñ", 3, 1)

        assert windows == ["äöü", "üßé", "éèñ"]

    @pytest.mark.parametrize("target,overlap", [(0, 0), (5, 5), (5, 6), (5, -1)])
    def test_invalid_parameters(self, target, overlap):
        with pytest.raises(ValueError):
            segment("some text", target, overlap)
