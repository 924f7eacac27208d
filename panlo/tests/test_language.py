"""Tests for summary language resolution."""

import pytest

from panlo.common.language import detect_language, language_name, resolve_language


class TestDetectLanguage:
    def test_english(self):
        assert detect_language("The quarterly report shows revenue growth across all regions.") == "en"

    def test_japanese(self):
        assert detect_language("今日は会議の議事録を共有します。来週の予定も確認してください。") == "ja"

    def test_korean(self):
        assert detect_language("이번 분기 보고서에는 모든 지역의 매출 성장이 포함되어 있습니다.") == "ko"

    def test_short_text_defaults_to_english(self):
        assert detect_language("ok") == "en"
        assert detect_language("") == "en"


class TestResolveLanguage:
    def test_requested_language_wins(self):
        assert resolve_language("ja", "English text that would detect as English") == "ja"

    def test_case_insensitive_code(self):
        assert resolve_language("zh-tw") == "zh-TW"

    def test_unsupported_falls_back_to_english(self):
        assert resolve_language("tlh") == "en"

    def test_detects_when_omitted(self):
        assert resolve_language(None, "Le rapport trimestriel montre une croissance du chiffre d'affaires.") == "fr"


class TestLanguageName:
    @pytest.mark.parametrize("code, name", [("en", "English"), ("zh-TW", "Traditional Chinese"), ("xx", "English")])
    def test_names(self, code, name):
        assert language_name(code) == name
