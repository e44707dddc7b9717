from __future__ import annotations

from ankimark.script import ScriptTag, contains_cjk, detect_script


def test_empty_text_is_other() -> None:
    assert detect_script("") is ScriptTag.OTHER
    assert contains_cjk("") is False


def test_kana_selects_japanese() -> None:
    assert detect_script("これはペンです") is ScriptTag.JAPANESE


def test_han_only_text_follows_japanese_precedence() -> None:
    assert detect_script("学习历史") is ScriptTag.JAPANESE


def test_han_only_text_can_be_treated_as_chinese() -> None:
    assert detect_script("学习历史", han_as_chinese=True) is ScriptTag.CHINESE
    assert detect_script("私は学生", han_as_chinese=True) is ScriptTag.JAPANESE


def test_hangul_selects_korean() -> None:
    assert detect_script("학교에 갑니다") is ScriptTag.KOREAN


def test_latin_text_is_other() -> None:
    assert detect_script("Hello, world!") is ScriptTag.OTHER
    assert contains_cjk("Hello, world!") is False


def test_contains_cjk_covers_every_script() -> None:
    assert contains_cjk("abc 猫")
    assert contains_cjk("abc ねこ")
    assert contains_cjk("abc 고양이")
