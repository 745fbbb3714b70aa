from __future__ import annotations

from app.ai.json_parser import extract_json_block, parse_json_with_fallback
from app.ai.parsing import ParseError, ParseOk, parse_hooks, parse_outline, parse_style_guide, parse_titles
from tests.conftest import OUTLINE_TEXT, STYLE_JSON, TITLES_JSON


def test_parse_outline_reads_markdown_decorated_outline() -> None:
  result = parse_outline(OUTLINE_TEXT)

  assert isinstance(result, ParseOk)
  outline = result.value
  assert outline.title == "The Lighthouse Keeper's Dog"
  assert outline.total_word_count == 2000
  assert outline.twist == "The dog has been keeping the light all along"
  assert [(chapter.index, chapter.target_word_count) for chapter in outline.chapters] == [(1, 900), (2, 1100)]
  assert outline.chapters[1].summary == "A winter storm cuts the island off and the dog leads the keeper to the lamp room."


def test_missing_chapter_word_count_rejects_the_whole_outline() -> None:
  text = "Title: Short\nTotal Word Count: 900\n\nChapter 1\nSummary: Only summary.\n\nChapter 2\nSummary: Two.\nWord Count: 450\n"
  result = parse_outline(text)
  assert isinstance(result, ParseError)
  assert not result.ok
  assert "chapter 1" in result.reason


def test_zero_word_count_is_rejected() -> None:
  result = parse_outline("Title: Zero\nTotal Word Count: 0\nChapter 1\nSummary: Nothing.\nWord Count: 0\n")
  assert isinstance(result, ParseError)


def test_chapters_out_of_order_are_rejected() -> None:
  text = "Title: Order\nTotal Word Count: 1000\nChapter 2\nSummary: B.\nWord Count: 500\nChapter 1\nSummary: A.\nWord Count: 500\n"
  result = parse_outline(text)
  assert isinstance(result, ParseError)
  assert "1..N" in result.reason


def test_outline_without_chapters_or_title_is_rejected() -> None:
  assert isinstance(parse_outline("Title: Nothing\nTotal Word Count: 100\n"), ParseError)
  assert isinstance(parse_outline("Chapter 1\nSummary: A.\nWord Count: 500\n"), ParseError)


def test_parse_hooks_tolerates_fences_and_surrounding_prose() -> None:
  result = parse_hooks('Here are your hooks:\n["  One.  ", "Two.",]\nEnjoy!')
  assert result == ParseOk(["One.", "Two."])


def test_parse_hooks_rejects_non_lists_and_blank_entries() -> None:
  assert isinstance(parse_hooks('{"hooks": ["a"]}'), ParseError)
  assert isinstance(parse_hooks("[]"), ParseError)
  assert isinstance(parse_hooks('["ok", "  "]'), ParseError)
  assert isinstance(parse_hooks("no json here"), ParseError)


def test_extract_json_block_ignores_brackets_inside_strings() -> None:
  raw = 'prefix ["a ] tricky", "b"] suffix'
  assert extract_json_block(raw) == '["a ] tricky", "b"]'
  assert parse_json_with_fallback(raw) == ["a ] tricky", "b"]


def test_parse_titles_reads_a_json_array_and_rejects_prose() -> None:
  result = parse_titles(f"Sure! Here you go:\n{TITLES_JSON}")
  assert isinstance(result, ParseOk)
  assert result.value[2] == "One Dog, One Lighthouse, One Winter"

  rejected = parse_titles('{"titles": ["One"]}')
  assert isinstance(rejected, ParseError)
  assert rejected.reason == "titles must be a JSON array"


def test_parse_style_guide_tolerates_fences_and_trailing_commas() -> None:
  result = parse_style_guide(STYLE_JSON)
  assert isinstance(result, ParseOk)
  assert result.value["pacing"] == {"speed": "Moderate"}

  assert isinstance(parse_style_guide("{}"), ParseError)
  assert isinstance(parse_style_guide('["tone"]'), ParseError)
