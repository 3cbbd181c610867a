import json

import pytest

from app.modules.question_extraction.parsing import (
    IndexAnswer,
    LetterAnswer,
    TextAnswer,
    classify_correct_answer,
    load_question_payload,
    normalize_difficulty,
    normalize_options,
    parse_questions,
    repair_truncated_array,
    resolve_correct_answer,
    strip_code_fences,
)
from app.modules.question_extraction.schemas import ExtractedQuestion
from app.modules.question_extraction.service import to_question_row


def _item(n: int, **overrides) -> dict:
    item = {
        "question_text": f"Question {n}?",
        "options": ["alpha", "beta", "gamma", "delta"],
        "correct_answer": "1",
        "topic": "Biology",
        "subtopic": "Cells",
        "difficulty": "easy",
        "explanation": "Because.",
        "has_image": False,
        "image_description": "",
    }
    item.update(overrides)
    return item


def test_parse_questions_returns_every_well_formed_item() -> None:
    raw = json.dumps([_item(n) for n in range(5)])
    questions = parse_questions(raw)

    assert len(questions) == 5
    assert questions[0].question_text == "Question 0?"
    assert questions[0].options == ["alpha", "beta", "gamma", "delta"]
    assert questions[0].image_description is None


def test_parse_questions_strips_markdown_fences() -> None:
    raw = "```json\n" + json.dumps([_item(1)]) + "\n```"
    assert strip_code_fences(raw).startswith("[")
    assert len(parse_questions(raw)) == 1


def test_parse_questions_recovers_truncated_array() -> None:
    complete = json.dumps([_item(1), _item(2)])
    truncated = complete[:-1] + ', {"question_text": "Question 3?", "opti'

    questions = parse_questions(truncated)
    assert [q.question_text for q in questions] == ["Question 1?", "Question 2?"]


def test_repair_ignores_brackets_inside_strings() -> None:
    raw = '[{"question_text": "What is {x]?"}, {"question_text": "cut'
    assert repair_truncated_array(raw) == '[{"question_text": "What is {x]?"}]'


def test_repair_gives_up_without_a_complete_element() -> None:
    assert repair_truncated_array('[{"question_text": "cut') is None
    assert repair_truncated_array('{"not": "an array"') is None
    assert parse_questions('[{"question_text": "cut') == []


@pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', "42"])
def test_unusable_payloads_yield_no_questions(raw) -> None:
    assert load_question_payload(raw) == []
    assert parse_questions(raw) == []


def test_parse_questions_drops_items_without_text() -> None:
    raw = json.dumps([_item(1), {"question_text": "  "}, "junk", _item(2)])
    assert [q.question_text for q in parse_questions(raw)] == [
        "Question 1?",
        "Question 2?",
    ]


def test_has_image_accepts_string_flags() -> None:
    raw = json.dumps([_item(1, has_image="true"), _item(2, has_image="false")])
    assert [q.has_image for q in parse_questions(raw)] == [True, False]


def test_legacy_option_object_is_flattened_in_label_order() -> None:
    assert normalize_options({"B": "beta", "A": "alpha", "C": "", "D": "delta"}) == [
        "alpha",
        "beta",
        "delta",
    ]
    assert normalize_options({"a": "x", "b": "y"}) == ["x", "y"]
    assert normalize_options("A) x B) y") == []


def test_array_options_keep_blank_positions_for_answer_index() -> None:
    options = normalize_options(["", " beta ", "gamma", None, "delta"])

    assert options == ["", "beta", "gamma", "", "delta"]
    assert resolve_correct_answer("2", options) == "C"
    assert options[2] == "gamma"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (2, IndexAnswer(2)),
        ("2", IndexAnswer(2)),
        ("c", LetterAnswer("C")),
        ("(B)", LetterAnswer("B")),
        ("D.", LetterAnswer("D")),
        ("gamma", TextAnswer("gamma")),
        ("", None),
        (None, None),
        (True, None),
    ],
)
def test_classify_correct_answer(raw, expected) -> None:
    assert classify_correct_answer(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2", "C"),
        (0, "A"),
        ("b", "B"),
        ("(d)", "D"),
        ("Gamma", "C"),
        ("epsilon", "epsilon"),
        ("", ""),
    ],
)
def test_resolve_correct_answer(raw, expected) -> None:
    options = ["alpha", "beta", "gamma", "delta"]
    assert resolve_correct_answer(raw, options) == expected


def test_resolve_correct_answer_keeps_out_of_range_index_verbatim() -> None:
    assert resolve_correct_answer("7", ["alpha", "beta"]) == "7"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("Hard", "hard"), (" EASY ", "easy"), ("", "medium"), (None, "medium")],
)
def test_normalize_difficulty(raw, expected) -> None:
    assert normalize_difficulty(raw) == expected


def test_question_row_is_unverified_and_only_image_questions_get_a_url() -> None:
    plain = ExtractedQuestion(
        question_text="Q?",
        options=["x", "y", "z"],
        correct_answer="1",
        difficulty="",
    )
    pictured = plain.model_copy(update={"has_image": True, "image_description": "A cell"})

    plain_row = to_question_row(plain, image_url="https://img/1.png")
    pictured_row = to_question_row(pictured, image_url="https://img/1.png")

    assert plain_row["correct_answer"] == "B"
    assert plain_row["difficulty"] == "medium"
    assert plain_row["is_verified"] is False
    assert plain_row["image_url"] is None
    assert pictured_row["image_url"] == "https://img/1.png"
    assert pictured_row["image_description"] == "A cell"
