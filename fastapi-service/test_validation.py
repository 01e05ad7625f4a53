"""
提交內容驗證測試

執行方式：pytest test_validation.py
"""
import pytest

from utils.error_handler import APIError
from utils.validation import (
    PROHIBITED_CONTENT_MESSAGE,
    ValidatedAnswer,
    clamp_int,
    sanitize_text,
    validate_answers,
    validate_clinical_picture,
    validate_disease_element,
)

DESCRIPTION = "Episodes usually start at rest in the evening."


def _error(excinfo) -> APIError:
    assert excinfo.value.status_code == 400
    return excinfo.value


# ==================== 文字與整數 ====================

def test_sanitize_text_collapses_whitespace():
    assert sanitize_text("  Paroxysmal \n\t AFib  ") == "Paroxysmal AFib"


@pytest.mark.parametrize("value", [None, "", 42, ["text"]])
def test_sanitize_text_non_string_is_empty(value):
    assert sanitize_text(value) == ""


def test_clamp_int():
    assert clamp_int("250", 120, 20, 500) == 250
    assert clamp_int(10_000, 120, 20, 500) == 500
    assert clamp_int(1, 120, 20, 500) == 20
    assert clamp_int("abc", 120, 20, 500) == 120
    assert clamp_int(None, 120, 20, 500) == 120
    assert clamp_int(True, 120, 20, 500) == 120


# ==================== 臨床圖像 ====================

def test_clinical_picture_valid():
    picture = validate_clinical_picture("  Paroxysmal   AFib ", f"  {DESCRIPTION}  ", 2019, True, current_year=2026)
    assert picture.diagnosis == "Paroxysmal AFib"
    assert picture.description == DESCRIPTION
    assert picture.diagnosis_year == 2019


def test_clinical_picture_year_optional():
    picture = validate_clinical_picture("AFib", DESCRIPTION, None, True, current_year=2026)
    assert picture.diagnosis_year is None


def test_clinical_picture_integral_float_year():
    picture = validate_clinical_picture("AFib", DESCRIPTION, 2020.0, True, current_year=2026)
    assert picture.diagnosis_year == 2020
    assert isinstance(picture.diagnosis_year, int)


def test_clinical_picture_requires_diagnosis():
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("   ", DESCRIPTION, None, True)
    assert _error(excinfo).message == "Diagnosis is required."


def test_clinical_picture_diagnosis_too_long():
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("a" * 241, DESCRIPTION, None, True)
    assert _error(excinfo).message == "Diagnosis must be 240 characters or less."


def test_clinical_picture_description_too_short():
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("AFib", "Too short", None, True)
    assert _error(excinfo).message == "Clinical picture is required and must be at least 20 characters."


def test_clinical_picture_description_too_long():
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("AFib", "word " * 1000, None, True)
    assert _error(excinfo).message == "Clinical picture must be 4000 characters or less."


def test_clinical_picture_rejects_contact_info():
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("AFib", "Write to me at someone@example.com any time.", None, True)
    assert _error(excinfo).message == PROHIBITED_CONTENT_MESSAGE


@pytest.mark.parametrize("year", [2020.5, "2020", True])
def test_clinical_picture_year_must_be_whole_number(year):
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("AFib", DESCRIPTION, year, True, current_year=2026)
    assert _error(excinfo).message == "Diagnosis year must be a whole number."


@pytest.mark.parametrize("year", [1899, 2027])
def test_clinical_picture_year_out_of_range(year):
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("AFib", DESCRIPTION, year, True, current_year=2026)
    assert _error(excinfo).message == "Diagnosis year must be between 1900 and 2026."


@pytest.mark.parametrize("acknowledged", [None, False, "true", 1])
def test_clinical_picture_requires_acknowledgement(acknowledged):
    with pytest.raises(APIError) as excinfo:
        validate_clinical_picture("AFib", DESCRIPTION, None, acknowledged)
    assert _error(excinfo).message == (
        "Please confirm this is a self-reported AFib diagnosis before submitting."
    )


# ==================== 疾病元素 ====================

def test_disease_element_valid():
    element = validate_disease_element("  Cold   drinks ", "  Iced water  ", "1")
    assert element.name == "Cold drinks"
    assert element.description == "Iced water"
    assert element.type_id == 1


def test_disease_element_blank_description_is_none():
    element = validate_disease_element("Magnesium", "   ", 3)
    assert element.description is None


def test_disease_element_requires_name():
    with pytest.raises(APIError) as excinfo:
        validate_disease_element("", None, 1)
    assert _error(excinfo).message == "Name is required."


def test_disease_element_name_too_long():
    with pytest.raises(APIError) as excinfo:
        validate_disease_element("n" * 121, None, 1)
    assert _error(excinfo).message == "Name must be 120 characters or less."


def test_disease_element_description_too_long():
    with pytest.raises(APIError) as excinfo:
        validate_disease_element("Caffeine", "d" * 801, 1)
    assert _error(excinfo).message == "Description must be 800 characters or less."


def test_disease_element_rejects_links():
    with pytest.raises(APIError) as excinfo:
        validate_disease_element("Caffeine", "See www.example.com for details", 1)
    assert _error(excinfo).message == PROHIBITED_CONTENT_MESSAGE


@pytest.mark.parametrize("type_id", [0, 4, "x", None, 1.5])
def test_disease_element_unknown_type(type_id):
    with pytest.raises(APIError) as excinfo:
        validate_disease_element("Caffeine", None, type_id)
    assert _error(excinfo).message == "Unknown category for this submission."


# ==================== 投票答案 ====================

def test_answers_skip_invalid_and_duplicates():
    answers = validate_answers([
        {"elementId": 1, "answer": True},
        {"elementId": 1, "answer": False},
        {"elementId": "2", "answer": True},
        {"elementId": 3, "answer": "yes"},
        {"elementId": True, "answer": True},
        "not-an-object",
        {"elementId": 4.0, "answer": False},
    ])
    assert answers == [
        ValidatedAnswer(element_id=1, answer=True),
        ValidatedAnswer(element_id=4, answer=False),
    ]


@pytest.mark.parametrize("payload", [None, [], {"elementId": 1}, "answers"])
def test_answers_missing(payload):
    with pytest.raises(APIError) as excinfo:
        validate_answers(payload)
    assert _error(excinfo).message == "No answers provided."


def test_answers_all_invalid():
    with pytest.raises(APIError) as excinfo:
        validate_answers([{"elementId": "a", "answer": True}])
    assert _error(excinfo).message == "No valid answers provided."


def test_answers_limit():
    validate_answers([{"elementId": i, "answer": True} for i in range(50)])
    with pytest.raises(APIError) as excinfo:
        validate_answers([{"elementId": i, "answer": True} for i in range(51)])
    assert _error(excinfo).message == "Too many answers submitted at once."
