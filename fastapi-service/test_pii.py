"""
個資偵測與遮蔽測試

執行方式：pytest test_pii.py
"""
import pytest

from utils.pii import contains_phone_number, contains_prohibited_content, redact_pii


@pytest.mark.parametrize("text", [
    "Email me: jane.doe@example.com",
    "Visit https://example.org for more",
    "Look up www.afib-help",
    "Posted on afibsupport.net last week",
    "Follow @heartbeat_club for updates",
    "@heartbeat_club started this",
    "Call 555-123-4567 after six",
    "Text +44 20 7946 0958",
    "I live at 12 Oak Street near the park",
    "Clinic is on 400 North Cedar Ave",
])
def test_detects_prohibited_content(text):
    assert contains_prohibited_content(text)


@pytest.mark.parametrize("text", [
    "Episodes start after coffee and poor sleep, lasting 3 hours.",
    "Diagnosed in 2019, took 200 mg of flecainide.",
    "Heart rate went to 180 during exercise",
    "ping @ab later",
])
def test_allows_plain_clinical_text(text):
    assert not contains_prohibited_content(text)


def test_phone_number_requires_ten_digits():
    assert contains_phone_number("call 555 123 4567")
    assert not contains_phone_number("call 555 1234")
    assert not contains_phone_number("from 2018 - 2020")


def test_redacts_email_before_links():
    text = "Reach me at jane@example.com or https://example.com/page"
    assert redact_pii(text) == "Reach me at [redacted email] or [redacted link]"


def test_redacts_www_and_bare_domains():
    assert redact_pii("check www.example.com/x now") == "check [redacted link] now"
    assert redact_pii("see afib.org") == "see [redacted link]"


def test_redacts_handle_keeping_prefix():
    assert redact_pii("Message @afib_warrior today") == "Message @[redacted] today"
    assert redact_pii("@afib_warrior here") == "@[redacted] here"


def test_redacts_address():
    assert redact_pii("Meet at 42 Main Street tomorrow") == "Meet at [redacted address] tomorrow"


def test_redacts_phone():
    assert redact_pii("Call +1 (555) 123-4567 anytime") == "Call [redacted phone] anytime"


def test_keeps_short_numbers():
    text = "Diagnosed in 2019 at 45, episodes last 2 hours"
    assert redact_pii(text) == text


def test_redact_empty_and_trim():
    assert redact_pii("") == ""
    assert redact_pii("  calm text  ") == "calm text"
