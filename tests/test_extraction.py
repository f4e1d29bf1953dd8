from leadbot.services.extraction import (
    detect_purpose,
    extract_email,
    extract_lead_data,
    extract_name,
    extract_phone,
    has_name_cue,
)
from leadbot.services.validation import validate_email


def test_extract_email_returns_exact_match_that_validates():
    email = extract_email("sure, write to john.doe@example.com whenever")
    assert email == "john.doe@example.com"
    assert validate_email(email).is_valid


def test_extract_email_none():
    assert extract_email("no address here") is None
    assert extract_email("") is None


def test_extract_phone_keeps_punctuation():
    assert extract_phone("call +1 555-123-4567 please") == "+1 555-123-4567"
    assert extract_phone("(555) 123-4567") == "(555) 123-4567"
    assert extract_phone("555.123.4567") == "555.123.4567"


def test_extract_phone_none():
    assert extract_phone("12345") is None
    assert extract_phone("John Smith") is None


def test_extract_name_drops_filler_and_capitalizes():
    assert extract_name("my name is john SMITH") == "John Smith"
    assert extract_name("I'm Jane, jane@test.com") == "Jane"
    assert extract_name("alpha beta gamma delta") == "Alpha Beta Gamma"


def test_extract_name_nothing_left():
    assert extract_name("I am called, please thanks") is None
    assert extract_name("   ") is None


def test_name_cue():
    assert has_name_cue("I'm Jane")
    assert has_name_cue("my name is Bob")
    assert has_name_cue("i am Raj")
    assert not has_name_cue("Hi")
    assert not has_name_cue("I need a business website")


def test_detect_purpose_keywords():
    assert detect_purpose("I need a business website") == "business"
    assert detect_purpose("an online store for my products") == "ecommerce"
    assert detect_purpose("Android only") == "mobile"
    assert detect_purpose("analytics dashboard") == "data"
    assert detect_purpose("new LOGO and branding") == "design"


def test_detect_purpose_plurals():
    assert detect_purpose("two apps please") == "webapp"
    assert detect_purpose("some dashboards") == "data"
    assert detect_purpose("I need a couple of websites") == "business"
    assert detect_purpose("we run three businesses") == "business"
    assert detect_purpose("mobile apps") == detect_purpose("a mobile app") == "webapp"


def test_detect_purpose_first_category_wins():
    assert detect_purpose("a mobile app") == "webapp"
    assert detect_purpose("portfolio site") == "portfolio"


def test_detect_purpose_whole_words_only():
    assert detect_purpose("please check my email") is None
    assert detect_purpose("hello there") is None


def test_extract_lead_data_combined():
    data = extract_lead_data("I'm Jane, jane@test.com, 555 123 4567, want a chatbot")
    assert data == {
        "name": "Jane Want A",
        "email": "jane@test.com",
        "phone": "555 123 4567",
        "purpose": "ai",
    }


def test_extract_lead_data_name_only_when_expected_or_introduced():
    assert extract_lead_data("Hi") == {}
    assert extract_lead_data("Hi", expect_name=True) == {"name": "Hi"}
    assert extract_lead_data("I'm Jane") == {"name": "Jane"}
