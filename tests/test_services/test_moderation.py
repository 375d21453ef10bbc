from playbookd.utils.moderation import (
    calculate_severity,
    contains_email,
    contains_phone_number,
    contains_social_handle,
    moderate_content,
)


def test_phone_numbers_detected():
    assert contains_phone_number("call me at 123-456-7890")
    assert contains_phone_number("123.456.7890")
    assert contains_phone_number("1234567890")
    assert contains_phone_number("(123) 456-7890")
    assert contains_phone_number("123 456 7890")
    assert not contains_phone_number("I ran 5 miles in 40 minutes")
    assert not contains_phone_number("12345")


def test_email_and_handles():
    assert contains_email("reach me at kid@example.com")
    assert not contains_email("no contact here")
    assert contains_social_handle("dm me @hooper23")


def test_clean_message_passes():
    result = moderate_content("Can you help me with my jump shot form?")
    assert result["flagged"] is False
    assert result["reasons"] == []


def test_email_flags_contact_sharing_without_handle():
    result = moderate_content("email me at kid@example.com")
    assert "email_sharing" in result["reasons"]
    assert "contact_info_sharing" in result["reasons"]
    assert "social_media_handle" not in result["reasons"]
    assert calculate_severity(result["score"]) == "medium"


def test_phone_number_is_critical():
    result = moderate_content("text me 555-123-4567")
    assert "phone_number_exchange" in result["reasons"]
    assert calculate_severity(result["score"]) == "critical"


def test_threat_is_critical_and_word_forms_match():
    result = moderate_content("I will hurt you")
    assert "potential_threat" in result["reasons"]
    assert calculate_severity(result["score"]) == "critical"

    assert "potential_bullying" in moderate_content("you idiots")["reasons"]


def test_severity_bands():
    assert calculate_severity({"toxicity": 0.9, "threat": 0.0}) == "high"
    assert calculate_severity({"profanity": 0.6}) == "medium"
    assert calculate_severity({"profanity": 0.1}) == "low"
    assert calculate_severity({}) == "low"
