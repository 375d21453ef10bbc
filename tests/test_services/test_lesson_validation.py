from playbookd.services.lessons import clean_fields, validate_lesson


def _lesson(**overrides):
    data = {"title": "Footwork", "sport": "Boxing", "level": "beginner", "duration": 30}
    data.update(overrides)
    return data


def test_valid_lesson_has_no_errors():
    assert validate_lesson(_lesson(videoUrl="https://videos.example.com/a.mp4", tags=["feet"])) == []


def test_missing_required_fields_are_all_reported():
    errors = validate_lesson({})
    assert "Title is required and must be a string" in errors
    assert "Sport is required and must be a string" in errors
    assert any(e.startswith("Level must be one of") for e in errors)


def test_partial_validation_skips_absent_required_fields():
    assert validate_lesson({"duration": 45}, partial=True) == []
    assert validate_lesson({"title": "  "}, partial=True) == ["Title is required and must be a string"]


def test_limits():
    errors = validate_lesson(_lesson(
        title="x" * 201,
        duration=300,
        tags=["t"] * 16,
        objectives="not a list",
        sections=[{}] * 51,
    ))
    assert "Title must not exceed 200 characters" in errors
    assert "Duration must be a number between 5 and 240 minutes" in errors
    assert "Maximum 15 tags allowed" in errors
    assert "Objectives must be an array" in errors
    assert "Maximum 50 sections allowed" in errors


def test_bad_enums_and_urls():
    errors = validate_lesson(_lesson(
        visibility="everyone",
        status="archived",
        videoUrl="javascript:alert(1)",
        thumbnailUrl="ftp://files.example.com/t.png",
        duration=True,
    ))
    assert any(e.startswith("Visibility must be one of") for e in errors)
    assert any(e.startswith("Status must be one of") for e in errors)
    assert "Video URL must be a valid http(s) URL" in errors
    assert "Thumbnail URL must be a valid http(s) URL" in errors
    assert "Duration must be a number between 5 and 240 minutes" in errors


def test_clean_fields_normalizes_and_drops_attribution():
    out = clean_fields({
        "title": "  Jab  ",
        "sport": " Boxing ",
        "videoUrl": "",
        "coachId": "someone-else",
        "coachName": "Impostor",
    })
    assert out == {"title": "Jab", "sport": "boxing"}
