from advisor_core.analysis import (
    classify_category,
    classify_response,
    classify_sentiment,
    format_response,
    is_question,
)


def test_category_strict_winner():
    text = "Wealth and growth follow expansion; abundance is a mindset."
    assert classify_category(text) == "abundance"


def test_category_defaults_to_purpose_without_hits():
    assert classify_category("Let's review the quarterly numbers.") == "purpose"
    assert classify_category("") == "purpose"


def test_category_tie_falls_back_to_purpose():
    # one hit for community, one for mastery
    assert classify_category("Your tribe needs leadership.") == "purpose"


def test_category_is_case_insensitive():
    assert classify_category("INNOVATION and CREATIVITY drive a BREAKTHROUGH") == "innovation"


def test_sentiment_decision_table():
    assert classify_sentiment("You sound clear and inspired.") == "ALIGNED"
    assert classify_sentiment("You sound clear and inspired, and you are growing.") == "ALIGNED_TRANSFORMING"
    assert classify_sentiment("You feel stuck.") == "SEEKING"
    assert classify_sentiment("You feel stuck but you are healing.") == "SEEKING_TRANSFORMING"
    assert classify_sentiment("Your business is evolving.") == "TRANSFORMING"
    assert classify_sentiment("Here are the numbers.") == "NEUTRAL"


def test_sentiment_equal_aligned_and_seeking_goes_to_seeking():
    assert classify_sentiment("aligned flow inspired") == "ALIGNED"
    assert classify_sentiment("aligned seeking") == "SEEKING"
    assert classify_sentiment("aligned seeking, shifting") == "SEEKING_TRANSFORMING"


def test_is_question_requires_marker_and_question_mark():
    assert is_question("What should I do?") is True
    assert is_question("Is it done?") is False
    assert is_question("Tell me more about your plan.") is False
    assert is_question("Could you TELL ME why?") is True


def test_format_response_bullets_and_blank_lines():
    raw = "Intro:• first•  second\r\n\r\n\r\n\r\nEnd  "
    assert format_response(raw) == "Intro:\n\n• first\n\n• second\n\nEnd"


def test_format_response_is_idempotent():
    samples = [
        "A • b • c",
        "  leading and trailing  ",
        "line\n\n\n\n\nline",
        "• starts with bullet\n•\tnext",
        "",
    ]
    for sample in samples:
        once = format_response(sample)
        assert format_response(once) == once


def test_classify_response_combines_tags():
    tags = classify_response("Good question. What's your goal?")
    assert tags.is_question is True
    assert tags.category == "purpose"
    assert tags.sentiment == "NEUTRAL"
