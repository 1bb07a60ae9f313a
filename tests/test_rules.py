import pytest

from nota.transcript import rules


@pytest.mark.parametrize(
    "text",
    [
        "",
        "  ",
        "ok",
        "Thank you.",
        "Thanks for watching!",
        "Subscribe",
        "Спасибо за просмотр",
        "yes yes yes",
        "go go go",
        "the meeting starts at 9 the meeting starts at 9 the meeting",
        "the meeting starts at 9 the meeting starts at 9 the meeting starts at 9 the meeting starts at 9",
        "go go go go go go go go stop",
    ],
)
def test_phantom_text_is_rejected(text):
    assert rules.is_phantom(text) is True


@pytest.mark.parametrize(
    "text",
    [
        "Hello world",
        "how are you",
        "We discussed the roadmap for Q3",
        "Thank you for joining the quarterly planning meeting today",
        "The meeting starts at 9 and ends at 10.",
        "Привет, как дела?",
    ],
)
def test_real_speech_is_kept(text):
    assert rules.is_phantom(text) is False


def test_normalize_strips_punctuation_and_case():
    assert rules.normalize("  Hello,   WORLD!! ") == "hello world"
