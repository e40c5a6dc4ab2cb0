from callscore.engine.transcript_parser import (
    extract_filler_words,
    extract_objections,
    extract_questions,
    normalize_transcript,
    parse_transcript,
    split_sentences,
)
from callscore.models.signals import ObjectionCategory, QuestionKind, QuestionQuality
from callscore.models.transcript import TranscriptEntry


def _rep(text: str) -> TranscriptEntry:
    return TranscriptEntry(role="user", text=text)


def _prospect(text: str) -> TranscriptEntry:
    return TranscriptEntry(role="agent", text=text)


def test_greeting_and_value_prop_detected_in_opening():
    signals = parse_transcript(
        [
            _rep("Hi there, thanks for taking the call. We help teams save 10 hours a week."),
            _prospect("Okay, go on."),
        ]
    )

    assert signals.has_greeting is True
    assert signals.has_value_prop is True
    assert signals.opening_turns == [
        "Hi there, thanks for taking the call. We help teams save 10 hours a week."
    ]


def test_empty_transcript_yields_zeroed_signals():
    signals = parse_transcript([])

    assert signals.questions_asked == []
    assert signals.question_quality is QuestionQuality.NONE
    assert signals.objections == []
    assert signals.filler_words == []
    assert signals.listening_ratio == 0.0
    assert signals.avg_words_per_turn == 0.0
    assert signals.longest_turn == 0
    assert signals.has_greeting is False
    assert signals.has_cta is False


def test_split_sentences_keeps_question_marks():
    parts = split_sentences("What are your goals? Do you use Salesforce? Tell me about your team.")
    assert parts == ["What are your goals?", "Do you use Salesforce?", "Tell me about your team"]


def test_question_kinds_and_quality():
    questions = extract_questions(
        ["What are your goals? Do you use Salesforce? Tell me about your team."]
    )

    assert [q.kind for q in questions] == [QuestionKind.OPEN, QuestionKind.CLOSED, QuestionKind.OPEN]
    signals = parse_transcript([_rep("What are your goals? Do you use Salesforce? Tell me about your team.")])
    assert signals.question_quality is QuestionQuality.GOOD
    assert signals.open_question_count == 2


def test_mostly_closed_questions_are_weak():
    signals = parse_transcript([_rep("Do you use Salesforce? Is it working? Why did you pick it?")])
    assert len(signals.questions_asked) == 3
    assert signals.question_quality is QuestionQuality.WEAK


def test_objection_category_order_first_match_wins():
    objections = extract_objections(
        [
            _prospect("It's too expensive and I don't have time for this."),
            _rep("Understood."),
            _prospect("I don't have time, I need to talk to my boss first."),
            _rep("Sure."),
        ]
    )

    assert [o.category for o in objections] == [ObjectionCategory.PRICE, ObjectionCategory.TIME]


def test_objection_response_is_next_rep_turn_and_handled_needs_substance():
    long_reply = (
        "That makes sense, and most of our customers felt the same before they saw "
        "the time savings in their first month with us."
    )
    objections = extract_objections(
        [
            _prospect("Honestly we're not interested."),
            _prospect("We already have a tool."),
            _rep(long_reply),
            _prospect("I've never heard of your company."),
            _rep("Got it."),
        ]
    )

    assert [o.category for o in objections] == [
        ObjectionCategory.NEED,
        ObjectionCategory.NEED,
        ObjectionCategory.TRUST,
    ]
    assert objections[0].rep_response == long_reply
    assert objections[0].handled is True
    assert objections[2].rep_response == "Got it."
    assert objections[2].handled is False


def test_objection_without_following_rep_turn_has_empty_response():
    objections = extract_objections([_rep("Hello"), _prospect("Maybe later.")])
    assert objections[0].rep_response == ""
    assert objections[0].handled is False


def test_fillers_count_every_occurrence():
    fillers = extract_filler_words(["Um, like, you know, I mean it's basically great, yeah.", "Um okay."])
    assert sorted(fillers) == sorted(["um", "um", "like", "you know", "i mean", "basically", "yeah"])


def test_only_rep_speech_counts_for_fillers():
    signals = parse_transcript([_rep("We help teams."), _prospect("Um, like, yeah, um.")])
    assert signals.filler_words == []
    assert signals.prospect_word_count == 4
    assert signals.listening_ratio == 4 / 3


def test_closing_window_detects_cta_and_next_steps():
    signals = parse_transcript(
        [
            _rep("Hello."),
            _rep("Thanks."),
            _rep("One more thing."),
            _rep("Can we schedule a follow-up for Tuesday?"),
        ]
    )

    assert signals.closing_turns == ["Thanks.", "One more thing.", "Can we schedule a follow-up for Tuesday?"]
    assert signals.has_cta is True
    assert signals.has_next_steps is True


def test_parse_is_deterministic(sales_call):
    assert parse_transcript(sales_call) == parse_transcript(sales_call)


def test_normalize_transcript_skips_malformed_items():
    entries = normalize_transcript(
        [
            {"role": "user", "text": "Hi", "timestamp": "0"},
            {"role": "narrator", "text": "???"},
            "not a turn",
            {"role": "agent", "text": "Hello", "extra": True},
        ]
    )

    assert [e.role.value for e in entries] == ["user", "agent"]
    assert entries[0].timestamp == "0"
