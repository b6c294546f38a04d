from fitcoach.coach.salvage import TRUNCATION_NOTE, NoSalvage, RegexMessageSalvage


def test_extracts_message_from_truncated_arguments():
    raw = r'{"message": "Line one\nline two", "changeType": "exercise_repl'

    assert RegexMessageSalvage().extract(raw) == "Line one\nline two" + TRUNCATION_NOTE


def test_accepts_unterminated_message_string():
    raw = '{"message": "Your bench press went from 60kg to 62'

    assert RegexMessageSalvage().extract(raw) == "Your bench press went from 60kg to 62" + TRUNCATION_NOTE


def test_unescapes_quotes_and_unicode():
    raw = r'{"message":"He said \"keep going\" ¡olé!","priority":'

    assert RegexMessageSalvage().extract(raw) == 'He said "keep going" ¡olé!' + TRUNCATION_NOTE


def test_returns_none_without_message_field():
    assert RegexMessageSalvage().extract('{"changeType": "nutrition_adj') is None
    assert RegexMessageSalvage().extract("") is None


def test_disabled_salvage_never_extracts():
    assert NoSalvage().extract('{"message": "hello') is None
