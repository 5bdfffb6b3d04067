from hackernews_to_podcast.script import build_srt, format_srt_time, parse_turns, speaker_for, split_label


def test_parse_mixed_colons():
    turns = parse_turns("男: hello\n女：world\n\n")

    assert [(t.index, t.speaker, t.text) for t in turns] == [
        (0, "male", "hello"),
        (1, "female", "world"),
    ]


def test_male_label_is_case_insensitive():
    assert speaker_for("Male: hi") == "male"
    assert speaker_for("MALE：hi") == "male"


def test_anything_else_is_female():
    assert speaker_for("女: hi") == "female"
    assert speaker_for("旁白: hi") == "female"
    assert speaker_for("female: hi") == "female"
    # label must be followed directly by a colon
    assert speaker_for("男生: hi") == "female"


def test_untagged_line_keeps_whole_text():
    turns = parse_turns("just narration")

    assert turns[0].speaker == "female"
    assert turns[0].text == "just narration"


def test_empty_turns_dropped_and_indices_consecutive():
    turns = parse_turns("男:\n\n   \n女: 一\n男：\n男: 二")

    assert [(t.index, t.text) for t in turns] == [(0, "一"), (1, "二")]


def test_split_label_uses_first_colon():
    assert split_label("男: 时间是 10:30") == ("男", "时间是 10:30")
    assert split_label("女：比分 2:1") == ("女", "比分 2:1")


def test_empty_script():
    assert parse_turns("") == []
    assert parse_turns(None) == []


def test_srt_time_format():
    assert format_srt_time(0) == "00:00:00,000"
    assert format_srt_time(3725.5) == "01:02:05,500"


def test_build_srt_is_sequential():
    srt = build_srt(parse_turns("男: 你好，世界\n女: 再见"), seconds_per_char=1.0)

    cues = srt.strip().split("\n\n")
    assert len(cues) == 3
    assert cues[0] == "1\n00:00:00,000 --> 00:00:02,000\n你好"
    assert cues[2].startswith("3\n00:00:04,000 --> 00:00:06,000")
