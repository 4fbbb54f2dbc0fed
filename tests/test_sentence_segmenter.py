"""Tests for sentence segmentation of streamed text."""

import pytest

from avatar_chat.pipeline.segmenter import SegmenterState, SentenceSegmenter


def feed_all(segmenter: SentenceSegmenter, fragments: list[str]) -> list[str]:
    sentences: list[str] = []
    for fragment in fragments:
        sentences.extend(segmenter.feed(fragment))
    return sentences


class TestFeed:
    """Sentences are emitted as soon as their terminator arrives."""

    def test_sentences_across_fragments(self):
        segmenter = SentenceSegmenter()
        assert segmenter.feed("Hello ") == []
        assert segmenter.feed("world. How are ") == ["Hello world."]
        assert segmenter.feed("you?") == ["How are you?"]
        assert segmenter.flush() is None

    def test_multiple_sentences_in_one_fragment(self):
        segmenter = SentenceSegmenter()
        sentences = segmenter.feed("One. Two! Three? Four")
        assert sentences == ["One.", "Two!", "Three?"]
        assert segmenter.pending == " Four"

    def test_terminator_run_stays_with_its_sentence(self):
        segmenter = SentenceSegmenter()
        assert segmenter.feed("Really?! Yes... ok") == ["Really?!", "Yes..."]
        assert segmenter.pending == " ok"

    def test_fragment_without_terminator_only_buffers(self):
        segmenter = SentenceSegmenter()
        assert segmenter.feed("Wait") == []
        assert segmenter.feed(" for it") == []
        assert segmenter.pending == "Wait for it"
        assert segmenter.state is SegmenterState.ACCUMULATING

    def test_punctuation_only_run_is_discarded(self):
        segmenter = SentenceSegmenter()
        assert segmenter.feed("...") == []
        assert segmenter.pending == ""
        assert segmenter.flush() is None

    def test_whitespace_before_terminator_is_discarded(self):
        segmenter = SentenceSegmenter()
        assert segmenter.feed("  \n ! Next one.") == ["Next one."]

    def test_newlines_inside_sentence_are_kept(self):
        segmenter = SentenceSegmenter()
        assert segmenter.feed("First line\nsecond line. ") == [
            "First line\nsecond line."
        ]

    def test_empty_fragment_is_ignored(self):
        segmenter = SentenceSegmenter()
        assert segmenter.feed("") == []
        assert segmenter.buffer_size == 0

    def test_custom_terminators(self):
        segmenter = SentenceSegmenter(terminators="。")
        assert segmenter.feed("你好。世界") == ["你好。"]
        assert segmenter.flush() == "世界"


class TestFlush:
    """Trailing text is only spoken when the stream ends."""

    def test_flush_returns_trailing_text(self):
        segmenter = SentenceSegmenter()
        feed_all(segmenter, ["Wait", " for it"])
        assert segmenter.flush() == "Wait for it"
        assert segmenter.state is SegmenterState.IDLE

    def test_flush_whitespace_only(self):
        segmenter = SentenceSegmenter()
        segmenter.feed("Done.   \n")
        assert segmenter.flush() is None

    def test_flush_on_empty_buffer_is_noop(self):
        segmenter = SentenceSegmenter()
        assert segmenter.flush() is None
        assert segmenter.flush() is None

    def test_reset_discards_pending_text(self):
        segmenter = SentenceSegmenter()
        segmenter.feed("Half a sen")
        segmenter.reset()
        assert segmenter.pending == ""
        assert segmenter.total_emitted_chars == 0
        assert segmenter.flush() is None


@pytest.mark.parametrize(
    "text",
    [
        "Hello world. How are you? I am fine! Thanks",
        "No punctuation at all",
        "Numbers like 3.14 split. Wow! Really?",
        "  Leading space. Trailing space.   ",
    ],
)
def test_every_split_point_gives_same_sentences(text: str):
    """Where the chunk boundaries fall never changes the result."""

    expected_segmenter = SentenceSegmenter()
    expected = expected_segmenter.feed(text)
    tail = expected_segmenter.flush()
    if tail:
        expected.append(tail)

    for split in range(len(text) + 1):
        segmenter = SentenceSegmenter()
        sentences = feed_all(segmenter, [text[:split], text[split:]])
        tail = segmenter.flush()
        if tail:
            sentences.append(tail)
        assert sentences == expected


def test_sentences_reconstruct_input():
    text = "The quick brown fox. Jumps over? The lazy dog! And then sleeps"
    fragments = [text[i : i + 7] for i in range(0, len(text), 7)]

    segmenter = SentenceSegmenter()
    sentences = feed_all(segmenter, fragments)
    sentences.append(segmenter.flush())

    assert sentences == [
        "The quick brown fox.",
        "Jumps over?",
        "The lazy dog!",
        "And then sleeps",
    ]
    assert " ".join(sentences) == text
    assert segmenter.total_emitted_chars == sum(len(s) for s in sentences)


def test_terminator_run_split_across_fragments():
    """A sentence is emitted as soon as a terminator arrives; trailing
    terminators in the next fragment are a punctuation-only run."""

    segmenter = SentenceSegmenter()
    assert segmenter.feed("Wow!") == ["Wow!"]
    assert segmenter.feed("! Next.") == ["Next."]
