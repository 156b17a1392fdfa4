import pytest

from jademark.segmenter import join_blocks, segment_document, split_for_length
from jademark.structures import BlockKind

SAMPLE = "# Hi\n\nSome *text* here.\n\n```js\nconst x=1;\n```"


class TestSegmentDocument:

    def test_sample_document_yields_five_blocks(self):
        blocks = segment_document(SAMPLE)
        assert [b.kind for b in blocks] == [
            BlockKind.HEADING,
            BlockKind.SEPARATOR,
            BlockKind.TEXT,
            BlockKind.SEPARATOR,
            BlockKind.CODE,
        ]

    def test_heading_keeps_marker_apart_from_content(self):
        heading = segment_document(SAMPLE)[0]
        assert heading.header_prefix == "# "
        assert heading.content == "Hi"
        assert heading.raw == "# Hi"

    def test_code_block_keeps_fences_in_raw_only(self):
        code = segment_document(SAMPLE)[-1]
        assert code.content == "const x=1;"
        assert code.raw == "```js\nconst x=1;\n```"
        assert code.code_language == "js"
        assert code.terminated

    @pytest.mark.parametrize(
        "document",
        [
            "",
            "\n",
            SAMPLE,
            "line one\nline two\n\n\n## Two\ntrailing\n",
            "   \n\t\nindented blank lines",
            "~~~\n# not a heading\n\nstill code\n~~~\nafter",
            "```\nnever closed\n\n# inside",
            "Windows\r\nline endings\r\n",
        ],
    )
    def test_segmentation_is_lossless(self, document):
        assert join_blocks(segment_document(document)) == document

    def test_heading_inside_fence_is_code(self):
        blocks = segment_document("```\n# comment\n```")
        assert len(blocks) == 1
        assert blocks[0].kind is BlockKind.CODE
        assert blocks[0].content == "# comment"

    def test_unterminated_fence_runs_to_end(self):
        blocks = segment_document("intro\n```python\nx = 1\n\n# still code")
        assert [b.kind for b in blocks] == [BlockKind.TEXT, BlockKind.CODE]
        code = blocks[-1]
        assert not code.terminated
        assert code.content == "x = 1\n\n# still code"

    def test_shorter_fence_does_not_close(self):
        blocks = segment_document("````\n```\ninner\n````")
        assert len(blocks) == 1
        assert blocks[0].content == "```\ninner"

    def test_consecutive_lines_form_one_text_block(self):
        blocks = segment_document("a\nb\nc")
        assert len(blocks) == 1
        assert blocks[0].content == "a\nb\nc"

    def test_blank_lines_become_separators(self):
        blocks = segment_document("a\n\n\nb")
        assert [b.kind for b in blocks] == [
            BlockKind.TEXT,
            BlockKind.SEPARATOR,
            BlockKind.SEPARATOR,
            BlockKind.TEXT,
        ]
        assert not blocks[1].translatable

    def test_segmentation_is_deterministic(self):
        assert segment_document(SAMPLE) == segment_document(SAMPLE)


class TestSplitForLength:

    def test_short_text_is_one_piece(self):
        assert split_for_length("short", 10) == ["short"]

    def test_lines_are_packed_within_budget(self):
        text = "aaaa\nbbbb\ncccc"
        pieces = split_for_length(text, 9)
        assert pieces == ["aaaa\nbbbb", "cccc"]
        assert "\n".join(pieces) == text

    def test_overlong_line_is_kept_whole(self):
        text = "x" * 20 + "\nyy"
        assert split_for_length(text, 10) == ["x" * 20, "yy"]
