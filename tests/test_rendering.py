from jademark.annotations import create_annotation
from jademark.hashing import content_hash
from jademark.rendering import (
    CONTEXT_HASH_ATTR,
    DEFAULT_STYLES,
    iter_anchors,
    locate_selection,
    plain_text,
    render_markdown,
    to_html,
)


def annotate(text, start, end, note="note"):
    return create_annotation(text[start:end], note, content_hash(text), start, end)


class TestRenderMarkdown:

    def test_paragraph_carries_content_hash(self):
        root = render_markdown("Hello *world*")
        paragraph = root.find_all("p")[0]
        assert paragraph.attrs[CONTEXT_HASH_ATTR] == content_hash("Hello world")
        assert paragraph.attrs["class"] == DEFAULT_STYLES["p"]

    def test_headings_one_to_four_are_anchors(self):
        root = render_markdown("# One\n\n## Two\n\n### Three\n\n#### Four\n\n##### Five")
        anchored = [node.tag for node in iter_anchors(root)]
        assert anchored == ["h1", "h2", "h3", "h4"]

    def test_highlight_spans_inline_markup(self):
        annotation = annotate("Hello world", 4, 8)
        root = render_markdown("Hello *world*", [annotation])
        marks = root.find_all("mark")
        assert "".join(mark.text_content() for mark in marks) == "o wo"
        assert all(mark.attrs["data-annotation-id"] == annotation.id for mark in marks)
        assert plain_text(root) == "Hello world"

    def test_annotation_for_other_block_is_inert(self):
        annotation = annotate("Something else", 0, 4)
        root = render_markdown("Hello world", [annotation])
        assert root.find_all("mark") == []

    def test_whitespace_changes_keep_the_anchor(self):
        annotation = annotate("Hello world", 0, 5)
        root = render_markdown("Hello   world", [annotation])
        assert [mark.text_content() for mark in root.find_all("mark")] == ["Hello"]

    def test_inline_code_is_anchored_independently(self):
        block_annotation = annotate("Run ls -la now", 2, 12)
        code_annotation = annotate("ls -la", 0, 2)
        root = render_markdown("Run `ls -la` now", [block_annotation, code_annotation])
        paragraph = root.find_all("p")[0]
        code = paragraph.find_all("code")[0]
        assert code.attrs[CONTEXT_HASH_ATTR] == content_hash("ls -la")
        assert [mark.text_content() for mark in code.find_all("mark")] == ["ls"]
        outer_marks = [
            child.text_content()
            for child in paragraph.children
            if not isinstance(child, str) and child.tag == "mark"
        ]
        assert outer_marks == ["n ", " n"]

    def test_fenced_code_is_anchored_on_its_body(self):
        root = render_markdown("```py\nprint(1)\n```")
        pre = root.children[0]
        code = pre.children[0]
        assert pre.tag == "pre"
        assert code.attrs[CONTEXT_HASH_ATTR] == content_hash("print(1)")
        assert code.attrs["class"].startswith("language-py ")
        assert code.text_content() == "print(1)"

    def test_outermost_anchor_wins_in_loose_lists(self):
        root = render_markdown("- first\n\n- second")
        items = root.find_all("li")
        assert len(items) == 2
        assert items[0].attrs[CONTEXT_HASH_ATTR] == content_hash("first")
        nested = items[0].find_all("p")
        assert nested and CONTEXT_HASH_ATTR not in nested[0].attrs

    def test_tight_list_items_hold_text_directly(self):
        root = render_markdown("- a\n- b")
        assert [item.children for item in root.find_all("li")] == [["a"], ["b"]]
        assert root.find_all("ul")[0].attrs["class"] == DEFAULT_STYLES["list"]

    def test_links_images_and_rules(self):
        root = render_markdown("[site](https://example.com) ![logo](logo.png)\n\n---")
        link = root.find_all("a")[0]
        image = root.find_all("img")[0]
        assert link.attrs["href"] == "https://example.com"
        assert link.attrs["class"] == DEFAULT_STYLES["link"]
        assert image.attrs["src"] == "logo.png"
        assert image.attrs["alt"] == "logo"
        assert root.find_all("hr")

    def test_tables_are_enabled(self):
        root = render_markdown("| a | b |\n|---|---|\n| 1 | 2 |")
        assert root.find_all("table")
        assert [cell.text_content() for cell in root.find_all("td")] == ["1", "2"]

    def test_custom_styles(self):
        root = render_markdown("# Title", styles={"h1": "big"})
        assert root.find_all("h1")[0].attrs["class"] == "big"


class TestToHtml:

    def test_text_is_escaped(self):
        html = to_html(render_markdown("a < b & c"))
        assert "a &lt; b &amp; c" in html
        assert html.startswith("<article>")

    def test_marks_and_attributes(self):
        annotation = annotate("Hello world", 0, 5, note='say "hi"')
        html = to_html(render_markdown("Hello world", [annotation]))
        assert f'data-annotation-id="{annotation.id}"' in html
        assert 'title="say &quot;hi&quot;"' in html
        assert ">Hello</mark> world</p>" in html

    def test_void_elements(self):
        assert "<hr" in to_html(render_markdown("---"))
        assert "</hr>" not in to_html(render_markdown("---"))


class TestLocateSelection:

    def test_selection_inside_paragraph(self):
        root = render_markdown("Hello *world*")
        selection = locate_selection(root, "world")
        assert selection.context_hash == content_hash("Hello world")
        assert (selection.start_offset, selection.end_offset) == (6, 11)

    def test_code_span_owns_its_text(self):
        root = render_markdown("Run `ls -la` now")
        selection = locate_selection(root, "ls")
        assert selection.context_hash == content_hash("ls -la")
        assert selection.start_offset == 0

    def test_occurrence_and_misses(self):
        root = render_markdown("one\n\none")
        assert locate_selection(root, "one", occurrence=1) is not None
        assert locate_selection(root, "one", occurrence=2) is None
        assert locate_selection(root, "missing") is None
        assert locate_selection(root, "") is None
