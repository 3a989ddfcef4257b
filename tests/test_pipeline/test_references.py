"""Tests for the default reference tokenizer."""

from assetgraph.pipeline.references import extract_references


class TestExtractReferences:
    def test_file_directive(self):
        tokens = extract_references("intro\n::file chapters/one.md\n")
        assert [t.raw for t in tokens] == ["chapters/one.md"]
        assert tokens[0].line == 2

    def test_file_directive_line_range(self):
        tokens = extract_references("::file src/main.py 10-24\n")
        assert tokens[0].start_line == 10
        assert tokens[0].end_line == 24

    def test_single_line(self):
        tokens = extract_references("::file src/main.py 7\n")
        assert tokens[0].start_line == tokens[0].end_line == 7

    def test_markdown_image(self):
        tokens = extract_references("See ![a hero](img/hero.png) here.")
        assert tokens[0].raw == "img/hero.png"
        assert tokens[0].alt == "a hero"

    def test_image_with_title(self):
        tokens = extract_references('![x](img/a.jpg "Caption")')
        assert tokens[0].raw == "img/a.jpg"

    def test_document_order(self):
        text = "![a](a.png)\n::file b.md\n![c](https://cdn.example.com/c.webp)\n"
        assert [t.raw for t in extract_references(text)] == [
            "a.png",
            "b.md",
            "https://cdn.example.com/c.webp",
        ]

    def test_requirement_suffix_kept_raw(self):
        tokens = extract_references("::file needed.md!\n::file maybe.md?\n")
        assert [t.raw for t in tokens] == ["needed.md!", "maybe.md?"]

    def test_empty_image_reference(self):
        tokens = extract_references("![broken]()")
        assert tokens[0].raw == ""

    def test_no_references(self):
        assert extract_references("# Just a heading\n\nplain text") == []

    def test_inline_directive_ignored(self):
        assert extract_references("text ::file not-a-directive.md") == []
