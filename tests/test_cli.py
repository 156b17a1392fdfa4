from pathlib import Path

import pytest

from jademark.cli import derive_output_path, main, sanitise_language_for_filename

DOCUMENT = "# Title\n\nBody text.\n\n```sh\necho hi\n```\n"


@pytest.fixture
def echo_env(isolated_config, monkeypatch):
    monkeypatch.setenv("JADEMARK_PROVIDER", "echo")
    return isolated_config


@pytest.fixture
def source(echo_env):
    path = echo_env / "notes.md"
    path.write_text(DOCUMENT, encoding="utf-8")
    return path


class TestHelpers:

    def test_sanitise_language(self):
        assert sanitise_language_for_filename("Simplified Chinese") == "Simplified-Chinese"
        assert sanitise_language_for_filename("中文") == "translated"

    def test_derive_output_path(self):
        assert derive_output_path(Path("/docs/readme.txt"), "German") == Path("/docs/readme_German.md")


class TestMain:

    def test_translates_to_derived_path(self, source, capsys):
        assert main([str(source)]) == 0
        output = source.with_name("notes_Simplified-Chinese.md")
        assert output.read_text(encoding="utf-8") == DOCUMENT
        printed = capsys.readouterr().out
        assert "Translation complete." in printed
        assert "echo" in printed

    def test_verbose_reports_progress(self, source, capsys):
        assert main([str(source), "-v"]) == 0
        assert "(100%)." in capsys.readouterr().out

    def test_explicit_output_and_html(self, source, echo_env):
        output = echo_env / "out" / "translated.md"
        preview = echo_env / "preview.html"
        assert main([str(source), "-o", str(output), "--html", str(preview)]) == 0
        assert output.exists()
        html = preview.read_text(encoding="utf-8")
        assert "data-context-hash" in html
        assert "<title>notes.md</title>" in html

    def test_refuses_to_overwrite(self, source, echo_env, capsys):
        output = echo_env / "exists.md"
        output.write_text("keep", encoding="utf-8")
        assert main([str(source), "-o", str(output)]) == 1
        assert output.read_text(encoding="utf-8") == "keep"
        assert "already exists" in capsys.readouterr().out

    def test_force_overwrites(self, source, echo_env):
        output = echo_env / "exists.md"
        output.write_text("old", encoding="utf-8")
        assert main([str(source), "-o", str(output), "-f"]) == 0
        assert output.read_text(encoding="utf-8") == DOCUMENT

    def test_missing_input(self, echo_env, capsys):
        assert main([str(echo_env / "absent.md")]) == 1
        assert "not found" in capsys.readouterr().out

    def test_unsupported_suffix(self, echo_env, capsys):
        path = echo_env / "slides.pptx"
        path.write_text("x", encoding="utf-8")
        assert main([str(path)]) == 1
        assert "Unsupported file type" in capsys.readouterr().out

    def test_configuration_error(self, isolated_config, monkeypatch, capsys):
        monkeypatch.setenv("JADEMARK_PROVIDER", "openai")
        path = isolated_config / "doc.md"
        path.write_text("hi", encoding="utf-8")
        assert main([str(path)]) == 1
        assert "JADEMARK_API_KEY" in capsys.readouterr().out

    def test_provider_override_missing_base_url(self, source, capsys):
        assert main([str(source), "-p", "custom"]) == 1
        assert "Base URL" in capsys.readouterr().out

    def test_assistant_action(self, source, capsys):
        assert main([str(source), "--assist", "summarize"]) == 0
        printed = capsys.readouterr().out
        assert printed.startswith("Summarize the following content in a bulleted list.")
        assert "Context:\n# Title" in printed

    def test_assistant_rejects_free_provider(self, source, capsys):
        assert main([str(source), "--assist", "polish", "-p", "google-free"]) == 1
        assert "cannot run assistant actions" in capsys.readouterr().out

    def test_interrupt_exit_code(self, source, monkeypatch, capsys):
        def interrupted(self):
            raise KeyboardInterrupt

        monkeypatch.setattr("jademark.translator.TranslationRunner.run", interrupted)
        assert main([str(source)]) == 2
        assert "interrupted" in capsys.readouterr().out
