"""Tests for the command line interface."""

import json

import pytest

pytest.importorskip("prepper")

from babelblocks import cli  # noqa: E402


def run(argv):
    return cli.main(argv)


class TestHelpers:
    def test_sanitise_language(self):
        assert cli.sanitise_language_for_filename(" pt BR ") == "pt-BR"
        assert cli.sanitise_language_for_filename("日本") == "translated"

    def test_derive_output_path(self, tmp_path):
        source = tmp_path / "post.json"
        assert cli.derive_output_path(source, "es") == tmp_path / "post_es.json"

    def test_load_json_document(self, tmp_path):
        path = tmp_path / "post.json"
        path.write_text(
            json.dumps({"title": "T", "content": "<p>C</p>", "meta": ["not", "a", "dict"]}),
            encoding="utf-8",
        )
        document = cli.load_document(path)
        assert document.title == "T"
        assert document.content == "<p>C</p>"
        assert document.excerpt == ""
        assert document.meta == {}

    def test_load_markup_document(self, tmp_path):
        path = tmp_path / "post.html"
        path.write_text("<p>Only content</p>", encoding="utf-8")
        document = cli.load_document(path)
        assert document.title == ""
        assert document.content == "<p>Only content</p>"


class TestMain:
    def test_echo_json_round_trip(self, tmp_path, block_document, capsys):
        source = tmp_path / "post.json"
        source.write_text(
            json.dumps(
                {
                    "title": "Welcome",
                    "content": block_document,
                    "excerpt": "A short summary",
                    "meta": {"_excerpt": "Meta summary", "_views": 3},
                }
            ),
            encoding="utf-8",
        )
        exit_code = run([str(source), "-t", "es", "-p", "echo", "--meta-fields", "_excerpt"])
        assert exit_code == 0

        written = json.loads((tmp_path / "post_es.json").read_text(encoding="utf-8"))
        assert written["language"] == "es"
        assert written["title"] == "Welcome"
        assert written["content"] == block_document
        assert written["excerpt"] == "A short summary"
        assert written["meta"] == {"_excerpt": "Meta summary"}
        output = capsys.readouterr().out
        assert "Output written to" in output
        assert "Translation complete." in output

    def test_markup_file_is_written_raw(self, tmp_path):
        source = tmp_path / "page.html"
        source.write_text("<p>Hello world</p>\n", encoding="utf-8")
        target = tmp_path / "out" / "page.html"
        exit_code = run([str(source), "-t", "fr", "-p", "echo", "-o", str(target)])
        assert exit_code == 0
        assert target.read_text(encoding="utf-8") == "<p>Hello world</p>\n"

    def test_existing_output_needs_force(self, tmp_path, capsys):
        source = tmp_path / "page.html"
        source.write_text("<p>Hello world</p>", encoding="utf-8")
        (tmp_path / "page_fr.html").write_text("old", encoding="utf-8")
        assert run([str(source), "-t", "fr", "-p", "echo"]) == 1
        assert "already exists" in capsys.readouterr().out
        assert run([str(source), "-t", "fr", "-p", "echo", "--force"]) == 0

    def test_missing_input(self, tmp_path, capsys):
        assert run([str(tmp_path / "nope.html"), "-t", "fr", "-p", "echo"]) == 1
        assert "Input file not found" in capsys.readouterr().out

    def test_invalid_json(self, tmp_path, capsys):
        source = tmp_path / "broken.json"
        source.write_text("{not json", encoding="utf-8")
        assert run([str(source), "-t", "fr", "-p", "echo"]) == 1
        assert "Input JSON could not be read" in capsys.readouterr().out

    def test_target_language_is_required(self, tmp_path):
        source = tmp_path / "page.html"
        source.write_text("<p>Hello</p>", encoding="utf-8")
        with pytest.raises(SystemExit):
            run([str(source), "-p", "echo"])

    def test_check_connection_with_echo(self, capsys):
        assert run(["--check-connection", "-p", "echo"]) == 0
        assert "Connection successful" in capsys.readouterr().out

    def test_runtime_overrides(self):
        args = cli.build_parser().parse_args(
            ["doc.html", "-t", "fr", "-p", "echo", "--strategy", "chunk",
             "--chunk-threshold", "900", "--workers", "3"]
        )
        client, config = cli.resolve_runtime(args)
        assert client.name == "echo"
        assert config.strategy.value == "chunk"
        assert config.chunk_threshold == 900
        assert config.max_workers == 3
