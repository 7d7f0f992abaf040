#!/usr/bin/env python3
"""
Backend tests for Waymend

Exercises logging, mirror file access, the controller passes end to end and
the command-line entry point against small mirrors built in temp directories.
"""

import logging
import os
import sys
import tempfile
from pathlib import Path

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from waymend.cli.main import EXIT_BAD_ROOT, EXIT_BROKEN_LINKS, EXIT_NO_PAGES, EXIT_OK, log_error_summary, main
from waymend.core.controller import NoPagesFoundError, RunConfig, WaymendController
from waymend.core.logger import initialize_logging
from waymend.utils.file_manager import FileManager
from waymend.utils.manifest import Manifest


SITE = "help.example.app"

INDEX_HTML = '''<!DOCTYPE html>
<!-- saved from url=(0025)https://help.example.app/ -->
<html lang="en" style="--wm-toolbar-height: 67px;">
<head>
<script src="//archive.org/includes/athena.js" type="text/javascript"></script>
<script type="text/javascript" src="https://web-static.archive.org/_static/js/wombat.js"></script>
<!-- End Wayback Rewrite JS Include -->
<title>Help</title>
<link rel="stylesheet" href="index_files/site.css">
</head>
<body>
<!-- BEGIN WAYBACK TOOLBAR INSERT -->
<div id="wm-ipp-base"><div id="wm-ipp-print">The Wayback Machine</div></div>
<!-- END WAYBACK TOOLBAR INSERT -->
<h1>Help</h1>
<p>Start with the <a href="https://help.example.app/Docs/Guide/">guide</a>
or the <a href="https://web.archive.org/web/20240101000000/https://help.example.app/faq">FAQ</a>.</p>
<img src="https://web.archive.org/web/20240101000000im_/https://cdn.example.com/logo.png">
<a href="https://web.archive.org/web/20240101000000/https://github.com/example">GitHub</a>
</body>
</html>
'''

GUIDE_HTML = '''<!DOCTYPE html>
<!-- saved from url=(0036)https://help.example.app/docs/guide/ -->
<html><head><title>Guide</title></head>
<body>
<h1 id="section">Guide</h1>
<p><a href="/">Home</a> <a href="#section">Top</a> <a href="/docs/unknown">Unknown</a></p>
</body></html>
'''

FAQ_HTML = '''<!DOCTYPE html>
<!-- saved from url=(0027)https://help.example.app/FAQ -->
<html><head><title>FAQ</title></head>
<body><p><a href="https://help.example.app/docs/guide#section">Guide</a></p></body></html>
'''

PLAIN_HTML = '<html><body><p>Nothing archived here.</p></body></html>\n'


def write(root: str, rel: str, content: str) -> str:
    path = os.path.join(root, *rel.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    return path


def read(root: str, rel: str) -> str:
    with open(os.path.join(root, *rel.split("/")), "r", encoding="utf-8", newline="") as f:
        return f.read()


def build_mirror(root: str) -> None:
    write(root, "index.html", INDEX_HTML)
    write(root, "index_files/site.css", "body { color: black; }")
    write(root, "docs/guide.html", GUIDE_HTML)
    write(root, "faq.html", FAQ_HTML)
    write(root, "about/plain.html", PLAIN_HTML)


def reset_logging() -> None:
    logger = logging.getLogger("waymend")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_file_manager_walk_and_write_if_changed():
    with tempfile.TemporaryDirectory() as tmp:
        build_mirror(tmp)
        files = FileManager(tmp)

        assert [files.relative_path(p) for p in files.html_files()] == [
            "faq.html", "index.html", "about/plain.html", "docs/guide.html",
        ]
        assert [files.relative_path(p) for p in files.css_files()] == ["index_files/site.css"]
        assert files.get_mirror_stats()['html_files'] == 4

        path = os.path.join(tmp, "faq.html")
        mtime = os.path.getmtime(path)
        assert not files.write_if_changed(path, FAQ_HTML, FAQ_HTML)
        assert os.path.getmtime(path) == mtime
        assert files.write_if_changed(path, FAQ_HTML, "changed")
        assert read(tmp, "faq.html") == "changed"


def test_file_manager_round_trips_invalid_utf8():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "latin1.html")
        with open(path, "wb") as f:
            f.write(b"<p>caf\xe9</p>")
        files = FileManager(tmp)
        text = files.read_text(path)
        assert files.write_if_changed(path, text, text.replace("<p>", "<p class='x'>"))
        with open(path, "rb") as f:
            assert f.read() == b"<p class='x'>caf\xe9</p>"


def test_clean_pass_end_to_end():
    with tempfile.TemporaryDirectory() as tmp:
        build_mirror(tmp)
        controller = WaymendController(RunConfig(root=tmp, site_host=SITE))
        report = controller.run_clean()

        assert report.scanned == 4
        assert report.modified == 3
        assert report.mapping_size == 3
        assert report.links_rewritten == 4

        index = read(tmp, "index.html")
        for marker in ["saved from url", "athena.js", "wombat.js", "wm-ipp", "WAYBACK TOOLBAR",
                       "--wm-toolbar-height", "web.archive.org"]:
            assert marker not in index, marker
        assert '<a href="docs/guide.html">guide</a>' in index
        assert '<a href="faq.html">FAQ</a>' in index
        assert '<img src="https://cdn.example.com/logo.png">' in index
        assert '<a href="https://github.com/example">GitHub</a>' in index
        assert '<link rel="stylesheet" href="index_files/site.css">' in index

        guide = read(tmp, "docs/guide.html")
        assert '<a href="../index.html">Home</a>' in guide
        assert '<a href="#section">Top</a>' in guide
        assert '<a href="/docs/unknown">Unknown</a>' in guide

        assert '<a href="docs/guide.html#section">Guide</a>' in read(tmp, "faq.html")
        assert read(tmp, "about/plain.html") == PLAIN_HTML


def test_clean_pass_is_idempotent():
    with tempfile.TemporaryDirectory() as tmp:
        build_mirror(tmp)
        WaymendController(RunConfig(root=tmp, site_host=SITE)).run_clean()
        first = {rel: read(tmp, rel) for rel in ["index.html", "docs/guide.html", "faq.html"]}

        report = WaymendController(RunConfig(root=tmp, site_host=SITE)).run_clean()
        assert report.modified == 0
        assert report.mapping_size == 0
        for rel, content in first.items():
            assert read(tmp, rel) == content


def test_clean_pass_concurrent_matches_serial():
    with tempfile.TemporaryDirectory() as serial, tempfile.TemporaryDirectory() as parallel:
        build_mirror(serial)
        build_mirror(parallel)
        WaymendController(RunConfig(root=serial, site_host=SITE)).run_clean()
        report = WaymendController(RunConfig(root=parallel, site_host=SITE, concurrency=4)).run_clean()

        assert report.modified == 3
        for rel in ["index.html", "docs/guide.html", "faq.html", "about/plain.html"]:
            assert read(serial, rel) == read(parallel, rel)


def test_clean_pass_without_pages_fails():
    with tempfile.TemporaryDirectory() as tmp:
        write(tmp, "only.css", "body {}")
        controller = WaymendController(RunConfig(root=tmp, site_host=SITE))
        try:
            controller.run_clean()
        except NoPagesFoundError:
            pass
        else:
            raise AssertionError("expected NoPagesFoundError")


def test_clean_pass_with_empty_mapping_still_sanitizes():
    with tempfile.TemporaryDirectory() as tmp:
        write(tmp, "index.html", INDEX_HTML.replace("help.example.app", "elsewhere.example.org"))
        report = WaymendController(RunConfig(root=tmp, site_host=SITE)).run_clean()
        assert report.mapping_size == 0
        assert report.links_rewritten == 0
        assert report.modified == 1
        assert "wm-ipp" not in read(tmp, "index.html")


def test_manifest_and_audit():
    with tempfile.TemporaryDirectory() as tmp, tempfile.TemporaryDirectory() as out:
        build_mirror(tmp)
        # A paragraph inside the toolbar insert is lost when the insert is removed
        write(tmp, "news.html", INDEX_HTML.replace(
            '<div id="wm-ipp-base">', '<p>inside toolbar</p><div id="wm-ipp-base">'))
        manifest_path = os.path.join(out, "run.jsonl")
        controller = WaymendController(RunConfig(root=tmp, site_host=SITE, audit=True,
                                                 manifest_path=manifest_path))
        controller.run_clean()

        counts = Manifest(manifest_path).count_by_status('clean')
        assert counts == {'rewritten': 4, 'unchanged': 1, 'audit_warning': 1}
        assert len(controller.error_tracker.warnings) == 1
        assert controller.error_tracker.warnings[0]['path'] == "news.html"


class ReadOnlyFaqFileManager(FileManager):
    """Refuses to write changes to faq.html."""

    def write_if_changed(self, path, original, updated):
        if os.path.basename(path) == "faq.html" and updated != original:
            raise PermissionError(13, "Permission denied", path)
        return super().write_if_changed(path, original, updated)


def test_clean_pass_continues_after_write_failure():
    with tempfile.TemporaryDirectory() as tmp, tempfile.TemporaryDirectory() as out:
        build_mirror(tmp)
        manifest_path = os.path.join(out, "run.jsonl")
        controller = WaymendController(RunConfig(root=tmp, site_host=SITE, manifest_path=manifest_path))
        controller.files = ReadOnlyFaqFileManager(tmp)
        report = controller.run_clean()

        assert report.failed == 1
        assert report.modified == 2
        assert read(tmp, "faq.html") == FAQ_HTML
        assert "wm-ipp" not in read(tmp, "index.html")
        assert Manifest(manifest_path).count_by_status('clean') == {'rewritten': 2, 'unchanged': 1, 'failed': 1}

        summary = controller.error_tracker.get_error_summary()
        assert summary['total_errors'] == 1
        assert summary['error_types'] == {'PermissionError': 1}
        assert summary['failed_paths'] == ["faq.html"]

        try:
            initialize_logging(out)
            log_error_summary(controller)
        finally:
            reset_logging()
        with open(os.path.join(out, "waymend.log"), "r", encoding="utf-8") as f:
            log_text = f.read()
        assert "Finished with 1 errors and 0 warnings." in log_text
        assert "failed: faq.html" in log_text


def test_prune_and_verify_through_controller():
    with tempfile.TemporaryDirectory() as tmp:
        build_mirror(tmp)
        write(tmp, "index_files/stale.png", "png")
        controller = WaymendController(RunConfig(root=tmp, site_host=SITE))
        controller.run_clean()

        report = controller.run_prune()
        assert [os.path.basename(p) for p in report.candidates] == ["stale.png"]
        assert os.path.exists(os.path.join(tmp, "index_files", "stale.png"))

        applied = WaymendController(RunConfig(root=tmp, site_host=SITE, apply=True)).run_prune()
        assert len(applied.deleted) == 1
        assert not os.path.exists(os.path.join(tmp, "index_files", "stale.png"))

        assert controller.run_verify() == []


def test_cli_exit_statuses():
    with tempfile.TemporaryDirectory() as tmp, tempfile.TemporaryDirectory() as logs:
        try:
            build_mirror(tmp)
            base = ["--log-dir", logs]
            assert main(base + ["clean", tmp, "--site-host", SITE]) == EXIT_OK
            assert main(base + ["verify", tmp]) == EXIT_OK
            assert main(base + ["prune", tmp]) == EXIT_OK

            write(tmp, "broken.html", '<a href="nowhere.html">x</a>')
            assert main(base + ["verify", tmp]) == EXIT_BROKEN_LINKS

            empty = os.path.join(tmp, "index_files")
            assert main(base + ["clean", empty, "--site-host", SITE]) == EXIT_NO_PAGES
            assert main(base + ["clean", os.path.join(tmp, "absent"), "--site-host", SITE]) == EXIT_BAD_ROOT
            assert os.path.exists(os.path.join(logs, "waymend.log"))
        finally:
            reset_logging()


if __name__ == "__main__":
    passed = 0
    tests = [(name, func) for name, func in list(globals().items())
             if name.startswith("test_") and callable(func)]
    for name, func in tests:
        func()
        passed += 1
        print(f"✅ {name} PASSED")
    print(f"TEST RESULTS: {passed}/{len(tests)} tests passed")
