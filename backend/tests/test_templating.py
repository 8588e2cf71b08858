"""
Inkpost: Template Store Tests
=============================

What we test:
    ✅ Rendering, autoescaping, unknown names, undefined variables
    ✅ Reload is idempotent and picks up changes
    ✅ A failed reload leaves the previous set in place
    ✅ Concurrent renders are deterministic
    ✅ Readers never observe a half-reloaded set
    ✅ The write lock excludes readers
"""

import shutil
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from inkpost.exceptions import RenderError
from inkpost.templating import ReadWriteLock, TemplateStore

COMMON = {"user": None, "dev_mode": False, "request_id": "req-1"}


def write_versioned_set(directory, version: str) -> None:
    """Two templates that must always be read as a pair."""
    (directory / "base.jinja2").write_text(
        f"{version.upper()}[{{% block body %}}{{% endblock %}}]{version.upper()}"
    )
    (directory / "page.jinja2").write_text(
        f'{{% extends "base.jinja2" %}}{{% block body %}}{version}{{% endblock %}}'
    )


class TestRendering:
    def test_renders_home(self, templates_dir):
        store = TemplateStore(templates_dir)
        html = store.render("home.jinja2", COMMON)
        assert "Welcome to Inkpost" in html
        assert "<!DOCTYPE html>" in html

    def test_lists_every_template(self, templates_dir):
        store = TemplateStore(templates_dir)
        assert {"base.jinja2", "home.jinja2", "500.jinja2"} <= set(store.names)

    def test_nested_directories_are_loaded(self, tmp_path):
        (tmp_path / "posts").mkdir()
        (tmp_path / "posts" / "show.jinja2").write_text("post {{ title }}")
        (tmp_path / "notes.txt").write_text("ignored")
        store = TemplateStore(tmp_path)
        assert store.names == ["posts/show.jinja2"]
        assert store.render("posts/show.jinja2", {"title": "one"}) == "post one"

    def test_autoescape_is_on(self, tmp_path):
        (tmp_path / "echo.jinja2").write_text("{{ value }}")
        store = TemplateStore(tmp_path)
        assert store.render("echo.jinja2", {"value": "<b>hi</b>"}) == "&lt;b&gt;hi&lt;/b&gt;"

    def test_unknown_template_raises(self, templates_dir):
        store = TemplateStore(templates_dir)
        with pytest.raises(RenderError, match="not found") as exc_info:
            store.render("missing.jinja2", COMMON)
        assert exc_info.value.template == "missing.jinja2"

    def test_undefined_variable_raises(self, tmp_path):
        (tmp_path / "strict.jinja2").write_text("{{ nothing_here }}")
        store = TemplateStore(tmp_path)
        with pytest.raises(RenderError, match="strict.jinja2"):
            store.render("strict.jinja2", {})

    def test_syntax_error_fails_construction(self, tmp_path):
        (tmp_path / "broken.jinja2").write_text("{% if %}")
        with pytest.raises(RenderError, match="broken.jinja2"):
            TemplateStore(tmp_path)


class TestReload:
    def test_reload_twice_succeeds(self, templates_dir):
        store = TemplateStore(templates_dir)
        before = store.render("home.jinja2", COMMON)

        store.reload()
        store.reload()

        assert store.render("home.jinja2", COMMON) == before

    def test_reload_picks_up_changes(self, tmp_path):
        template = tmp_path / "greeting.jinja2"
        template.write_text("hello")
        store = TemplateStore(tmp_path)

        template.write_text("goodbye")
        # compiled set is unchanged until reload
        assert store.render("greeting.jinja2") == "hello"

        store.reload()
        assert store.render("greeting.jinja2") == "goodbye"

    def test_reload_adds_new_templates(self, tmp_path):
        (tmp_path / "a.jinja2").write_text("a")
        store = TemplateStore(tmp_path)
        (tmp_path / "b.jinja2").write_text("b")

        store.reload()

        assert store.names == ["a.jinja2", "b.jinja2"]

    def test_failed_reload_keeps_previous_set(self, tmp_path):
        template = tmp_path / "greeting.jinja2"
        template.write_text("hello")
        store = TemplateStore(tmp_path)

        template.write_text("{% if %}")
        with pytest.raises(RenderError):
            store.reload()

        assert store.render("greeting.jinja2") == "hello"

    def test_reload_with_missing_directory_keeps_previous_set(self, tmp_path):
        directory = tmp_path / "templates"
        directory.mkdir()
        (directory / "greeting.jinja2").write_text("hello")
        store = TemplateStore(directory)

        shutil.rmtree(directory)
        with pytest.raises(RenderError, match="does not exist"):
            store.reload()

        assert store.names == ["greeting.jinja2"]
        assert store.render("greeting.jinja2") == "hello"

    def test_missing_directory_fails_construction(self, tmp_path):
        with pytest.raises(RenderError, match="does not exist"):
            TemplateStore(tmp_path / "nowhere")


class TestConcurrency:
    def test_concurrent_renders_are_deterministic(self, templates_dir):
        store = TemplateStore(templates_dir)

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: store.render("home.jinja2", COMMON), range(200)))

        assert len(results) == 200
        assert len(set(results)) == 1

    def test_reload_during_reads_is_atomic(self, tmp_path):
        write_versioned_set(tmp_path, "a")
        store = TemplateStore(tmp_path)
        allowed = {"A[a]A", "B[b]B"}
        seen = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                seen.append(store.render("page.jinja2"))

        readers = [threading.Thread(target=reader) for _ in range(8)]
        for t in readers:
            t.start()
        try:
            for i in range(20):
                write_versioned_set(tmp_path, "b" if i % 2 == 0 else "a")
                store.reload()
                time.sleep(0.005)
        finally:
            stop.set()
            for t in readers:
                t.join(timeout=5)

        assert seen
        assert set(seen) <= allowed


class TestReadWriteLock:
    def test_readers_share_the_lock(self):
        lock = ReadWriteLock()
        inside = threading.Event()

        def second_reader():
            with lock.read():
                inside.set()

        with lock.read():
            t = threading.Thread(target=second_reader)
            t.start()
            assert inside.wait(timeout=2)
        t.join(timeout=2)

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        entered = threading.Event()

        def writer():
            with lock.write():
                entered.set()

        with lock.read():
            t = threading.Thread(target=writer)
            t.start()
            assert not entered.wait(timeout=0.1)

        t.join(timeout=2)
        assert entered.is_set()
