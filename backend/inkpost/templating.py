"""
Inkpost: Template Store
=======================

What:  In-memory compiled set of all `*.jinja2` templates, reloadable
       without restarting the process.
How:   A Jinja2 Environment over the templates directory with every template
       compiled eagerly. Rendering holds a read lock; reload holds the write
       lock, compiles a fresh environment and swaps it in only on success.

Concurrency:
    render() may be called from many requests at once (event loop or worker
    threads). reload() excludes all readers while it runs, so a reader sees
    either the complete old set or the complete new set.

    auto_reload is off and the cache is unbounded: once compiled, templates
    (including `{% extends %}` parents) are never re-read from disk except
    through reload().
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateError,
    select_autoescape,
)

from inkpost.exceptions import RenderError

logger = logging.getLogger(__name__)

TEMPLATE_EXTENSION = "jinja2"


class ReadWriteLock:
    """
    Many readers or one writer.

    A waiting writer blocks new readers, so a steady stream of renders
    cannot starve reload().
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TemplateStore:
    """
    Compiled Jinja2 templates behind a reader/writer lock.

    Usage:
        store = TemplateStore(Path("templates"))
        html = store.render("home.jinja2", {"request_id": "abc"})
        store.reload()

    Raises:
        RenderError: on construction or reload if any template fails to
        compile; from render() for unknown names or rendering failures.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self._lock = ReadWriteLock()
        self._templates = self._compile()
        logger.info(
            "Loaded %d templates from %s", len(self._templates), self.directory
        )

    @property
    def names(self) -> List[str]:
        with self._lock.read():
            return sorted(self._templates)

    def _compile(self) -> Dict[str, Template]:
        if not self.directory.is_dir():
            raise RenderError(message=f"{self.directory} directory does not exist")
        env = Environment(
            loader=FileSystemLoader(str(self.directory)),
            autoescape=select_autoescape(
                enabled_extensions=(TEMPLATE_EXTENSION,),
                default_for_string=True,
            ),
            undefined=StrictUndefined,
            auto_reload=False,
            cache_size=-1,
        )
        templates: Dict[str, Template] = {}
        for name in env.list_templates(extensions=[TEMPLATE_EXTENSION]):
            try:
                templates[name] = env.get_template(name)
            except TemplateError as exc:
                raise RenderError(
                    message=f"failed to compile {name}: {exc}", template=name
                ) from exc
        return templates

    def render(self, name: str, context: Optional[Mapping[str, Any]] = None) -> str:
        with self._lock.read():
            template = self._templates.get(name)
            if template is None:
                raise RenderError(message=f"template '{name}' not found", template=name)
            try:
                return template.render(dict(context or {}))
            except TemplateError as exc:
                raise RenderError(
                    message=f"failed to render {name}: {exc}", template=name
                ) from exc

    def reload(self) -> None:
        """Recompile every template; on failure the current set stays in place."""
        with self._lock.write():
            templates = self._compile()
            self._templates = templates
        logger.info("Reloaded %d templates from %s", len(templates), self.directory)
