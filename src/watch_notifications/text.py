"""Text-substitution and HTML-sanitization collaborators.

The renderer only depends on the two protocols defined here. The default
implementations use Jinja2 for placeholder substitution and an allowlist
filter built on the standard library HTML parser for sanitizing email bodies.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from html import escape
from html.parser import HTMLParser
from typing import Any, Protocol
from urllib.parse import urlsplit

from jinja2 import ChainableUndefined, Environment, Template
from jinja2.sandbox import SandboxedEnvironment

from watch_notifications.exceptions import SubstitutionError

logger = logging.getLogger(__name__)


class TextTemplateEngine(Protocol):
    """Resolves placeholders in a template string against a runtime model."""

    def render(self, template: str, model: dict[str, Any]) -> str:
        """Render ``template``; never returns None for a non-None template."""
        ...


class HtmlSanitizer(Protocol):
    """Strips unsafe markup from rendered HTML. Must be idempotent."""

    def sanitize(self, html: str) -> str: ...


# ============================================================================
# Jinja2 engine
# ============================================================================


class JinjaTemplateEngine:
    """Jinja2-backed ``TextTemplateEngine``.

    Templates are user-supplied, so they run in a sandboxed environment
    that refuses access to Python internals. Missing model keys render as
    empty strings rather than failing, so that ``{{ctx.payload.missing}}``
    behaves like mustache. Strings without any template markup are returned
    untouched without being compiled.

    Args:
        environment: Jinja2 environment to compile with. Defaults to a
            ``SandboxedEnvironment``.
        cache_size: Number of compiled templates kept per engine.
    """

    def __init__(self, environment: Environment | None = None, cache_size: int = 256) -> None:
        self.environment = environment or SandboxedEnvironment(
            undefined=ChainableUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._compile = lru_cache(maxsize=cache_size)(self.environment.from_string)

    @staticmethod
    def has_markup(template: str) -> bool:
        return "{{" in template or "{%" in template

    def render(self, template: str, model: dict[str, Any]) -> str:
        """Render a template string.

        Any failure while compiling or evaluating the template, including
        sandbox violations and errors raised by expressions such as a
        division by zero, is reported as ``SubstitutionError``.

        Raises:
            SubstitutionError: If the template cannot be rendered.
        """
        if not self.has_markup(template):
            return template
        try:
            compiled: Template = self._compile(template)
            return compiled.render(model)
        except Exception as e:
            logger.warning(f"Template substitution failed: {type(e).__name__}: {e}")
            raise SubstitutionError(template, f"{type(e).__name__}: {e}") from e


# ============================================================================
# HTML sanitizer
# ============================================================================

ALLOWED_TAGS = frozenset(
    {
        "a", "b", "blockquote", "br", "caption", "code", "col", "colgroup", "dd", "del",
        "div", "dl", "dt", "em", "font", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i",
        "img", "ins", "li", "ol", "p", "pre", "s", "small", "span", "strike", "strong",
        "sub", "sup", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "u", "ul",
    }
)
VOID_TAGS = frozenset({"br", "col", "hr", "img"})
# Content of these tags is dropped along with the tag itself
DROP_CONTENT_TAGS = frozenset({"script", "style", "head", "title", "iframe", "object"})

GLOBAL_ATTRIBUTES = frozenset({"align", "title", "dir", "lang"})
TAG_ATTRIBUTES: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "name", "target"}),
    "img": frozenset({"src", "alt", "width", "height", "border"}),
    "font": frozenset({"color", "face", "size"}),
    "td": frozenset({"colspan", "rowspan", "valign", "width"}),
    "th": frozenset({"colspan", "rowspan", "valign", "width"}),
    "table": frozenset({"border", "cellpadding", "cellspacing", "width"}),
}
URL_ATTRIBUTES = frozenset({"href", "src"})
ALLOWED_URL_SCHEMES = frozenset({"", "http", "https", "mailto", "cid"})


def _safe_url(value: str) -> bool:
    try:
        scheme = urlsplit(value.strip()).scheme.lower()
    except ValueError:
        return False
    return scheme in ALLOWED_URL_SCHEMES


class _AllowlistParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.output: list[str] = []
        self._drop_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._drop_depth += 1
            return
        if self._drop_depth or tag not in ALLOWED_TAGS:
            return
        allowed = GLOBAL_ATTRIBUTES | TAG_ATTRIBUTES.get(tag, frozenset())
        parts = [tag]
        for name, value in attrs:
            if name not in allowed or value is None:
                continue
            if name in URL_ATTRIBUTES and not _safe_url(value):
                continue
            parts.append(f'{name}="{escape(value, quote=True)}"')
        self.output.append(f"<{' '.join(parts)}>")

    def handle_endtag(self, tag: str) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._drop_depth = max(0, self._drop_depth - 1)
            return
        if self._drop_depth or tag not in ALLOWED_TAGS or tag in VOID_TAGS:
            return
        self.output.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        if not self._drop_depth:
            self.output.append(escape(data, quote=False))


class AllowlistHtmlSanitizer:
    """Keeps a fixed set of formatting, table, link and image markup.

    Disallowed tags are removed but their text is kept, except for
    script-like tags whose content is dropped entirely. Attributes outside
    the allowlist, event handlers and non-http(s)/mailto/cid URLs are
    removed. Comments and processing instructions are dropped.
    """

    def sanitize(self, html: str) -> str:
        parser = _AllowlistParser()
        parser.feed(html)
        parser.close()
        return "".join(parser.output)
