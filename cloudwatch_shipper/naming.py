"""Log group and stream naming from Jinja2 expressions.

Each naming slot (``LOG_GROUP``, ``LOG_STREAM``) is looked up in four places,
highest precedence first:

1. the source's own environment (key present, even if empty),
2. the route options (key present),
3. the shipper's process environment (non-empty value),
4. a built-in default supplied by the caller.

The chosen text is rendered as a Jinja2 template against a RenderContext.
Any template error falls back to the built-in default.
"""

import logging
from collections.abc import Mapping

from jinja2 import Environment, StrictUndefined, TemplateError

from cloudwatch_shipper.models import RenderContext

logger = logging.getLogger(__name__)

GROUP_KEY = "LOG_GROUP"
STREAM_KEY = "LOG_STREAM"

_jinja = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=False)


class NamingRules:
    """Selects and renders naming expressions for a source."""

    def __init__(self, options: Mapping[str, str] | None = None,
                 environ: Mapping[str, str] | None = None):
        self._options = dict(options or {})
        self._environ = dict(environ or {})

    def select(self, key: str, context: RenderContext, default: str) -> str:
        """Return the raw expression text for *key* following the precedence chain."""
        if key in context.env:
            return context.env[key]
        if key in self._options:
            return self._options[key]
        if self._environ.get(key):
            return self._environ[key]
        return default

    def render(self, key: str, context: RenderContext, default: str) -> str:
        """Select and render the expression for *key*, or return *default* on failure."""
        text = self.select(key, context, default)
        try:
            rendered = _jinja.from_string(text).render(context.as_template_vars())
        except TemplateError as exc:
            logger.warning("Error rendering %s template %r: %s", key, text, exc)
            return default
        rendered = rendered.strip()
        if not rendered:
            logger.warning("%s template %r rendered empty, using %r", key, text, default)
            return default
        return rendered

    def group_name(self, context: RenderContext) -> str:
        return self.render(GROUP_KEY, context, context.logger_host_name)

    def stream_name(self, context: RenderContext) -> str:
        return self.render(STREAM_KEY, context, context.display_name)
