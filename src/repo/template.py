"""
Strict template compilation and rendering.

Templates are Jinja2 with strict undefined handling: a key that is missing from the
render data is an error, never an empty string. Field references may also be
written with a leading dot (``{{ .who }}``), which is the same as ``{{ who }}``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Union

from jinja2 import Environment, StrictUndefined, Template, TemplateSyntaxError, UndefinedError
from jinja2.ext import Extension
from jinja2.utils import missing

from .errors import MissingKeyError, RenderError, TemplateParseError

_TAG_RE = re.compile(r"(\{\{-?|\{%-?)(.*?)(-?\}\}|-?%\})", re.DOTALL)
# String literals are matched first and kept as they are.
_DOT_FIELD_RE = re.compile(
    r"""("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')|(?<![\w\)\]\}'"])\.(?=[A-Za-z_])""",
    re.DOTALL,
)


class DotFieldExtension(Extension):
    """Rewrite leading-dot field references inside tags to plain names."""

    def preprocess(self, source: str, name, filename=None) -> str:
        return _TAG_RE.sub(self._strip_tag, source)

    @staticmethod
    def _strip_tag(match: re.Match) -> str:
        start, body, end = match.groups()
        return start + _DOT_FIELD_RE.sub(lambda m: m.group(1) or "", body) + end


class UndefinedKeyError(UndefinedError):
    """A top-level name that is not in the render data."""


class DataUndefined(StrictUndefined):
    """StrictUndefined that tells a missing data key apart from a bad attribute or item."""

    __slots__ = ()

    def __init__(self, hint=None, obj=missing, name=None, exc=UndefinedError):
        if obj is missing and hint is None:
            exc = UndefinedKeyError
        super().__init__(hint=hint, obj=obj, name=name, exc=exc)


_env = Environment(
    autoescape=False,
    undefined=DataUndefined,
    keep_trailing_newline=True,
    extensions=[DotFieldExtension],
)


@dataclass(frozen=True, eq=False)
class CompiledTemplate:
    name: str
    template: Template

    def render(self, data: Mapping[str, str]) -> bytes:
        try:
            text = self.template.render(dict(data))
        except UndefinedKeyError as e:
            raise MissingKeyError(f"{self.name}: {e.message}") from e
        except Exception as e:  # noqa: BLE001
            raise RenderError(f"{self.name}: {e}") from e
        return text.encode("utf-8")


def compile_template(name: str, raw: Union[bytes, str]) -> CompiledTemplate:
    """Parse `raw` into a template called `name`. Raises TemplateParseError."""
    if isinstance(raw, bytes):
        try:
            source = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TemplateParseError(f"{name}: template is not valid UTF-8 ({e.reason})") from e
    else:
        source = raw

    try:
        code = _env.compile(source, name=name)
    except TemplateSyntaxError as e:
        raise TemplateParseError(f"{name}: {e.message} (line {e.lineno})") from e

    template = _env.template_class.from_code(_env, code, _env.make_globals(None))
    return CompiledTemplate(name=name, template=template)


def render(template: CompiledTemplate, data: Mapping[str, str]) -> bytes:
    return template.render(data)
