"""Jinja2 rendering with explicit TODO markers for unresolved placeholders."""
from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Set

from jinja2 import Environment, StrictUndefined, meta

from ..common.models import TODO, todo_marker


@dataclass
class RenderedTemplate:
    text: str
    unresolved: List[str] = field(default_factory=list)


def _is_unresolved(value: Any) -> bool:
    return value is None or (isinstance(value, str) and (value == TODO or not value.strip()))


class PlaceholderRenderer:
    """Render templates whose top-level variables are their declared placeholders.

    Every placeholder the template references is looked up in the supplied
    values. Missing, empty or ``TODO`` scalars are rendered as ``TODO(<name>)``
    and reported; nothing is ever rendered empty or guessed.
    """

    def __init__(self) -> None:
        self.env = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["shquote"] = shlex.quote

    def declared(self, source: str) -> Set[str]:
        """Names of the placeholders a template declares."""
        return set(meta.find_undeclared_variables(self.env.parse(source)))

    def render(self, source: str, values: Mapping[str, Any]) -> RenderedTemplate:
        context = {}
        unresolved: List[str] = []
        for name in sorted(self.declared(source)):
            value = values.get(name)
            if _is_unresolved(value):
                context[name] = todo_marker(name)
                unresolved.append(name)
            else:
                context[name] = value
        text = self.env.from_string(source).render(**context)
        return RenderedTemplate(text=text, unresolved=unresolved)
