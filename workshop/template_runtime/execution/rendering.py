"""Workspace string rendering with Jinja2 template support.

Naming patterns and file templates may contain Jinja2 template syntax.
This module renders them with the resolved template variables.

Variable names may be dotted (``jira.key``, as produced by trigger variable
mappings).  They are expanded into nested mappings before rendering so the
natural Jinja2 spelling works::

    {{ jira.key }}: {{ jira.summary }} ({{ env }})

Unknown names render as empty strings.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import jinja2

_ENV = jinja2.Environment(autoescape=False, undefined=jinja2.ChainableUndefined)  # noqa: S701


def nest_variables(variables: Mapping[str, Any]) -> dict[str, Any]:
    """Expand dotted keys into nested dicts: ``{"a.b": 1}`` -> ``{"a": {"b": 1}}``.

    Flat keys are placed first; a dotted key never overwrites a non-dict
    value that already occupies one of its parent segments.
    """
    nested: dict[str, Any] = {}
    for key in sorted(variables, key=lambda k: k.count(".")):
        value = variables[key]
        *parents, leaf = key.split(".")
        node = nested
        for part in parents:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                node = None
                break
            node = child
        if node is not None:
            node[leaf] = value
    return nested


def render_string(raw: str, variables: Mapping[str, Any]) -> str:
    """Render *raw* with the resolved variables.

    Parameters
    ----------
    raw:
        Template string (naming pattern, file path or file content).
    variables:
        Resolved template variables; dotted names are nested.

    Returns
    -------
    str
        The rendered string.  If the template contains no Jinja2 syntax, the
        original string is returned unchanged.

    Raises
    ------
    jinja2.TemplateError:
        The template is syntactically invalid.
    """
    # Fast path: skip Jinja2 if no template syntax detected
    if "{{" not in raw and "{%" not in raw:
        return raw

    template_vars: dict[str, Any] = {"date": datetime.now(tz=UTC).strftime("%Y-%m-%d")}
    template_vars.update(nest_variables(variables))

    return _ENV.from_string(raw).render(**template_vars)
