"""
Local HTML preview.

Renders an approximate HTML rendition of the letter from the current
field values without calling the Document Service. The Document Service
output remains the authoritative document; this preview is
presentation-only.

Design guarantees:
- Deterministic template rendering (Jinja2 + StrictUndefined)
- Every field of the template's universe is bound (empty when unset)
- Derived bindings never override field values
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from formdesk.app.registry.registry import field_universe, get_template

TEMPLATE_ROOT = Path(__file__).resolve().parent.parent / "templates"

FRENCH_MONTHS = (
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
)


class PreviewRenderError(RuntimeError):
    """Raised when the preview template cannot be rendered."""


def french_long_date(day: date) -> str:
    return f"{day.day} {FRENCH_MONTHS[day.month - 1]} {day.year}"


def civility_abbreviation(civility: str) -> str:
    """``M.`` / ``Mme`` from a civility, empty when neither applies."""
    lowered = civility.lower()
    if "monsieur" in lowered:
        return "M."
    if "madame" in lowered:
        return "Mme"
    return ""


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATE_ROOT),
        undefined=StrictUndefined,
        autoescape=select_autoescape(["html", "jinja"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def build_render_context(
    template_id: str,
    values: Mapping[str, str],
    today: Optional[date] = None,
) -> Dict[str, Any]:
    template = get_template(template_id)
    if template is None:
        raise PreviewRenderError(f"Template '{template_id}' is not registered")

    context: Dict[str, Any] = {f.id: "" for f in field_universe(template_id)}
    context.update({k: v for k, v in values.items() if k in context})

    bindings = {
        "template_id": template_id,
        "template_title": template.title,
        "genre": civility_abbreviation(context.get("civiliteDestinataire", "")),
        "date": french_long_date(today or date.today()),
    }
    for key, value in bindings.items():
        if key in context:
            raise PreviewRenderError(
                f"Render context collision on key '{key}'. "
                "Bindings must not override field values."
            )
        context[key] = value
    return context


def render_local_preview(
    template_id: str,
    values: Mapping[str, str],
    today: Optional[date] = None,
) -> str:
    context = build_render_context(template_id, values, today=today)
    try:
        template = _environment().get_template("letter.html.jinja")
        return template.render(context)
    except Exception as exc:
        raise PreviewRenderError(f"Preview rendering failed: {exc}") from exc
