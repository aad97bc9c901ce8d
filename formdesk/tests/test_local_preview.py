from datetime import date

import pytest

from formdesk.app.services.local_preview import (
    PreviewRenderError,
    build_render_context,
    civility_abbreviation,
    french_long_date,
    render_local_preview,
)
from formdesk.tests.fixtures.fake_document_service import COMPLETE_VALUES

TODAY = date(2026, 3, 5)


def test_french_long_date():
    assert french_long_date(TODAY) == "5 mars 2026"
    assert french_long_date(date(2026, 8, 15)) == "15 août 2026"


def test_civility_abbreviation():
    assert civility_abbreviation("Monsieur") == "M."
    assert civility_abbreviation("Madame") == "Mme"
    assert civility_abbreviation("") == ""


def test_every_universe_field_is_bound():
    context = build_render_context("designation", {"entreprise": "ACME"}, today=TODAY)

    assert context["entreprise"] == "ACME"
    assert context["nomRemplace"] == ""
    assert context["date"] == "5 mars 2026"
    assert context["template_title"] == "Lettre de Désignation"


def test_values_outside_the_universe_are_ignored():
    context = build_render_context("custom", {"nomRemplace": "Bernard"}, today=TODAY)

    assert "nomRemplace" not in context


@pytest.mark.parametrize("template_id", ["designation", "negociation", "custom"])
def test_renders_every_template(template_id):
    html = render_local_preview(template_id, COMPLETE_VALUES[template_id], today=TODAY)

    assert "ACME" in html
    assert "Paris, le 5 mars 2026" in html


def test_designation_mentions_replaced_delegate():
    values = dict(COMPLETE_VALUES["designation"], civiliteRemplace="Madame")

    html = render_local_preview("designation", values, today=TODAY)

    assert "En remplacement de Madame Bernard" in html


def test_values_are_html_escaped():
    values = dict(COMPLETE_VALUES["custom"], texteIa="<script>alert(1)</script>")

    html = render_local_preview("custom", values, today=TODAY)

    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_unknown_template_is_rejected():
    with pytest.raises(PreviewRenderError):
        render_local_preview("unknown", {}, today=TODAY)
