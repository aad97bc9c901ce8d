"""
Document template registry.

This module defines the set of document templates a user can fill, the
steps the form is split into, and the field metadata of every template.
Each template entry binds together:

- a public template identifier (slug)
- a human-readable title and description
- the template-specific fields (rendered in the content step)

Fields shared by every template (recipient block, reference code and
signatory) are declared once in COMMON_FIELDS.

Templates must be registered here to be addressable by the engine.
"""

from typing import Dict, List, Optional, Tuple

from formdesk.app.schemas.fields import FieldCategory, FieldDefinition, FieldKind
from formdesk.app.schemas.templates import StepDefinition, TemplateDefinition


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

STEPS: Tuple[StepDefinition, ...] = (
    StepDefinition(
        id=FieldCategory.RECIPIENT,
        label="Coordonnées",
        description="Informations du destinataire",
    ),
    StepDefinition(
        id=FieldCategory.CONTENT,
        label="Contenu",
        description="Détails de la demande",
    ),
    StepDefinition(
        id=FieldCategory.SENDER,
        label="Signataire",
        description="Choix du Secrétaire Fédéral",
    ),
)


# ---------------------------------------------------------------------------
# Common fields
# ---------------------------------------------------------------------------

CIVILITY_OPTIONS = ("Monsieur", "Madame")

SIGNATORIES = (
    "Bruno REYNES",
    "Eric KELLER",
    "Edwin LIARD",
    "Gérald CIANNARELLA",
    "Géraldine GOMIZ",
    "Jean-Yves SABOT",
    "Nathalie CAPART",
    "Olivier LEFEBVRE",
    "Paul RIBEIRO",
    "Valentin RODRIGUEZ",
)

COMMON_FIELDS: Tuple[FieldDefinition, ...] = (
    FieldDefinition(
        id="codeDocument",
        label="Numéro du document",
        kind=FieldKind.READONLY_AUTO,
        category=FieldCategory.RECIPIENT,
        placeholder="Généré à partir du signataire",
    ),
    FieldDefinition(
        id="entreprise",
        label="Entreprise",
        required=True,
        category=FieldCategory.RECIPIENT,
        placeholder="Ex: ACME Corp",
    ),
    FieldDefinition(
        id="civiliteDestinataire",
        label="Civilité Destinataire",
        kind=FieldKind.SELECT,
        category=FieldCategory.RECIPIENT,
        options=("Monsieur", "Madame", "Monsieur et Madame"),
    ),
    FieldDefinition(
        id="nomDestinataire",
        label="Nom Destinataire",
        required=True,
        category=FieldCategory.RECIPIENT,
        placeholder="Ex: Dupont",
    ),
    FieldDefinition(
        id="statutDestinataire",
        label="Statut Destinataire",
        category=FieldCategory.RECIPIENT,
        placeholder="Ex: Président, Directeur...",
    ),
    FieldDefinition(
        id="batiment",
        label="Bâtiment",
        category=FieldCategory.RECIPIENT,
        placeholder="Ex: Bâtiment A",
    ),
    FieldDefinition(
        id="adresse",
        label="Adresse",
        category=FieldCategory.RECIPIENT,
        placeholder="Ex: 123 rue de la Paix",
    ),
    FieldDefinition(
        id="cpVille",
        label="Code postal + Ville",
        category=FieldCategory.RECIPIENT,
        placeholder="Ex: 75001 Paris",
    ),
    FieldDefinition(
        id="emailDestinataire",
        label="Email Destinataire",
        kind=FieldKind.EMAIL,
        required=True,
        category=FieldCategory.RECIPIENT,
        placeholder="destinataire@exemple.com",
    ),
    FieldDefinition(
        id="signatureExp",
        label="Secrétaire Fédéral",
        kind=FieldKind.SELECT,
        category=FieldCategory.SENDER,
        options=SIGNATORIES,
    ),
)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

TEMPLATE_REGISTRY: Dict[str, TemplateDefinition] = {
    "designation": TemplateDefinition(
        id="designation",
        title="Lettre de Désignation",
        description="Désignation de délégué syndical",
        fields=(
            FieldDefinition(
                id="numeroCourrier",
                label="Numéro de Recommandé",
                kind=FieldKind.READONLY_AUTO,
                category=FieldCategory.CONTENT,
                placeholder="Généré à partir du signataire",
            ),
            FieldDefinition(
                id="civiliteDelegue",
                label="Civilité Délégué Nommé",
                kind=FieldKind.SELECT,
                category=FieldCategory.CONTENT,
                options=CIVILITY_OPTIONS,
            ),
            FieldDefinition(
                id="nomDelegue",
                label="Nom Délégué Nommé",
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="Ex: Martin Dupont",
            ),
            FieldDefinition(
                id="emailDelegue",
                label="Email Délégué Nommé",
                kind=FieldKind.EMAIL,
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="delegue@exemple.com",
            ),
            FieldDefinition(
                id="civiliteRemplace",
                label="Civilité du Remplacé",
                kind=FieldKind.SELECT,
                category=FieldCategory.CONTENT,
                options=CIVILITY_OPTIONS,
            ),
            FieldDefinition(
                id="nomRemplace",
                label="Nom du Remplacé",
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="Ex: Sophie Bernard",
            ),
        ),
    ),
    "negociation": TemplateDefinition(
        id="negociation",
        title="Mandat de Négociation",
        description="Mandat de négociation collective",
        fields=(
            FieldDefinition(
                id="objet",
                label="Objet du Mandat",
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="Ex: Négociation accord temps de travail",
            ),
            FieldDefinition(
                id="civiliteDelegue",
                label="Civilité du Mandataire",
                kind=FieldKind.SELECT,
                category=FieldCategory.CONTENT,
                options=CIVILITY_OPTIONS,
            ),
            FieldDefinition(
                id="nomDelegue",
                label="Nom du Mandataire",
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="Ex: Jean Durand",
            ),
            FieldDefinition(
                id="emailDelegue",
                label="Email du Mandataire",
                kind=FieldKind.EMAIL,
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="mandataire@exemple.com",
            ),
        ),
    ),
    "custom": TemplateDefinition(
        id="custom",
        title="Document Personnalisé",
        description="Document personnalisé avec contenu libre",
        fields=(
            FieldDefinition(
                id="objet",
                label="Objet du Document",
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="Ex: Demande d'information",
            ),
            FieldDefinition(
                id="texteIa",
                label="Contenu du Document",
                kind=FieldKind.TEXTAREA,
                required=True,
                category=FieldCategory.CONTENT,
                placeholder="Saisissez le contenu du document...",
            ),
        ),
    ),
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_template(template_id: str) -> Optional[TemplateDefinition]:
    return TEMPLATE_REGISTRY.get(template_id)


def field_universe(template_id: str) -> List[FieldDefinition]:
    """
    Return every field known to a template, in schema-declared order.

    Schema order is step order first (recipient, content, sender), then
    declaration order within a step. Template-specific fields shadow a
    common field of the same id. Unknown templates have an empty universe.
    """
    template = TEMPLATE_REGISTRY.get(template_id)
    if template is None:
        return []

    specific_ids = {f.id for f in template.fields}
    candidates = [
        f for f in COMMON_FIELDS if f.id not in specific_ids
    ] + list(template.fields)

    ordered: List[FieldDefinition] = []
    for step in STEPS:
        ordered.extend(f for f in candidates if f.category == step.id)
    return ordered
