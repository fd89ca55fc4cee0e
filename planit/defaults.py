"""
Seed data for a fresh store: the administrator account, the initial team
and the standard form templates.
"""

from datetime import datetime, UTC
from typing import List

from .logging_utils import get_logger
from .models import AppSettings, FieldType, FormField, FormTemplate, Person, Role
from .store import (
    COLL_SETTINGS,
    COLL_TEMPLATES,
    COLL_USERS,
    PROTECTED_ACCOUNT,
    Store,
)

DEFAULT_ADMIN = Person(
    id=PROTECTED_ACCOUNT,
    display_name='Administrateur Général',
    initials='AD',
    role=Role.ADMIN,
    credential_secret='admin',
)

INITIAL_MANAGERS = [
    Person(id='remig', display_name='Rémi Girard', initials='RG', role=Role.MANAGER),
    Person(id='jeans', display_name='Jean Sabatier', initials='JS', role=Role.MANAGER),
]

INITIAL_TECHNICIANS = [
    Person(
        id=f'tech{i:02d}',
        display_name=f'Technicien {i}',
        initials=f'T{i}',
        role=Role.TECHNICIAN,
    )
    for i in range(1, 16)
]


def default_templates() -> List[FormTemplate]:
    created = datetime.now(UTC).isoformat()
    return [
        FormTemplate(
            id='tpl-pv-rec-mounier',
            name='PV de Réception Travaux (Mounier)',
            description='Procès-Verbal de Réception des Travaux Client (Réf: FOR-SSE-014-1-VI)',
            created_at=created,
            fields=[
                FormField('client_name', 'Client', FieldType.TEXT, True),
                FormField('cmd_number', 'Numéro de commande client', FieldType.TEXT, False),
                FormField('job_number', "N° d'Affaires", FieldType.TEXT, True),
                FormField('job_label', "Libellé de l'affaire", FieldType.TEXT, True),
                FormField('rep_client', 'Représenté par (Client)', FieldType.TEXT, True),
                FormField('rep_mounier', 'Représenté par (Mounier)', FieldType.TEXT, True),
                FormField('acceptance_type', 'Décision (Sans réserve / Avec réserves)', FieldType.CHECKBOX, True),
                FormField('date_effet', "Date d'effet", FieldType.DATE, True),
                FormField('reserves_list', 'Liste des réserves (si applicable)', FieldType.TEXTAREA, False),
                FormField('dest_emails', 'Destinataires (Emails séparés par une virgule)', FieldType.TEXT, False),
                FormField('sig_client', 'Signature Client', FieldType.SIGNATURE, True),
                FormField('sig_entrepreneur', 'Signature Entrepreneur (Mounier)', FieldType.SIGNATURE, True),
            ],
        ),
        FormTemplate(
            id='tpl-interv',
            name='Rapport Intervention Standard',
            description='Compte rendu technique de fin de chantier rapide.',
            created_at=created,
            fields=[
                FormField('f1', 'Travaux effectués', FieldType.TEXTAREA, True),
                FormField('f4', 'Temps passé (h)', FieldType.NUMBER, True),
                FormField('f5', 'Signature Client', FieldType.SIGNATURE, True),
            ],
        ),
    ]


def seed_if_empty(store: Store) -> bool:
    """
    Populate users, templates and settings when the store has no users.

    Returns:
        True if seed data was written
    """
    logger = get_logger()
    if store.list_all(COLL_USERS):
        logger.debug("Store already has users, skipping seed")
        return False

    people = [DEFAULT_ADMIN, *INITIAL_MANAGERS, *INITIAL_TECHNICIANS]
    store.upsert_batch(COLL_USERS, [p.to_dict() for p in people])
    if not store.list_all(COLL_TEMPLATES):
        store.upsert_batch(COLL_TEMPLATES, [t.to_dict() for t in default_templates()])
    if not store.list_all(COLL_SETTINGS):
        settings = AppSettings()
        store.upsert(COLL_SETTINGS, settings.id, settings.to_dict())

    logger.info(f"Seeded store with {len(people)} user(s)")
    return True
