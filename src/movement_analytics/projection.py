# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Query projection builder.

Each aggregation function only needs a handful of movement columns. Rather
than reading every column (and resolving every relation in stores where
columns are joins), callers describe what they need with a
``ProjectionOptions`` record and ``requested_fields`` turns it into the
ordered list of columns to request from the ledger store.

The coupling between ``subcontract`` (contract title) and
``subcontract_contact`` (counterparty display name) is enforced here and
nowhere else: asking for the subcontract role always yields both columns.
"""

from __future__ import annotations

from dataclasses import dataclass, field

BASE_FIELDS: tuple[str, ...] = ("amount", "organization_id", "movement_date")

CURRENCY_FIELDS: tuple[str, ...] = ("currency_code", "currency_symbol", "exchange_rate")


@dataclass(frozen=True)
class RoleFields:
    """Which role attribution columns to request."""

    partner: bool = False
    subcontract: bool = False
    personnel: bool = False
    client: bool = False
    member: bool = False

    @classmethod
    def all(cls) -> "RoleFields":
        return cls(
            partner=True, subcontract=True, personnel=True, client=True, member=True
        )


@dataclass(frozen=True)
class ConceptFields:
    """Which classification columns to request."""

    type: bool = False
    category: bool = False
    subcategory: bool = False


@dataclass(frozen=True)
class ProjectionOptions:
    """
    Explicit description of the columns an aggregation needs.

    Attributes
    ----------
    project:
        Request ``project_name``.
    currency:
        Request ``currency_code``, ``currency_symbol`` and ``exchange_rate``.
    wallet:
        Request ``wallet_name``.
    description:
        Request ``description`` (itemized detail).
    indirect, general_cost:
        Request the indirect-cost and general-cost attributions.
    commitment:
        Request ``commitment_id`` (client commitment a payment settles).
    roles:
        Role attribution columns.
    concepts:
        Type / category / subcategory labels.
    """

    project: bool = False
    currency: bool = False
    wallet: bool = False
    description: bool = False
    indirect: bool = False
    general_cost: bool = False
    commitment: bool = False
    roles: RoleFields = field(default_factory=RoleFields)
    concepts: ConceptFields = field(default_factory=ConceptFields)


def requested_fields(options: ProjectionOptions | None = None) -> tuple[str, ...]:
    """
    Return the ordered, duplicate-free column list for ``options``.

    With no options (or all flags off) only the three base columns are
    returned: amount, organization_id, movement_date.
    """
    opts = options or ProjectionOptions()
    fields: list[str] = list(BASE_FIELDS)

    if opts.project:
        fields.append("project_name")
    if opts.currency:
        fields.extend(CURRENCY_FIELDS)

    if opts.concepts.type:
        fields.append("type_name")
    if opts.concepts.category:
        fields.append("category_name")
    if opts.concepts.subcategory:
        fields.append("subcategory_name")

    if opts.wallet:
        fields.append("wallet_name")
    if opts.description:
        fields.append("description")

    if opts.roles.partner:
        fields.append("partner")
    if opts.roles.subcontract:
        fields.extend(("subcontract", "subcontract_contact"))
    if opts.roles.personnel:
        fields.append("personnel")
    if opts.roles.client:
        fields.append("client")
    if opts.roles.member:
        fields.append("member")

    if opts.indirect:
        fields.append("indirect")
    if opts.general_cost:
        fields.append("general_cost")
    if opts.commitment:
        fields.append("commitment_id")

    return tuple(dict.fromkeys(fields))
