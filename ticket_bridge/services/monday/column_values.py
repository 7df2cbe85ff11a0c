"""Ticket fields → monday.com column values.

Each logical field kind has its own value variant and encoder, matching the
JSON shape the corresponding monday.com column type accepts:

    TextValue          "plain text"                     text / long text
    LinkValue          {"url": ..., "text": ...}         link
    EmailValue         {"email": ..., "text": ...}       email
    StatusIndexValue   {"index": 3}                      status, by index
    StatusLabelValue   {"label": "New"}                  status, by label

build_column_values() applies a link's ColumnMapping; fields that are not
mapped, or whose data is missing, are left out of the payload.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

from ticket_bridge.schemas.link import ColumnMapping, StatusMapping
from ticket_bridge.schemas.ticket import TicketMetadata

DEFAULT_REQUESTER_NAME = "User"
DEFAULT_ACCOUNT_NAME = "Unknown"

_NUMERIC_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class TextValue:
    text: str

    def encode(self) -> str:
        return self.text


@dataclass(frozen=True)
class LinkValue:
    url: str
    text: str

    def encode(self) -> dict[str, str]:
        return {"url": self.url, "text": self.text}


@dataclass(frozen=True)
class EmailValue:
    email: str

    def encode(self) -> dict[str, str]:
        return {"email": self.email, "text": self.email}


@dataclass(frozen=True)
class StatusIndexValue:
    index: int

    def encode(self) -> dict[str, int]:
        return {"index": self.index}


@dataclass(frozen=True)
class StatusLabelValue:
    label: str

    def encode(self) -> dict[str, str]:
        return {"label": self.label}


ColumnValue = Union[TextValue, LinkValue, EmailValue, StatusIndexValue, StatusLabelValue]


def status_value(default_value: str) -> StatusIndexValue | StatusLabelValue:
    """Purely numeric defaults select a status by index, anything else by label."""
    if _NUMERIC_RE.match(default_value):
        return StatusIndexValue(int(default_value))
    return StatusLabelValue(default_value)


def requester_name(metadata: TicketMetadata) -> str:
    return metadata.requester_name or metadata.user_name or DEFAULT_REQUESTER_NAME


def account_name(metadata: TicketMetadata) -> str:
    return metadata.account_name or DEFAULT_ACCOUNT_NAME


def build_item_name(metadata: TicketMetadata) -> str:
    """Item title shown on the board: ``{requester} - {account}``."""
    return f"{requester_name(metadata)} - {account_name(metadata)}"


def collect_column_values(
    mapping: ColumnMapping,
    description: str | None,
    metadata: TicketMetadata,
) -> dict[str, ColumnValue]:
    """Typed column values keyed by remote column id."""
    values: dict[str, ColumnValue] = {}

    if mapping.description and description:
        values[mapping.description] = TextValue(description)

    if mapping.requester_name:
        values[mapping.requester_name] = TextValue(requester_name(metadata))

    if mapping.account_name:
        values[mapping.account_name] = TextValue(account_name(metadata))

    if mapping.source_board_name and metadata.source_board_name and metadata.source_board_url:
        values[mapping.source_board_name] = LinkValue(
            url=metadata.source_board_url,
            text=metadata.source_board_name,
        )

    if mapping.user_email and metadata.user_email:
        values[mapping.user_email] = EmailValue(metadata.user_email)

    status: StatusMapping | None = mapping.status
    if status and status.column_id and status.default_value:
        values[status.column_id] = status_value(status.default_value)

    return values


def build_column_values(
    mapping: ColumnMapping,
    description: str | None,
    metadata: TicketMetadata,
) -> dict[str, Any]:
    """Encoded column values ready for the create_item mutation."""
    return {
        column_id: value.encode()
        for column_id, value in collect_column_values(mapping, description, metadata).items()
    }
