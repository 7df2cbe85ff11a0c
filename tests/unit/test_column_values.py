"""Unit tests for ticket → column value mapping.

Tests:
  - item name: requester and account with placeholder fallbacks
  - status: numeric default → {index}, anything else → {label}
  - link value only when both url and text are known
  - email value shape
  - unmapped fields and missing data are omitted
"""

from __future__ import annotations

from ticket_bridge.schemas.link import ColumnMapping, StatusMapping
from ticket_bridge.schemas.ticket import TicketMetadata
from ticket_bridge.services.monday.column_values import (
    LinkValue,
    StatusIndexValue,
    StatusLabelValue,
    build_column_values,
    build_item_name,
    collect_column_values,
    status_value,
)

FULL_MAPPING = ColumnMapping(
    description="long_text",
    video="files",
    requester_name="text_requester",
    account_name="text_account",
    source_board_name="link_source",
    user_email="email_user",
    status=StatusMapping(column_id="status", default_value="New"),
)


class TestItemName:

    def test_requester_and_account(self) -> None:
        metadata = TicketMetadata(requester_name="Noa", account_name="Acme")
        assert build_item_name(metadata) == "Noa - Acme"

    def test_user_name_stands_in_for_requester(self) -> None:
        metadata = TicketMetadata(user_name="noa.k", account_name="Acme")
        assert build_item_name(metadata) == "noa.k - Acme"

    def test_placeholders(self) -> None:
        assert build_item_name(TicketMetadata()) == "User - Unknown"


class TestStatusValue:

    def test_numeric_default_selects_index(self) -> None:
        assert status_value("3") == StatusIndexValue(3)
        assert status_value("3").encode() == {"index": 3}

    def test_label_default(self) -> None:
        assert status_value("New") == StatusLabelValue("New")
        assert status_value("New").encode() == {"label": "New"}

    def test_mixed_default_is_a_label(self) -> None:
        assert status_value("3a") == StatusLabelValue("3a")


class TestBuildColumnValues:

    def test_full_mapping(self) -> None:
        metadata = TicketMetadata(
            requester_name="Noa",
            account_name="Acme",
            source_board_name="Roadmap",
            source_board_url="https://acme.monday.com/boards/1",
            user_email="noa@acme.io",
        )

        values = build_column_values(FULL_MAPPING, "It crashes", metadata)

        assert values == {
            "long_text": "It crashes",
            "text_requester": "Noa",
            "text_account": "Acme",
            "link_source": {"url": "https://acme.monday.com/boards/1", "text": "Roadmap"},
            "email_user": {"email": "noa@acme.io", "text": "noa@acme.io"},
            "status": {"label": "New"},
        }

    def test_video_column_is_never_a_value(self) -> None:
        values = build_column_values(FULL_MAPPING, "x", TicketMetadata())
        assert "files" not in values

    def test_link_needs_url_and_text(self) -> None:
        metadata = TicketMetadata(source_board_name="Roadmap")

        values = collect_column_values(FULL_MAPPING, "x", metadata)

        assert "link_source" not in values
        assert not any(isinstance(v, LinkValue) for v in values.values())

    def test_missing_email_and_description_are_omitted(self) -> None:
        values = build_column_values(FULL_MAPPING, None, TicketMetadata())

        assert "email_user" not in values
        assert "long_text" not in values
        # Names always have a placeholder
        assert values["text_requester"] == "User"
        assert values["text_account"] == "Unknown"

    def test_unmapped_fields_are_omitted(self) -> None:
        mapping = ColumnMapping(description="long_text", video="files")
        metadata = TicketMetadata(requester_name="Noa", user_email="noa@acme.io")

        assert build_column_values(mapping, "bug", metadata) == {"long_text": "bug"}

    def test_status_without_default_is_omitted(self) -> None:
        mapping = ColumnMapping(status=StatusMapping(column_id="status", default_value=""))
        assert build_column_values(mapping, None, TicketMetadata()) == {}
