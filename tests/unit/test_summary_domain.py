"""Tests for the Summary entity and its metadata variants."""

from types import SimpleNamespace

from summaryscribe.domain.summary import (
    GenericMetadata,
    ManualMetadata,
    SlackMetadata,
    SourceType,
    Summary,
    UploadMetadata,
    parse_metadata,
)


class TestParseMetadata:
    def test_slack_variant(self):
        meta = parse_metadata(
            {"kind": "slack", "channel_name": "general", "participants": ["ana", "bo"]}
        )
        assert isinstance(meta, SlackMetadata)
        assert meta.participants == ["ana", "bo"]

    def test_upload_variant(self):
        meta = parse_metadata({"kind": "upload", "file_size": 1024, "file_type": "txt"})
        assert isinstance(meta, UploadMetadata)
        assert meta.file_size == 1024

    def test_manual_variant(self):
        assert isinstance(parse_metadata({"kind": "manual", "word_count": 12}), ManualMetadata)

    def test_unknown_kind_falls_back_to_generic(self):
        meta = parse_metadata({"kind": "zoom", "meeting_id": "123"})
        assert isinstance(meta, GenericMetadata)
        assert meta.model_dump()["meeting_id"] == "123"

    def test_missing_metadata(self):
        assert isinstance(parse_metadata(None), GenericMetadata)

    def test_extra_fields_kept_on_known_variant(self):
        meta = parse_metadata({"kind": "slack", "thread_ts": "171.1"})
        assert meta.model_dump()["thread_ts"] == "171.1"


class TestDisplayItems:
    def test_labels_and_joined_lists(self):
        meta = parse_metadata(
            {"kind": "slack", "channel_name": "general", "participants": ["ana", "bo"]}
        )
        assert meta.display_items() == [
            ("Channel name", "general"),
            ("Participants", "ana, bo"),
        ]

    def test_skips_kind_and_empty_values(self):
        meta = parse_metadata({"kind": "upload", "file_type": ""})
        assert meta.display_items() == []


class TestSummaryFromModel:
    def test_maps_row_fields(self):
        row = SimpleNamespace(
            id="s-1",
            user_id="u-1",
            title="Standup",
            content="All good.",
            source_type="slack",
            organization_id=None,
            slack_channel="C1",
            file_name=None,
            ai_model="test/model",
            metadata_={"kind": "slack"},
            created_at=None,
        )
        summary = Summary.from_model(row)
        assert summary.source_type is SourceType.SLACK
        assert summary.metadata == {"kind": "slack"}
        assert isinstance(summary.typed_metadata, SlackMetadata)
