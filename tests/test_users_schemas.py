"""
tests/test_users_schemas.py — User Records & Content Validation Tests
======================================================================
"""

from __future__ import annotations

import pytest
from conftest import draft_data

from tidewatch.constants import Role
from tidewatch.errors import InvalidContent, NotFound
from tidewatch.schemas import (
    CommentDraft,
    GovernmentInfo,
    NgoInfo,
    ReportDraft,
    ReportUpdate,
    parse_role_info,
    validate_payload,
)
from tidewatch.services.user_service import create_user, get_user


def _fields(exc_info) -> set[str]:
    return {e["field"] for e in exc_info.value.errors}


class TestCreateUser:
    def test_citizen_defaults(self, db_engine):
        user = create_user(db_engine, "  Ravi  ")
        stored = get_user(db_engine, user.id)
        assert stored.display_name == "Ravi"
        assert stored.role == "coastal_resident"
        assert stored.role_info["kind"] == "citizen"
        assert (stored.points, stored.level) == (0, 1)

    def test_ngo_requires_organization(self, db_engine):
        with pytest.raises(InvalidContent) as exc_info:
            create_user(db_engine, "Meera", Role.NGO_ADMIN)
        assert "role_info.organization_name" in _fields(exc_info)

    def test_mismatched_kind_rejected(self, db_engine):
        with pytest.raises(InvalidContent) as exc_info:
            create_user(db_engine, "Meera", Role.FISHERMAN, role_info={"kind": "ngo", "organization_name": "X"})
        assert _fields(exc_info) == {"role_info.kind"}

    def test_unknown_role(self, db_engine):
        with pytest.raises(InvalidContent, match="Unknown role"):
            create_user(db_engine, "Meera", "harbour_master")

    def test_blank_name(self, db_engine):
        with pytest.raises(InvalidContent):
            create_user(db_engine, "   ")

    def test_get_missing_user(self, db_engine):
        with pytest.raises(NotFound):
            get_user(db_engine, 12345)


class TestRoleInfo:
    def test_kind_filled_from_role(self):
        info = parse_role_info(Role.GOVERNMENT_OFFICER, {"government_id": "G-7", "department": "Fisheries"})
        assert isinstance(info, GovernmentInfo)
        assert info.kind == "government"

    def test_ngo_expertise_default(self):
        info = parse_role_info(Role.NGO_ADMIN, {"organization_name": "Green Coast"})
        assert isinstance(info, NgoInfo)
        assert info.expertise == []

    def test_negative_experience(self):
        with pytest.raises(InvalidContent):
            parse_role_info(Role.FISHERMAN, {"years_of_experience": -1})


class TestReportDraft:
    def test_valid_draft(self):
        draft = validate_payload(ReportDraft, draft_data(tags=[" roots ", "", "crab"]))
        assert draft.tags == ["roots", "crab"]
        assert len(draft.photos) == 1
        assert draft.coordinates == [79.85, 9.28]

    def test_instance_passes_through(self):
        draft = ReportDraft.model_validate(draft_data())
        assert validate_payload(ReportDraft, draft) is draft

    def test_short_title_and_description(self):
        with pytest.raises(InvalidContent) as exc_info:
            validate_payload(ReportDraft, draft_data(title="abc", description="too short"))
        assert {"title", "description"} <= _fields(exc_info)

    def test_whitespace_is_stripped_before_length_check(self):
        with pytest.raises(InvalidContent) as exc_info:
            validate_payload(ReportDraft, draft_data(title="   ab   "))
        assert "title" in _fields(exc_info)

    @pytest.mark.parametrize("coords", [[79.85], [79.85, 9.28, 1.0], [181.0, 9.28], [79.85, -91.0]])
    def test_bad_coordinates(self, coords):
        with pytest.raises(InvalidContent) as exc_info:
            validate_payload(ReportDraft, draft_data(location={"coordinates": coords}))
        assert "location.coordinates" in _fields(exc_info)

    def test_unknown_category(self):
        with pytest.raises(InvalidContent) as exc_info:
            validate_payload(ReportDraft, draft_data(category="oil_spill"))
        assert "category" in _fields(exc_info)

    def test_too_much_media(self):
        media = [{"url": f"https://media.example.org/{i}.jpg"} for i in range(11)]
        with pytest.raises(InvalidContent):
            validate_payload(ReportDraft, draft_data(media=media))

    def test_non_positive_area(self):
        with pytest.raises(InvalidContent):
            validate_payload(ReportDraft, draft_data(estimated_area={"value": 0, "unit": "hectares"}))


class TestPartialContent:
    def test_update_tracks_explicit_fields(self):
        update = validate_payload(ReportUpdate, {"severity": "high"})
        assert update.model_fields_set == {"severity"}

    def test_empty_comment(self):
        with pytest.raises(InvalidContent):
            validate_payload(CommentDraft, {"body": ""})
