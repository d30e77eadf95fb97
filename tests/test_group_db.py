"""Tests for meetup_ledger.data.db — GroupDB (groups and memberships)."""

import sqlite3
from datetime import datetime

import pytest

from meetup_ledger.data.models import Group, MemberRole


def _group(creator_id, handle="crew", gid="g1"):
    return Group(
        id=gid, name="Crew", username=handle, unique_id="AL-1234",
        hcode="NRB", created_by=creator_id, created_at=datetime.now().isoformat(),
    )


class TestGroupDBCreate:
    def test_create_group_enrolls_creator_as_admin(self, group_db):
        group_db.create_group(_group("u1"))
        members = group_db.list_members("g1")
        assert len(members) == 1
        assert members[0].user_id == "u1"
        assert members[0].role is MemberRole.ADMIN

    def test_duplicate_handle_raises_and_writes_nothing(self, group_db):
        group_db.create_group(_group("u1"))
        with pytest.raises(sqlite3.IntegrityError):
            group_db.create_group(_group("u2", gid="g2"))
        assert group_db.get_group("g2") is None
        assert group_db.list_members("g2") == []

    def test_find_by_username(self, group_db):
        group_db.create_group(_group("u1"))
        assert group_db.find_by_username("crew").id == "g1"
        assert group_db.find_by_username("other") is None


class TestGroupDBMembership:
    def test_add_member(self, group_db):
        group_db.create_group(_group("u1"))
        assert group_db.add_member("g1", "u2", MemberRole.MEMBER, "2026-01-01T00:00:00") is True
        member = group_db.get_member("g1", "u2")
        assert member.role is MemberRole.MEMBER

    def test_add_member_twice_keeps_one_row(self, group_db):
        group_db.create_group(_group("u1"))
        group_db.add_member("g1", "u2", MemberRole.MEMBER, "2026-01-01T00:00:00")
        assert group_db.add_member("g1", "u2", MemberRole.MEMBER, "2026-01-02T00:00:00") is False
        assert len([m for m in group_db.list_members("g1") if m.user_id == "u2"]) == 1

    def test_add_existing_admin_does_not_demote(self, group_db):
        group_db.create_group(_group("u1"))
        group_db.add_member("g1", "u1", MemberRole.MEMBER, "2026-01-01T00:00:00")
        assert group_db.get_member("g1", "u1").role is MemberRole.ADMIN

    def test_list_groups_for_user(self, group_db):
        group_db.create_group(_group("u1", handle="one", gid="g1"))
        group_db.create_group(_group("u2", handle="two", gid="g2"))
        group_db.add_member("g2", "u1", MemberRole.MEMBER, "2026-01-01T00:00:00")
        assert {g.id for g in group_db.list_groups_for_user("u1")} == {"g1", "g2"}
        assert [g.id for g in group_db.list_groups_for_user("u2")] == ["g2"]
