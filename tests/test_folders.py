"""Tests for FolderService."""

from __future__ import annotations

import pytest

from promptbyme.core.errors import AuthorizationError, ValidationError
from promptbyme.core.folders import FolderService


@pytest.fixture
def service(mock_db) -> FolderService:
    return FolderService(mock_db)


class TestCreate:
    def test_positions_increment_among_siblings(self, service, user_id):
        a = service.create_folder(user_id, "A")
        b = service.create_folder(user_id, "B")
        child = service.create_folder(user_id, "Child", parent_id=a["id"])
        assert (a["position"], b["position"], child["position"]) == (0, 1, 0)
        assert a["color"] == "#6366f1"
        assert a["icon"] == "folder"

    def test_blank_name_rejected(self, service, user_id):
        with pytest.raises(ValidationError):
            service.create_folder(user_id, "   ")

    def test_parent_must_be_owned(self, service, user_id, other_user_id):
        theirs = service.create_folder(other_user_id, "Theirs")
        with pytest.raises(AuthorizationError):
            service.create_folder(user_id, "Mine", parent_id=theirs["id"])


class TestDelete:
    def test_contents_move_to_root(self, service, user_id, make_prompt, mock_db):
        parent = service.create_folder(user_id, "Parent")
        child = service.create_folder(user_id, "Child", parent_id=parent["id"])
        prompt = make_prompt("x", folder_id=parent["id"])

        service.delete_folder(parent["id"], user_id)

        assert mock_db.select("folders", filters={"id": parent["id"]}) == []
        assert mock_db.select("folders", filters={"id": child["id"]})[0]["parent_id"] is None
        assert mock_db.select("prompts", filters={"id": prompt["id"]})[0]["folder_id"] is None


class TestTree:
    def test_build_tree_nests_and_sorts(self, service, user_id):
        b = service.create_folder(user_id, "B")
        a = service.create_folder(user_id, "A")
        service.create_folder(user_id, "A2", parent_id=a["id"])
        service.create_folder(user_id, "A1", parent_id=a["id"])
        service.move_folder(a["id"], user_id, None, 0)

        tree = service.build_tree(service.list_folders(user_id))
        assert [n["name"] for n in tree] == ["A", "B"]
        assert [n["name"] for n in tree[0]["children"]] == ["A2", "A1"]
        assert tree[1]["id"] == b["id"]

    def test_orphans_become_roots(self):
        tree = FolderService.build_tree(
            [{"id": "x", "name": "X", "parent_id": "gone", "position": 0}]
        )
        assert [n["id"] for n in tree] == ["x"]

    def test_prompt_counts(self, service, user_id, make_prompt):
        folder = service.create_folder(user_id, "Work")
        make_prompt("a", folder_id=folder["id"])
        make_prompt("b", folder_id=folder["id"])
        make_prompt("c")
        assert service.list_folders(user_id)[0]["prompt_count"] == 2

    def test_folder_path(self, service, user_id):
        a = service.create_folder(user_id, "A")
        b = service.create_folder(user_id, "B", parent_id=a["id"])
        c = service.create_folder(user_id, "C", parent_id=b["id"])
        assert service.folder_path(c["id"]) == "A/B/C"


class TestMove:
    def test_cannot_move_into_descendant(self, service, user_id):
        a = service.create_folder(user_id, "A")
        b = service.create_folder(user_id, "B", parent_id=a["id"])
        with pytest.raises(ValidationError):
            service.move_folder(a["id"], user_id, b["id"])
        with pytest.raises(ValidationError):
            service.move_folder(a["id"], user_id, a["id"])

    def test_move_reparents_and_reindexes(self, service, user_id, mock_db):
        a = service.create_folder(user_id, "A")
        b = service.create_folder(user_id, "B")
        c = service.create_folder(user_id, "C")
        moved = service.move_folder(c["id"], user_id, a["id"])
        assert moved["parent_id"] == a["id"]
        assert moved["position"] == 0
        # Remaining roots keep their relative order
        roots = mock_db.select("folders", filters={"user_id": user_id, "parent_id": None}, order_by="position")
        assert [r["id"] for r in roots] == [a["id"], b["id"]]

    def test_move_prompt(self, service, user_id, make_prompt):
        folder = service.create_folder(user_id, "Dest")
        prompt = make_prompt("x")
        assert service.move_prompt(prompt["id"], user_id, folder["id"])["folder_id"] == folder["id"]
        assert service.move_prompt(prompt["id"], user_id, None)["folder_id"] is None
