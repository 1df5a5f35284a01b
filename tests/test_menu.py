"""Tests for menu-tree validation and the stateless token walk."""

from __future__ import annotations

import pytest

from src.data.menus import build_keyword_menu, build_numeric_menu
from src.models.enums import ActionName, ChannelType
from src.services.menu import (
    ActionRef,
    ActionResolution,
    MenuDefinitionError,
    MenuNode,
    MenuResolution,
    MenuTree,
)

ALL_ACTIONS = [name.value for name in ActionName]


@pytest.fixture
def numeric() -> MenuTree:
    return build_numeric_menu(ALL_ACTIONS)


@pytest.fixture
def keyword() -> MenuTree:
    return build_keyword_menu(ALL_ACTIONS)


# -----------------------------------------------------------------------
# Construction
# -----------------------------------------------------------------------


class TestMenuTreeValidation:
    def test_duplicate_node_ids_rejected(self) -> None:
        nodes = [MenuNode(id="a", prompt="A"), MenuNode(id="a", prompt="again")]
        with pytest.raises(MenuDefinitionError, match="Duplicate"):
            MenuTree(nodes, root_id="a", action_names=[])

    def test_missing_root_rejected(self) -> None:
        with pytest.raises(MenuDefinitionError, match="Root"):
            MenuTree([MenuNode(id="a", prompt="A")], root_id="main", action_names=[])

    def test_dangling_child_rejected(self) -> None:
        nodes = [MenuNode(id="main", prompt="M", transitions=(("1", "nowhere"),))]
        with pytest.raises(MenuDefinitionError, match="unknown node"):
            MenuTree(nodes, root_id="main", action_names=[])

    def test_unregistered_action_rejected(self) -> None:
        nodes = [MenuNode(id="main", prompt="M", transitions=(("1", ActionRef("launch_rocket")),))]
        with pytest.raises(MenuDefinitionError, match="unregistered"):
            MenuTree(nodes, root_id="main", action_names=["chat_reply"])

    def test_duplicate_token_rejected(self) -> None:
        nodes = [
            MenuNode(id="main", prompt="M", transitions=(("1", "main"), ("1", "main"))),
        ]
        with pytest.raises(MenuDefinitionError, match="duplicated"):
            MenuTree(nodes, root_id="main", action_names=[])

    def test_built_in_trees_are_valid(self, numeric: MenuTree, keyword: MenuTree) -> None:
        assert numeric.root.id == "main"
        assert keyword.root.id == "keywords"
        assert ActionName.TRIGGER_EMERGENCY in numeric.actions()
        assert ActionName.CHAT_REPLY in keyword.actions()


class TestActionRef:
    def test_params_are_read_only(self) -> None:
        ref = ActionRef("fetch_health_education", {"topic": "malaria"})
        with pytest.raises(TypeError):
            ref.params["topic"] = "other"  # type: ignore[index]

    def test_equal_refs_hash_equal(self) -> None:
        a = ActionRef("trigger_emergency", {"kind": "general"})
        b = ActionRef("trigger_emergency", {"kind": "general"})
        assert a == b
        assert hash(a) == hash(b)


# -----------------------------------------------------------------------
# Walking the numeric tree
# -----------------------------------------------------------------------


class TestNumericResolve:
    def test_empty_path_is_root(self, numeric: MenuTree) -> None:
        result = numeric.resolve([])
        assert isinstance(result, MenuResolution)
        assert result.node.id == "main"
        assert result.invalid is False

    def test_child_menu(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["1"])
        assert isinstance(result, MenuResolution)
        assert result.node.id == "consultation"
        assert result.depth == 1

    def test_action_with_remaining_args(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["1", "2", "fever", "since Monday"])
        assert isinstance(result, ActionResolution)
        assert result.action.name == ActionName.BOOK_TEXT_CONSULTATION
        assert result.args == ("fever", "since Monday")

    def test_bound_params(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["2", "1"])
        assert isinstance(result, ActionResolution)
        assert result.action.params == {"topic": "malaria"}

    def test_three_levels_to_language(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["4", "3", "2"])
        assert isinstance(result, ActionResolution)
        assert result.action.name == ActionName.UPDATE_LANGUAGE
        assert result.action.params["language"] == "Krio"

    def test_unknown_token_keeps_position_and_flags_invalid(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["1", "7"])
        assert isinstance(result, MenuResolution)
        assert result.node.id == "consultation", "an unknown option must not move the caller"
        assert result.invalid is True

    def test_valid_token_after_invalid_clears_flag(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["7", "2"])
        assert isinstance(result, MenuResolution)
        assert result.node.id == "education"
        assert result.invalid is False

    def test_exit_from_any_depth(self, numeric: MenuTree) -> None:
        for path in (["0"], ["1", "0"], ["4", "3", "0"]):
            result = numeric.resolve(path)
            assert isinstance(result, ActionResolution)
            assert result.action.name == ActionName.END_SESSION

    def test_back_returns_to_parent(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["4", "3", "9"])
        assert isinstance(result, MenuResolution)
        assert result.node.id == "account"

    def test_back_at_root_is_invalid(self, numeric: MenuTree) -> None:
        result = numeric.resolve(["9"])
        assert isinstance(result, MenuResolution)
        assert result.node.id == "main"
        assert result.invalid is True

    def test_resolve_is_deterministic(self, numeric: MenuTree) -> None:
        assert numeric.resolve(["3", "2"]) == numeric.resolve(["3", "2"])


# -----------------------------------------------------------------------
# Walking the keyword tree
# -----------------------------------------------------------------------


class TestKeywordResolve:
    def test_keyword_opens_submenu(self, keyword: MenuTree) -> None:
        result = keyword.resolve(["BOOK"])
        assert isinstance(result, MenuResolution)
        assert result.node.id == "consult"

    def test_emergency_keyword(self, keyword: MenuTree) -> None:
        result = keyword.resolve(["EMERGENCY"])
        assert isinstance(result, ActionResolution)
        assert result.action == ActionRef(ActionName.TRIGGER_EMERGENCY, {"kind": "general"})

    def test_free_text_goes_to_chat_reply(self, keyword: MenuTree) -> None:
        result = keyword.resolve(["my head hurts"])
        assert isinstance(result, ActionResolution)
        assert result.action.name == ActionName.CHAT_REPLY
        assert result.args == ("my head hurts",)

    def test_argument_keyword(self, keyword: MenuTree) -> None:
        result = keyword.resolve(["TEXT", "cough for three days"])
        assert isinstance(result, ActionResolution)
        assert result.action.name == ActionName.BOOK_TEXT_CONSULTATION
        assert result.args == ("cough for three days",)

    def test_no_back_token(self, keyword: MenuTree) -> None:
        assert keyword.back_token is None


class TestPrompts:
    def test_channel_specific_prompts(self, numeric: MenuTree, keyword: MenuTree) -> None:
        assert numeric.root.prompt_for(ChannelType.VOICE).startswith("Welcome to HealthWise for Sierra Leone")
        assert numeric.root.prompt_for(ChannelType.USSD).startswith("Welcome to HealthWise\n1.")
        assert "*HealthWise for Sierra Leone*" in keyword.root.prompt_for(ChannelType.WHATSAPP)
        assert keyword.root.prompt_for(ChannelType.SMS).startswith("Welcome to HealthWise!")
