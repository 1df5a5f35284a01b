"""Declarative menu tree and the stateless walk that resolves a token path.

The tree is pure data: each :class:`MenuNode` maps input tokens to either
a child node id or a terminal :class:`ActionRef`.  :meth:`MenuTree.resolve`
recomputes the caller's position from the full token history on every
request, which is exactly what USSD and IVR gateways expect.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Final

import structlog

from src.models.enums import ActionName, ChannelType

logger = structlog.get_logger(__name__)

END_SESSION_ACTION: Final[str] = ActionName.END_SESSION


class MenuDefinitionError(ValueError):
    """Raised when a menu tree is not internally consistent."""


@dataclass(frozen=True, slots=True)
class ActionRef:
    """A reference to a registered action handler plus bound parameters."""

    name: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __hash__(self) -> int:
        return hash((self.name, tuple(sorted(self.params.items()))))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActionRef):
            return NotImplemented
        return self.name == other.name and dict(self.params) == dict(other.params)


Transition = str | ActionRef


@dataclass(frozen=True, slots=True)
class MenuNode:
    """A single menu.

    ``transitions`` is ordered; a ``str`` value is a child node id.
    ``spoken_prompt`` and ``rich_prompt`` override ``prompt`` on voice and
    WhatsApp.  ``free_text_action`` receives any token the node does not
    recognise, instead of flagging it invalid.
    """

    id: str
    prompt: str
    transitions: tuple[tuple[str, Transition], ...] = ()
    spoken_prompt: str | None = None
    rich_prompt: str | None = None
    free_text_action: ActionRef | None = None

    def lookup(self, token: str) -> Transition | None:
        for key, target in self.transitions:
            if key == token:
                return target
        return None

    @property
    def tokens(self) -> list[str]:
        return [key for key, _ in self.transitions]

    def prompt_for(self, channel: ChannelType | str) -> str:
        if channel == ChannelType.VOICE and self.spoken_prompt:
            return self.spoken_prompt
        if channel == ChannelType.WHATSAPP and self.rich_prompt:
            return self.rich_prompt
        return self.prompt


@dataclass(frozen=True, slots=True)
class MenuResolution:
    """The path ends on a menu that should be (re)prompted."""

    node: MenuNode
    invalid: bool = False
    depth: int = 0

    kind: str = "menu"


@dataclass(frozen=True, slots=True)
class ActionResolution:
    """The path ends on a terminal action.

    ``args`` holds every token after the one that selected the action.
    """

    action: ActionRef
    args: tuple[str, ...] = ()
    node: MenuNode | None = None

    kind: str = "action"


Resolution = MenuResolution | ActionResolution


class MenuTree:
    """An immutable, validated menu tree.

    Parameters
    ----------
    nodes:
        Every node of the tree.
    root_id:
        Id of the node a new session starts at.
    action_names:
        Names of registered action handlers; every :class:`ActionRef` in
        the tree must be one of them.
    exit_token:
        Reserved token that ends the session from any depth.
    back_token:
        Reserved token that returns to the parent node, or ``None`` when
        the channel has no "back" concept.
    """

    __slots__ = ("_back_token", "_exit_token", "_nodes", "_root_id")

    def __init__(
        self,
        nodes: Iterable[MenuNode],
        root_id: str,
        action_names: Collection[str],
        *,
        exit_token: str = "0",
        back_token: str | None = "9",
    ) -> None:
        node_map: dict[str, MenuNode] = {}
        for node in nodes:
            if node.id in node_map:
                raise MenuDefinitionError(f"Duplicate menu node id {node.id!r}")
            node_map[node.id] = node

        if root_id not in node_map:
            raise MenuDefinitionError(f"Root node {root_id!r} is not defined")

        known_actions = set(action_names) | {END_SESSION_ACTION}
        for node in node_map.values():
            seen: set[str] = set()
            for token, target in node.transitions:
                if token in seen:
                    raise MenuDefinitionError(
                        f"Token {token!r} is duplicated in menu {node.id!r}"
                    )
                seen.add(token)
                if isinstance(target, ActionRef):
                    if target.name not in known_actions:
                        raise MenuDefinitionError(
                            f"Menu {node.id!r} references unregistered action {target.name!r}"
                        )
                elif target not in node_map:
                    raise MenuDefinitionError(
                        f"Menu {node.id!r} points at unknown node {target!r}"
                    )
            if node.free_text_action is not None and node.free_text_action.name not in known_actions:
                raise MenuDefinitionError(
                    f"Menu {node.id!r} free-text action {node.free_text_action.name!r} is unregistered"
                )

        self._nodes: Mapping[str, MenuNode] = MappingProxyType(node_map)
        self._root_id = root_id
        self._exit_token = exit_token
        self._back_token = back_token
        logger.debug("menu.tree_built", root=root_id, nodes=len(node_map))

    # -- accessors ------------------------------------------------------------

    @property
    def root(self) -> MenuNode:
        return self._nodes[self._root_id]

    @property
    def exit_token(self) -> str:
        return self._exit_token

    @property
    def back_token(self) -> str | None:
        return self._back_token

    def node(self, node_id: str) -> MenuNode:
        return self._nodes[node_id]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def top_level_tokens(self) -> frozenset[str]:
        return frozenset(self.root.tokens)

    def actions(self) -> set[str]:
        names = {END_SESSION_ACTION}
        for node in self._nodes.values():
            for _, target in node.transitions:
                if isinstance(target, ActionRef):
                    names.add(target.name)
            if node.free_text_action is not None:
                names.add(node.free_text_action.name)
        return names

    # -- the walk -------------------------------------------------------------

    def resolve(self, tokens: Iterable[str]) -> Resolution:
        """Walk *tokens* from the root and report where the path ends.

        * the exit token ends the session from any depth;
        * the back token pops to the parent (unknown at the root);
        * an unknown token leaves the position unchanged and flags the
          result invalid if it was the last token;
        * a token mapped to an action returns immediately, with the
          remaining tokens as handler arguments.
        """
        token_list = list(tokens)
        path: list[MenuNode] = [self.root]
        invalid = False

        for index, token in enumerate(token_list):
            current = path[-1]

            if token == self._exit_token:
                return ActionResolution(
                    action=ActionRef(END_SESSION_ACTION),
                    args=tuple(token_list[index + 1:]),
                    node=current,
                )

            if self._back_token is not None and token == self._back_token and len(path) > 1:
                path.pop()
                invalid = False
                continue

            target = current.lookup(token)
            if target is None:
                if current.free_text_action is not None:
                    return ActionResolution(
                        action=current.free_text_action,
                        args=tuple(token_list[index:]),
                        node=current,
                    )
                invalid = True
                continue

            invalid = False
            if isinstance(target, ActionRef):
                return ActionResolution(
                    action=target,
                    args=tuple(token_list[index + 1:]),
                    node=current,
                )
            path.append(self._nodes[target])

        return MenuResolution(node=path[-1], invalid=invalid, depth=len(path) - 1)
