"""Single dispatch engine shared by every channel adapter.

One :meth:`Dispatcher.dispatch` call resolves the session's token path
against a :class:`~src.services.menu.MenuTree` and, if the path ends on an
action, invokes that action's handler exactly once.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping

import structlog

from src.middleware.privacy import mask_phone
from src.models.channel import DispatchOutcome, Session
from src.services.actions import ActionHandler
from src.services.menu import ActionResolution, MenuDefinitionError, MenuTree
from src.services.tokenizer import tokenize

logger = structlog.get_logger(__name__)

INVALID_OPTION_PREFIX = "Invalid option."


class Dispatcher:
    """Walks a menu tree and runs the resolved action.

    Parameters
    ----------
    tree:
        The channel family's menu tree.
    handlers:
        Action name to handler.  Every action the tree references must be
        present.
    argument_keywords:
        Text-channel keywords that take the rest of the message as args.
    """

    __slots__ = ("_argument_keywords", "_handlers", "_keywords", "_tree")

    def __init__(
        self,
        tree: MenuTree,
        handlers: Mapping[str, ActionHandler],
        argument_keywords: Collection[str] = (),
    ) -> None:
        missing = tree.actions() - set(handlers)
        if missing:
            raise MenuDefinitionError(f"No handler registered for actions: {sorted(missing)}")
        self._tree = tree
        self._handlers = dict(handlers)
        self._argument_keywords = frozenset(argument_keywords)
        self._keywords = tree.top_level_tokens() | {tree.exit_token}

    @property
    def tree(self) -> MenuTree:
        return self._tree

    def tokenize(self, channel: str, raw_payload: str | None) -> list[str]:
        return tokenize(channel, raw_payload, self._keywords, self._argument_keywords)

    async def dispatch(self, session: Session) -> DispatchOutcome:
        resolution = self._tree.resolve(session.tokens)
        log = logger.bind(
            channel=session.channel,
            caller=mask_phone(session.caller_id),
            session_id=session.session_id,
            depth=len(session.tokens),
        )

        if not isinstance(resolution, ActionResolution):
            node = resolution.node
            prompt = node.prompt_for(session.channel)
            if resolution.invalid:
                prompt = f"{INVALID_OPTION_PREFIX} {prompt}"
            log.info("dispatcher.menu", node=node.id, invalid=resolution.invalid)
            return DispatchOutcome(
                kind="menu",
                text=prompt,
                node_id=node.id,
                invalid=resolution.invalid,
            )

        action = resolution.action
        handler = self._handlers[action.name]
        log.info("dispatcher.action", action=action.name, arg_count=len(resolution.args))
        result = await handler(
            session.caller_id,
            session.channel,
            resolution.args,
            **dict(action.params),
        )
        return DispatchOutcome(
            kind="action",
            text=result.text,
            node_id=resolution.node.id if resolution.node is not None else None,
            action=action.name,
            result=result,
        )
