"""Depth-first search over browse/player response documents.

The upstream JSON has no published schema, so lookups walk the whole tree
instead of following fixed paths. Every helper here is built on
:func:`walk_document`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, cast

STOP = object()

VIDEO_ID_LENGTH = 11

NodeVisitor = Callable[[dict[str, Any]], object]


def walk_document(document: Any, visit: NodeVisitor) -> bool:
    """Visit every object node depth-first, left to right.

    A node is passed to ``visit`` before any of its children. Returning
    :data:`STOP` from ``visit`` ends the traversal; the function then
    returns ``True``. Scalars are skipped, so mixed-type trees are fine.
    """
    stack: list[Any] = [document]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            node_dict = cast(dict[str, Any], node)
            if visit(node_dict) is STOP:
                return True
            children = list(node_dict.values())
        elif isinstance(node, list):
            children = list(cast(list[Any], node))
        else:
            continue
        stack.extend(reversed(children))
    return False


def collect_video_ids(document: Any, accumulator: list[str], *, limit: int) -> list[str]:
    seen = set(accumulator)

    def _visit(node: dict[str, Any]) -> object:
        if len(accumulator) >= limit:
            return STOP
        video_id = node.get("videoId")
        if isinstance(video_id, str) and len(video_id) == VIDEO_ID_LENGTH and video_id not in seen:
            seen.add(video_id)
            accumulator.append(video_id)
        return None

    walk_document(document, _visit)
    return accumulator


def find_continuation_token(document: Any) -> str | None:
    found: list[str] = []

    def _visit(node: dict[str, Any]) -> object:
        token = _continuation_token_of(node)
        if token is None:
            return None
        found.append(token)
        return STOP

    walk_document(document, _visit)
    return found[0] if found else None


def _continuation_token_of(node: dict[str, Any]) -> str | None:
    command = node.get("continuationCommand")
    if isinstance(command, dict):
        token = cast(dict[str, Any], command).get("token")
        if isinstance(token, str) and token:
            return token
    token = node.get("token")
    if isinstance(token, str) and token and node.get("continuationEndpoint"):
        return token
    return None
