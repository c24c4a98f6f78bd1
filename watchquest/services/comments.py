"""Comment threads with mentions and permission-checked deletion."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import InvalidInputError, NotFoundError, PermissionDenied
from ..models import Comment, MediaList, User
from ..store import DocumentStore
from ..utils import extract_mentions, generate_id, handle_key
from .lists import can_view
from .notifications import NotificationService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommentLocation:
    comment: Comment
    container: list[Comment]
    thread: Comment


def find_comment(comments: list[Comment], comment_id: str) -> CommentLocation | None:
    """Search the comment tree at any depth."""

    def walk(container: list[Comment], thread: Comment | None) -> CommentLocation | None:
        for comment in container:
            root = thread or comment
            if comment.id == comment_id:
                return CommentLocation(comment=comment, container=container, thread=root)
            found = walk(comment.replies, root)
            if found is not None:
                return found
        return None

    return walk(comments, None)


def iter_comments(comments: list[Comment]):
    for comment in comments:
        yield comment
        yield from iter_comments(comment.replies)


class CommentService:
    """Top-level comments hold one level of replies; replying to a reply joins its thread."""

    def __init__(self, store: DocumentStore, notifications: NotificationService) -> None:
        self._store = store
        self._notifications = notifications

    def _visible_list(self, me: User, list_id: str) -> MediaList:
        media_list = self._store.require_list(list_id)
        if not can_view(self._store.document, me, media_list):
            raise PermissionDenied("This list is not visible to you")
        return media_list

    def add_comment(self, list_id: str, text: str, reply_to_id: str | None = None) -> Comment:
        me = self._store.require_current_user()
        media_list = self._visible_list(me, list_id)
        text = text.strip()
        if not text:
            raise InvalidInputError("Comments cannot be empty")

        parent: CommentLocation | None = None
        if reply_to_id is not None:
            parent = find_comment(media_list.comments, reply_to_id)
            if parent is None:
                raise NotFoundError("comment", reply_to_id)

        comment = Comment(
            id=generate_id("c"),
            user_id=me.id,
            user_name=me.name,
            user_avatar=me.avatar,
            text=text,
            timestamp=self._store.now(),
        )
        with self._store.mutation():
            if parent is None:
                media_list.comments.append(comment)
            else:
                parent.thread.replies.append(comment)
            self._fan_out(me, media_list, comment, parent)
        return comment

    def _fan_out(
        self,
        me: User,
        media_list: MediaList,
        comment: Comment,
        parent: CommentLocation | None,
    ) -> None:
        notified: set[str] = set()

        def send(recipient_id: str, type, preview: str) -> None:
            if recipient_id in notified:
                return
            sent = self._notifications.emit(
                recipient_id,
                type,
                me,
                target_id=media_list.id,
                target_preview=preview,
            )
            if sent is not None:
                notified.add(recipient_id)

        directory = {handle_key(user.handle): user for user in self._store.document.users}
        for token in extract_mentions(comment.text):
            mentioned = directory.get(token)
            if mentioned is None:
                continue
            send(mentioned.id, "mention", f'mentioned you on "{media_list.title}"')
        if parent is not None:
            send(parent.comment.user_id, "reply", f'replied to your comment on "{media_list.title}"')
        send(media_list.creator_id, "comment", f'commented on your list "{media_list.title}"')

    def delete_comment(self, list_id: str, comment_id: str) -> None:
        """Delete a comment and its replies; author, list owner or admin only."""

        me = self._store.require_current_user()
        media_list = self._store.require_list(list_id)
        location = find_comment(media_list.comments, comment_id)
        if location is None:
            raise NotFoundError("comment", comment_id)
        allowed = (
            location.comment.user_id == me.id
            or media_list.creator_id == me.id
            or me.is_admin
        )
        if not allowed:
            raise PermissionDenied("You cannot delete this comment")
        with self._store.mutation():
            location.container.remove(location.comment)
        logger.info("%s deleted comment %s on %s", me.id, comment_id, list_id)

    def thread(self, list_id: str) -> list[Comment]:
        me = self._store.current_user()
        media_list = self._store.require_list(list_id)
        if not can_view(self._store.document, me, media_list):
            raise PermissionDenied("This list is not visible to you")
        return media_list.comments
