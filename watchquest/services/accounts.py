"""Registration, login sessions and profile maintenance.

There is no external trust boundary: credentials are compared in-process
against the stored document, exactly as the presentation layer sees them.
"""

from __future__ import annotations

import logging
from urllib.parse import quote_plus

from ..errors import (
    AccountBannedError,
    BannedEmailError,
    DuplicateEmailError,
    DuplicateHandleError,
    InvalidCredentialsError,
    InvalidInputError,
    PermissionDenied,
)
from ..models import PrivacyLevel, User, UserRole
from ..store import DocumentStore
from ..utils import generate_id, handle_key, normalize_email, normalize_handle
from .achievements import AchievementEngine
from .comments import iter_comments

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, store: DocumentStore, achievements: AchievementEngine) -> None:
        self._store = store
        self._achievements = achievements

    def _check_unique(self, handle: str | None, email: str | None, *, exclude: str | None = None) -> None:
        for user in self._store.document.users:
            if user.id == exclude:
                continue
            if handle is not None and handle_key(user.handle) == handle_key(handle):
                raise DuplicateHandleError("Handle already taken")
            if email is not None and normalize_email(user.email) == normalize_email(email):
                raise DuplicateEmailError("Email already registered")

    def register(
        self,
        name: str,
        handle: str,
        email: str,
        password: str,
        avatar: str | None = None,
    ) -> User:
        """Create an account and start a session for it."""

        name = name.strip()
        if not name or not handle.strip() or not password:
            raise InvalidInputError("Name, handle and password are required")
        if "@" not in email:
            raise InvalidInputError("A valid email address is required")

        normalized = normalize_email(email)
        for entry in self._store.document.blacklist:
            if entry.email == normalized:
                raise BannedEmailError(normalized, entry.reason)
        self._check_unique(handle, email)

        user = User(
            id=generate_id("u"),
            name=name,
            handle=normalize_handle(handle),
            email=email.strip(),
            password=password,
            role=UserRole.USER,
            avatar=avatar
            or f"https://ui-avatars.com/api/?name={quote_plus(name)}&background=random",
            privacy=PrivacyLevel.PUBLIC,
            joined_at=self._store.now(),
        )
        with self._store.mutation() as document:
            document.users.append(user)
        self._store.set_session(user.id)
        logger.info("Registered user %s", user.id)
        return user

    def login(self, identifier: str, password: str) -> User:
        """Log in by handle or email."""

        key = identifier.strip()
        user = next(
            (
                candidate
                for candidate in self._store.document.users
                if (
                    handle_key(candidate.handle) == handle_key(key)
                    or normalize_email(candidate.email) == normalize_email(key)
                )
                and candidate.password == password
            ),
            None,
        )
        if user is None:
            raise InvalidCredentialsError("Invalid credentials")
        if user.is_permanently_banned:
            raise AccountBannedError(user.ban_reason)
        self._store.set_session(user.id)
        self._achievements.evaluate(user.id)
        return user

    def logout(self) -> None:
        self._store.set_session(None)

    def current_user(self) -> User | None:
        return self._store.current_user()

    def get_user(self, user_id: str) -> User:
        return self._store.require_user(user_id)

    def update_profile(
        self,
        user_id: str,
        *,
        name: str | None = None,
        handle: str | None = None,
        email: str | None = None,
        avatar: str | None = None,
        cover_image: str | None = None,
        bio: str | None = None,
        country: str | None = None,
        privacy: PrivacyLevel | None = None,
    ) -> User:
        """Edit a profile and refresh the denormalised copies of name and avatar."""

        me = self._store.require_current_user()
        if me.id != user_id and not me.is_admin:
            raise PermissionDenied("You can only edit your own profile")
        user = self._store.require_user(user_id)
        if name is not None and not name.strip():
            raise InvalidInputError("Name cannot be empty")
        if email is not None and "@" not in email:
            raise InvalidInputError("A valid email address is required")
        self._check_unique(handle, email, exclude=user_id)

        with self._store.mutation() as document:
            if name is not None:
                user.name = name.strip()
            if handle is not None:
                user.handle = normalize_handle(handle)
            if email is not None:
                user.email = email.strip()
            if avatar is not None:
                user.avatar = avatar
            if cover_image is not None:
                user.cover_image = cover_image
            if bio is not None:
                user.bio = bio
            if country is not None:
                user.country = country
            if privacy is not None:
                user.privacy = privacy

            for media_list in document.lists:
                if media_list.creator_id == user_id:
                    media_list.creator_name = user.name
                    media_list.creator_avatar = user.avatar
                for comment in iter_comments(media_list.comments):
                    if comment.user_id == user_id:
                        comment.user_name = user.name
                        comment.user_avatar = user.avatar
        return user

    def search_users(self, query: str) -> list[User]:
        needle = query.casefold()
        return [
            user
            for user in self._store.document.users
            if needle in user.name.casefold() or needle in user.handle.casefold()
        ]
