"""Per-user wizard sessions with lazy expiry."""

from __future__ import annotations

import asyncio
import enum
import time
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import SessionExistsError
from .models import QuietTime

DEFAULT_SESSION_TTL = 30 * 60.0


class WizardState(str, enum.Enum):
    AWAITING_GROUP_NAME = "AWAITING_GROUP_NAME"
    AWAITING_CONFIG_TYPE = "AWAITING_CONFIG_TYPE"
    AWAITING_EDIT_OPTION = "AWAITING_EDIT_OPTION"
    AWAITING_INTERVAL = "AWAITING_INTERVAL"
    AWAITING_QUIET_START = "AWAITING_QUIET_START"
    AWAITING_QUIET_END = "AWAITING_QUIET_END"
    AWAITING_AUTO_DELETE_CHOICE = "AWAITING_AUTO_DELETE_CHOICE"
    AWAITING_DELETE_AFTER = "AWAITING_DELETE_AFTER"
    AWAITING_GROUP_INFO = "AWAITING_GROUP_INFO"
    AWAITING_PROMPT_APPROVAL = "AWAITING_PROMPT_APPROVAL"
    AWAITING_CUSTOM_PROMPT = "AWAITING_CUSTOM_PROMPT"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    AWAITING_DELETE_CONFIRM = "AWAITING_DELETE_CONFIRM"


class EditTarget(str, enum.Enum):
    """Field of an existing group being edited from the edit menu."""

    INTERVAL = "interval"
    QUIET_TIME = "quiet_time"
    PROMPT = "prompt"


@dataclass(slots=True)
class WizardData:
    """Answers accumulated while walking through the wizard."""

    group_name: str | None = None
    use_defaults: bool = False
    interval_hours: int | None = None
    quiet_start: str | None = None
    quiet_end: str | None = None
    delete_after: int | None = None
    prompt: str | None = None
    group_info: str | None = None
    edit_target: EditTarget | None = None

    @property
    def editing(self) -> bool:
        return self.edit_target is not None

    @property
    def quiet_time(self) -> QuietTime | None:
        if self.quiet_start is None or self.quiet_end is None:
            return None
        return QuietTime(self.quiet_start, self.quiet_end)


@dataclass(slots=True)
class Session:
    user_id: str
    state: WizardState
    data: WizardData = field(default_factory=WizardData)
    last_activity: float = 0.0


class SessionStore:
    """Active wizard sessions keyed by user id.

    Expiry is lazy: nothing evicts sessions in the background, callers check
    :meth:`is_expired` on the next access and delete the session themselves.
    """

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def ttl(self) -> float:
        return self._ttl

    def now(self) -> float:
        return self._clock()

    def get(self, user_id: str) -> Session | None:
        return self._sessions.get(user_id)

    def create(
        self,
        user_id: str,
        state: WizardState = WizardState.AWAITING_GROUP_NAME,
        data: WizardData | None = None,
    ) -> Session:
        if user_id in self._sessions:
            raise SessionExistsError(f"Session already active for user {user_id}")
        session = Session(
            user_id=user_id,
            state=state,
            data=data or WizardData(),
            last_activity=self._clock(),
        )
        self._sessions[user_id] = session
        return session

    def touch(self, session: Session) -> None:
        session.last_activity = self._clock()

    def delete(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def is_expired(self, session: Session, now: float | None = None) -> bool:
        current = self._clock() if now is None else now
        return current - session.last_activity > self._ttl

    def lock(self, user_id: str) -> asyncio.Lock:
        """Lock serializing the processing of one user's messages.

        Entries vanish once no task holds or awaits the lock.
        """

        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions
