"""Admin broadcast conversation as an explicit state machine.

Nothing in this module talks to Telegram or storage. Handlers translate
updates into events, feed them to ``BroadcastStateMachine`` and execute the
returned effects.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union


NOT_AUTHORIZED_TEXT = "You are not authorized to broadcast."
ASK_FOR_MESSAGE_TEXT = "Send the message you want to broadcast (text, photo, video, document, audio)."
UNSUPPORTED_TEXT = "Unsupported message type. Please send text, photo, video, document, or audio."
CONFIRM_TEXT = "Is this the message you want to broadcast?"
CANCELLED_TEXT = "Broadcast cancelled. Send /broadcast to start again."
USERS_LOAD_FAILED_TEXT = "Failed to load users from the database."
COMPLETED_TEMPLATE = "Broadcast completed. Delivered to {sent} users."

APPROVE_DATA = "approve_broadcast"
DECLINE_DATA = "decline_broadcast"
APPROVE_LABEL = "Approve✅"
DECLINE_LABEL = "Decline❌"


class BroadcastState(str, Enum):
    IDLE = "idle"
    WAITING_FOR_MESSAGE = "waiting_for_message"
    CONFIRMING = "confirming"


class MediaKind(str, Enum):
    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    VIDEO_NOTE = "video_note"
    DOCUMENT = "document"
    AUDIO = "audio"


@dataclass(frozen=True)
class BroadcastPayload:
    """Exactly one media kind; ``content`` is the text or the file id."""
    kind: MediaKind
    content: str
    caption: Optional[str] = None


def _file_id(attr: str) -> Callable[[Any], Optional[str]]:
    def extract(message: Any) -> Optional[str]:
        media = getattr(message, attr, None)
        return getattr(media, "file_id", None) if media else None
    return extract


def _largest_photo(message: Any) -> Optional[str]:
    photos = getattr(message, "photo", None)
    return photos[-1].file_id if photos else None


# First kind with a value wins
MEDIA_PRECEDENCE: Tuple[Tuple[MediaKind, Callable[[Any], Optional[str]]], ...] = (
    (MediaKind.TEXT, lambda message: getattr(message, "text", None) or None),
    (MediaKind.PHOTO, _largest_photo),
    (MediaKind.VIDEO, _file_id("video")),
    (MediaKind.VIDEO_NOTE, _file_id("video_note")),
    (MediaKind.DOCUMENT, _file_id("document")),
    (MediaKind.AUDIO, _file_id("audio")),
)


def extract_payload(message: Any) -> Optional[BroadcastPayload]:
    """Capture the resendable part of an inbound message, or None if unsupported."""
    for kind, extract in MEDIA_PRECEDENCE:
        content = extract(message)
        if content:
            caption = None if kind is MediaKind.TEXT else (getattr(message, "caption", None) or None)
            return BroadcastPayload(kind=kind, content=content, caption=caption)
    return None


# Events

@dataclass(frozen=True)
class BroadcastCommand:
    from_admin: bool


@dataclass(frozen=True)
class InboundMessage:
    from_admin: bool
    payload: Optional[BroadcastPayload]
    is_command: bool = False


@dataclass(frozen=True)
class CallbackChoice:
    from_admin: bool
    data: str


Event = Union[BroadcastCommand, InboundMessage, CallbackChoice]


# Effects

@dataclass(frozen=True)
class Reply:
    text: str


@dataclass(frozen=True)
class EchoDraft:
    payload: BroadcastPayload


@dataclass(frozen=True)
class AskConfirmation:
    text: str = CONFIRM_TEXT


@dataclass(frozen=True)
class StartFanOut:
    payload: BroadcastPayload


Effect = Union[Reply, EchoDraft, AskConfirmation, StartFanOut]


@dataclass(frozen=True)
class Draft:
    state: BroadcastState = BroadcastState.IDLE
    payload: Optional[BroadcastPayload] = None


IDLE = Draft()


def transition(draft: Draft, event: Event) -> Tuple[Draft, List[Effect]]:
    """
    Pure transition function ``(draft, event) -> (draft, effects)``.

    Non-admin events never change state; only a non-admin ``/broadcast``
    produces a reply.
    """
    if not event.from_admin:
        if isinstance(event, BroadcastCommand):
            return draft, [Reply(NOT_AUTHORIZED_TEXT)]
        return draft, []

    if isinstance(event, BroadcastCommand):
        return Draft(BroadcastState.WAITING_FOR_MESSAGE), [Reply(ASK_FOR_MESSAGE_TEXT)]

    if isinstance(event, InboundMessage):
        if draft.state is not BroadcastState.WAITING_FOR_MESSAGE or event.is_command:
            return draft, []
        if event.payload is None:
            return IDLE, [Reply(UNSUPPORTED_TEXT)]
        return (
            Draft(BroadcastState.CONFIRMING, event.payload),
            [EchoDraft(event.payload), AskConfirmation()]
        )

    if isinstance(event, CallbackChoice):
        if draft.state is not BroadcastState.CONFIRMING:
            return draft, []
        if event.data == DECLINE_DATA:
            return IDLE, [Reply(CANCELLED_TEXT)]
        if event.data == APPROVE_DATA:
            return IDLE, [StartFanOut(draft.payload)]
        return draft, []

    raise TypeError(f"Unknown broadcast event: {event!r}")


class BroadcastStateMachine:
    """Per-admin-chat drafts; lost on restart."""

    def __init__(self):
        self._drafts: Dict[int, Draft] = {}

    def draft_for(self, chat_id: int) -> Draft:
        return self._drafts.get(chat_id, IDLE)

    def handle(self, chat_id: int, event: Event) -> List[Effect]:
        new_draft, effects = transition(self.draft_for(chat_id), event)
        if new_draft.state is BroadcastState.IDLE:
            self._drafts.pop(chat_id, None)
        else:
            self._drafts[chat_id] = new_draft
        return effects

    def reset(self, chat_id: int):
        self._drafts.pop(chat_id, None)

    def __len__(self) -> int:
        return len(self._drafts)
