"""
app/activitypub/activities.py

Modelo das atividades trocadas na federação e construtores das atividades
que os actors locais enviam.

`Activity` valida só o envelope (id, type, actor, object); qualquer outro
membro JSON-LD é preservado como extra e volta no `to_json()`.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.activitypub.errors import MalformedActivity

AS_CONTEXT = "https://www.w3.org/ns/activitystreams"
PUBLIC = "https://www.w3.org/ns/activitystreams#Public"


class ActivityType(str, Enum):
    FOLLOW = "Follow"
    UNDO = "Undo"
    LIKE = "Like"
    CREATE = "Create"
    ANNOUNCE = "Announce"
    ACCEPT = "Accept"
    REJECT = "Reject"


class Activity(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    context: Any = Field(default=None, alias="@context")
    id: str
    type: str
    actor: str | dict[str, Any]
    object: str | dict[str, Any] | None = None
    published: str | None = None

    @field_validator("id", "type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("actor")
    @classmethod
    def _actor_has_id(cls, value: str | dict[str, Any]) -> str | dict[str, Any]:
        if isinstance(value, dict) and not isinstance(value.get("id"), str):
            raise ValueError("embedded actor has no id")
        return value

    @classmethod
    def parse_body(cls, body: bytes | str) -> "Activity":
        try:
            return cls.model_validate_json(body)
        except ValidationError as exc:
            raise MalformedActivity(f"Invalid activity: {exc.error_count()} error(s)") from exc

    @property
    def actor_id(self) -> str:
        if isinstance(self.actor, dict):
            return self.actor["id"]
        return self.actor

    @property
    def object_id(self) -> str | None:
        if isinstance(self.object, dict):
            return self.object.get("id")
        return self.object

    @property
    def object_type(self) -> str | None:
        if isinstance(self.object, dict):
            return self.object.get("type")
        return None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Construtores das atividades de saída
# ---------------------------------------------------------------------------


def new_activity_id(actor_id: str) -> str:
    return f"{actor_id}/activities/{uuid4()}"


def _activity(activity_type: ActivityType, actor_id: str, obj: Any, **extra) -> Activity:
    return Activity(
        context=AS_CONTEXT,
        id=new_activity_id(actor_id),
        type=activity_type.value,
        actor=actor_id,
        object=obj,
        **extra,
    )


def build_follow(actor_id: str, target_id: str) -> Activity:
    return _activity(ActivityType.FOLLOW, actor_id, target_id)


def build_undo(actor_id: str, inner: Activity) -> Activity:
    embedded = inner.to_json()
    embedded.pop("@context", None)
    return _activity(ActivityType.UNDO, actor_id, embedded)


def build_like(actor_id: str, object_uri: str) -> Activity:
    return _activity(ActivityType.LIKE, actor_id, object_uri)


def build_accept(actor_id: str, follow: Activity) -> Activity:
    embedded = follow.to_json()
    embedded.pop("@context", None)
    return _activity(ActivityType.ACCEPT, actor_id, embedded)


def build_note(
    note_id: str,
    actor_id: str,
    content: str,
    followers_uri: str,
    published: datetime | None = None,
) -> dict[str, Any]:
    published = published or datetime.now(timezone.utc)
    return {
        "id": note_id,
        "type": "Note",
        "attributedTo": actor_id,
        "content": content,
        "published": published.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "to": [PUBLIC],
        "cc": [followers_uri],
    }


def build_create(actor_id: str, note: dict[str, Any]) -> Activity:
    return _activity(
        ActivityType.CREATE,
        actor_id,
        note,
        published=note.get("published"),
        to=note.get("to", [PUBLIC]),
        cc=note.get("cc", []),
    )
