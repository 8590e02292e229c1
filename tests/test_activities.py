"""
Testes para app/activitypub/activities.py

Cobre:
- Activity.parse_body(): envelope válido, actor/object como URI ou embutido
- Activity.parse_body(): JSON inválido, campos ausentes e id em branco
- membros JSON-LD extras preservados no to_json()
- construtores: ids únicos sob o actor, Undo/Accept embutem a atividade original
"""

import json

import pytest

from app.activitypub.activities import (
    PUBLIC,
    Activity,
    ActivityType,
    build_accept,
    build_create,
    build_follow,
    build_like,
    build_note,
    build_undo,
)
from app.activitypub.errors import MalformedActivity

BOB = "https://b.test/users/bob"
ALICE = "https://a.test/users/alice"


def test_parse_body_with_uris():
    activity = Activity.parse_body(
        json.dumps({"id": "https://a.test/1", "type": "Follow", "actor": ALICE, "object": BOB})
    )

    assert activity.actor_id == ALICE
    assert activity.object_id == BOB
    assert activity.object_type is None


def test_parse_body_with_embedded_objects():
    activity = Activity.parse_body(
        json.dumps(
            {
                "id": "https://a.test/2",
                "type": "Undo",
                "actor": {"id": ALICE, "type": "Person"},
                "object": {"id": "https://a.test/1", "type": "Follow"},
            }
        ).encode()
    )

    assert activity.actor_id == ALICE
    assert activity.object_id == "https://a.test/1"
    assert activity.object_type == "Follow"


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[]",
        json.dumps({"type": "Follow", "actor": ALICE}).encode(),
        json.dumps({"id": "https://a.test/1", "actor": ALICE}).encode(),
        json.dumps({"id": "https://a.test/1", "type": "Follow"}).encode(),
        json.dumps({"id": "  ", "type": "Follow", "actor": ALICE}).encode(),
        json.dumps({"id": "https://a.test/1", "type": "Follow", "actor": {"type": "Person"}}).encode(),
    ],
)
def test_parse_body_rejects_malformed(body):
    with pytest.raises(MalformedActivity):
        Activity.parse_body(body)


def test_extra_members_are_preserved():
    raw = {
        "@context": "https://www.w3.org/ns/activitystreams",
        "id": "https://a.test/1",
        "type": "Like",
        "actor": ALICE,
        "object": "https://b.test/users/bob/posts/1",
        "to": [PUBLIC],
    }

    assert Activity.parse_body(json.dumps(raw)).to_json() == raw


def test_build_follow():
    follow = build_follow(BOB, ALICE)

    assert follow.type == ActivityType.FOLLOW.value
    assert follow.id.startswith(f"{BOB}/activities/")
    assert follow.to_json()["@context"] == "https://www.w3.org/ns/activitystreams"


def test_activity_ids_are_unique():
    assert build_like(BOB, "https://a.test/p/1").id != build_like(BOB, "https://a.test/p/1").id


def test_undo_embeds_original_activity():
    follow = build_follow(BOB, ALICE)
    undo = build_undo(BOB, follow)

    assert undo.object_type == "Follow"
    assert undo.object_id == follow.id
    assert "@context" not in undo.object


def test_accept_embeds_follow():
    follow = Activity(id="https://a.test/f/1", type="Follow", actor=ALICE, object=BOB)
    accept = build_accept(BOB, follow)

    assert accept.actor == BOB
    assert accept.object == {
        "id": "https://a.test/f/1",
        "type": "Follow",
        "actor": ALICE,
        "object": BOB,
    }


def test_create_wraps_note_and_copies_addressing():
    note = build_note(f"{BOB}/posts/1", BOB, "<p>Olá</p>", f"{BOB}/followers")
    create = build_create(BOB, note)
    data = create.to_json()

    assert data["type"] == "Create"
    assert data["object"]["attributedTo"] == BOB
    assert data["to"] == [PUBLIC]
    assert data["cc"] == [f"{BOB}/followers"]
    assert data["published"] == note["published"]
