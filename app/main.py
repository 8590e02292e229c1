import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app import database
from app.activitypub.activities import build_note
from app.activitypub.actor import (
    ACTIVITY_JSON,
    build_actor_document,
    build_collection,
    build_nodeinfo,
    build_webfinger,
)
from app.activitypub.errors import ActorNotFound, FederationError
from app.config import settings
from app.federation import Federation, build_federation, build_http_client
from app.models.actor import LocalActor
from app.models.post import Post

logging.basicConfig(level=logging.INFO)

JRD_JSON = "application/jrd+json"


@asynccontextmanager
async def lifespan(api: FastAPI):
    await database.init_db()
    http = build_http_client()
    api.state.federation = build_federation(http, database.async_session_factory)
    yield
    await http.aclose()


api = FastAPI(lifespan=lifespan)


def get_federation(request: Request) -> Federation:
    return request.app.state.federation


async def get_local_actor(
    username: str, federation: Federation = Depends(get_federation)
) -> LocalActor:
    actor = await federation.actors.get_by_username(username)
    if actor is None:
        raise ActorNotFound(f"Unknown user: {username}")
    return actor


@api.exception_handler(FederationError)
async def federation_error_handler(request: Request, exc: FederationError):
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


def _wants_activity_json(accept: str) -> bool:
    accept = accept.lower()
    return "application/activity+json" in accept or "application/ld+json" in accept


# ---------------------------------------------------------------------------
# Actor e coleções
# ---------------------------------------------------------------------------


@api.get("/users/{username}")
async def get_actor(request: Request, actor: LocalActor = Depends(get_local_actor)):
    if not _wants_activity_json(request.headers.get("accept", "")):
        # Navegadores vão para o perfil HTML
        return RedirectResponse(f"/@{actor.username}", status_code=302)
    return JSONResponse(build_actor_document(actor), media_type=ACTIVITY_JSON)


@api.post("/users/{username}/inbox")
async def inbox(
    request: Request,
    actor: LocalActor = Depends(get_local_actor),
    federation: Federation = Depends(get_federation),
):
    path = request.url.path
    if request.url.query:
        path += f"?{request.url.query}"

    outcome = await federation.inbox.receive(
        actor,
        request.method,
        path,
        request.headers,
        await request.body(),
    )
    if outcome.accepted:
        return Response(status_code=outcome.status_code)
    return JSONResponse({"error": outcome.detail}, status_code=outcome.status_code)


@api.get("/users/{username}/followers")
async def followers(
    actor: LocalActor = Depends(get_local_actor),
    federation: Federation = Depends(get_federation),
):
    items = await federation.actors.list_followers(actor.username)
    return JSONResponse(build_collection(actor.followers_uri, items), media_type=ACTIVITY_JSON)


@api.get("/users/{username}/following")
async def following(
    actor: LocalActor = Depends(get_local_actor),
    federation: Federation = Depends(get_federation),
):
    items = await federation.actors.list_following(actor.username)
    return JSONResponse(build_collection(actor.following_uri, items), media_type=ACTIVITY_JSON)


@api.get("/users/{username}/outbox")
async def outbox(
    actor: LocalActor = Depends(get_local_actor),
    session: AsyncSession = Depends(database.get_session),
):
    result = await session.execute(
        select(Post)
        .where(Post.author_username == actor.username)
        .order_by(Post.published.desc())
    )
    items = [
        build_note(post.uri, actor.actor_id, post.content, actor.followers_uri, post.published)
        for post in result.scalars()
    ]
    return JSONResponse(build_collection(actor.outbox_uri, items), media_type=ACTIVITY_JSON)


# ---------------------------------------------------------------------------
# Descoberta
# ---------------------------------------------------------------------------


@api.get("/.well-known/webfinger")
async def webfinger(
    resource: str = Query(...),
    federation: Federation = Depends(get_federation),
):
    if not resource.startswith("acct:"):
        return JSONResponse({"error": "Resource must be an acct: URI"}, status_code=400)

    username, _, domain = resource.removeprefix("acct:").lstrip("@").partition("@")
    if not username or domain.lower() != settings.domain.lower():
        return JSONResponse({"error": "Not found"}, status_code=404)

    actor = await federation.actors.get_by_username(username)
    if actor is None:
        return JSONResponse({"error": "Not found"}, status_code=404)

    return JSONResponse(
        build_webfinger(actor.username, settings.domain, actor.actor_id),
        media_type=JRD_JSON,
    )


@api.get("/.well-known/nodeinfo")
async def nodeinfo_links():
    return {
        "links": [
            {
                "rel": "http://nodeinfo.diaspora.software/ns/schema/2.1",
                "href": f"https://{settings.domain}/nodeinfo/2.1",
            }
        ]
    }


@api.get("/nodeinfo/2.1")
async def nodeinfo(federation: Federation = Depends(get_federation)):
    return build_nodeinfo(await federation.actors.count())


@api.get("/health")
async def health():
    return {"status": "ok"}
