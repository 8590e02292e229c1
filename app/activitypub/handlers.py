"""
app/activitypub/handlers.py

Registra os handlers de atividades no InboxProcessor.

Handlers:
- Follow   → grava o follower, notifica e (se configurado) envia Accept assinado
- Undo     → desfaz Follow, Like ou Announce (embutido ou referenciado por URI)
- Like     → conta o like num post local e notifica o autor
- Create   → guarda a referência ao post remoto
- Announce → guarda o boost
- Accept   → marca como aceito o Follow que enviamos
- Reject   → descarta o Follow que enviamos

Todos rodam dentro da transação de efeitos colaterais aberta pelo processor
(`ctx.session`); nada é enviado antes do commit.
"""

import logging

from sqlalchemy import delete, select

from app.activitypub.activities import ActivityType, build_accept
from app.activitypub.errors import MalformedActivity, SenderMismatch, UnknownActivityType
from app.activitypub.inbox import InboxContext, InboxProcessor
from app.models.actor import LocalActor
from app.models.follower import Follower
from app.models.following import Following
from app.models.post import Boost, Like, Post, RemotePost
from app.services.notifications import NotificationType

log = logging.getLogger(__name__)


def _object_uri(value) -> str | None:
    if isinstance(value, dict):
        return value.get("id")
    return value


# ---------------------------------------------------------------------------
# Desfazer efeitos: compartilhado entre Undo embutido e Undo por URI
# ---------------------------------------------------------------------------


async def _remove_follower(ctx: InboxContext) -> None:
    await ctx.session.execute(
        delete(Follower).where(
            Follower.username == ctx.target.username,
            Follower.actor_url == ctx.sender.id,
        )
    )


async def _remove_like(ctx: InboxContext, like: Like) -> None:
    post = await ctx.session.get(Post, like.object_uri)
    if post is not None:
        post.like_count = max(0, post.like_count - 1)
    await ctx.session.delete(like)


async def _find_like(ctx: InboxContext, object_uri: str | None) -> Like | None:
    if not object_uri:
        return None
    result = await ctx.session.execute(
        select(Like).where(
            Like.actor_url == ctx.sender.id,
            Like.object_uri == object_uri,
        )
    )
    return result.scalar_one_or_none()


async def _undo_by_reference(ctx: InboxContext, activity_id: str | None) -> None:
    """Undo que traz só a URI da atividade original: procura onde ela foi gravada."""
    if not activity_id:
        raise MalformedActivity("Undo has no object")

    session, sender = ctx.session, ctx.sender

    follower = await session.execute(
        select(Follower).where(
            Follower.username == ctx.target.username,
            Follower.actor_url == sender.id,
            Follower.follow_activity_id == activity_id,
        )
    )
    if follower.scalar_one_or_none() is not None:
        await _remove_follower(ctx)
        return

    like = await session.get(Like, activity_id)
    if like is not None and like.actor_url == sender.id:
        await _remove_like(ctx, like)
        return

    boost = await session.get(Boost, activity_id)
    if boost is not None and boost.actor_url == sender.id:
        await session.delete(boost)
        return

    log.info(f"Undo de {activity_id} não corresponde a nada gravado")


def register_handlers(processor: InboxProcessor) -> None:
    """
    Registra os handlers de atividades no InboxProcessor.
    Chamado por build_federation() após criar o processor.
    """

    @processor.on(ActivityType.FOLLOW)
    async def on_follow(ctx: InboxContext):
        """
        Grava (ou atualiza) o follower e notifica o actor seguido.
        Com auto-accept ligado, o Accept é enfileirado para depois do commit.
        """
        activity, target, sender = ctx.activity, ctx.target, ctx.sender
        if activity.object_id != target.actor_id:
            raise MalformedActivity(f"Follow object is not {target.actor_id}")

        await ctx.session.merge(
            Follower(
                username=target.username,
                actor_url=sender.id,
                inbox_url=sender.delivery_inbox,
                follow_activity_id=activity.id,
            )
        )
        ctx.notify(NotificationType.FOLLOW, target.username, activity.id)

        if ctx.auto_accept:
            ctx.send(build_accept(target.actor_id, activity), sender.delivery_inbox)
        log.info(f"Follow de {sender.id} para {target.username}")

    @processor.on(ActivityType.LIKE)
    async def on_like(ctx: InboxContext):
        activity, sender, session = ctx.activity, ctx.sender, ctx.session

        post = await session.get(Post, activity.object_id) if activity.object_id else None
        if post is None:
            log.info(f"Like em objeto que não é post local: {activity.object_id}")
            return
        if await _find_like(ctx, post.uri) is not None:
            return

        session.add(Like(activity_id=activity.id, actor_url=sender.id, object_uri=post.uri))
        post.like_count += 1

        author = await session.get(LocalActor, post.author_username)
        if author is not None and author.actor_id != sender.id:
            ctx.notify(NotificationType.LIKE, author.username, post.uri)

    @processor.on(ActivityType.CREATE)
    async def on_create(ctx: InboxContext):
        activity, obj = ctx.activity, ctx.activity.object

        if isinstance(obj, dict):
            uri = obj.get("id")
            if not isinstance(uri, str):
                raise MalformedActivity("Create object has no id")
            in_reply_to = _object_uri(obj.get("inReplyTo"))
            content = obj.get("content")
            published = obj.get("published")
        elif isinstance(obj, str):
            uri, in_reply_to, content, published = obj, None, None, None
        else:
            raise MalformedActivity("Create has no object")

        # O autor gravado é sempre quem assinou, nunca o attributedTo declarado
        await ctx.session.merge(
            RemotePost(
                uri=uri,
                attributed_to=ctx.sender.id,
                content=content,
                in_reply_to=in_reply_to,
                published=published,
                activity_id=activity.id,
            )
        )

    @processor.on(ActivityType.ANNOUNCE)
    async def on_announce(ctx: InboxContext):
        object_uri = ctx.activity.object_id
        if not object_uri:
            raise MalformedActivity("Announce has no object")
        await ctx.session.merge(
            Boost(
                activity_id=ctx.activity.id,
                actor_url=ctx.sender.id,
                object_uri=object_uri,
            )
        )

    async def _pending_follow(ctx: InboxContext) -> Following | None:
        result = await ctx.session.execute(
            select(Following).where(
                Following.username == ctx.target.username,
                Following.actor_url == ctx.sender.id,
            )
        )
        return result.scalar_one_or_none()

    @processor.on(ActivityType.ACCEPT)
    async def on_accept(ctx: InboxContext):
        if ctx.activity.object_type not in (None, ActivityType.FOLLOW.value):
            log.info(f"Accept de {ctx.activity.object_type} ignorado")
            return
        following = await _pending_follow(ctx)
        if following is None:
            log.info(f"Accept de {ctx.sender.id} sem Follow pendente")
            return
        following.accepted = True

    @processor.on(ActivityType.REJECT)
    async def on_reject(ctx: InboxContext):
        if ctx.activity.object_type not in (None, ActivityType.FOLLOW.value):
            log.info(f"Reject de {ctx.activity.object_type} ignorado")
            return
        following = await _pending_follow(ctx)
        if following is not None:
            await ctx.session.delete(following)

    # -- Undo ---------------------------------------------------------------

    async def undo_follow(ctx: InboxContext, inner: dict) -> None:
        # Só desfaz o Follow cujo alvo é o dono deste inbox
        followed = _object_uri(inner.get("object"))
        if followed is not None and followed != ctx.target.actor_id:
            log.info(f"Undo de Follow para {followed} ignorado no inbox de {ctx.target.username}")
            return
        await _remove_follower(ctx)

    async def undo_like(ctx: InboxContext, inner: dict) -> None:
        like = await _find_like(ctx, _object_uri(inner.get("object")))
        if like is None and isinstance(inner.get("id"), str):
            like = await ctx.session.get(Like, inner["id"])
            if like is not None and like.actor_url != ctx.sender.id:
                like = None
        if like is not None:
            await _remove_like(ctx, like)

    async def undo_announce(ctx: InboxContext, inner: dict) -> None:
        await ctx.session.execute(
            delete(Boost).where(
                Boost.actor_url == ctx.sender.id,
                Boost.object_uri == _object_uri(inner.get("object")),
            )
        )

    undo_handlers = {
        ActivityType.FOLLOW.value: undo_follow,
        ActivityType.LIKE.value: undo_like,
        ActivityType.ANNOUNCE.value: undo_announce,
    }

    @processor.on(ActivityType.UNDO)
    async def on_undo(ctx: InboxContext):
        inner = ctx.activity.object
        if not isinstance(inner, dict) or "type" not in inner:
            await _undo_by_reference(ctx, _object_uri(inner))
            return

        inner_actor = _object_uri(inner.get("actor"))
        if inner_actor is not None and inner_actor != ctx.sender.id:
            raise SenderMismatch(f"Undo of an activity by {inner_actor}")

        handler = undo_handlers.get(inner.get("type"))
        if handler is None:
            raise UnknownActivityType(inner.get("type"))
        await handler(ctx, inner)
