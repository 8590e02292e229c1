"""
Comandos de operação dos actors locais.
Uso: uv run python scripts/manage.py <comando> [argumentos]

    create-actor alice --name "Alice" --summary "..."
    follow       alice bob@b.example
    unfollow     alice bob@b.example
    post         alice "Olá, fediverso"
"""

import argparse
import asyncio

from app import database
from app.activitypub.errors import FederationError
from app.federation import build_federation, build_http_client


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="manage")
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create-actor", help="cria um actor local com par de chaves")
    create.add_argument("username")
    create.add_argument("--name", dest="display_name")
    create.add_argument("--summary", default="")

    for name in ("follow", "unfollow"):
        sub = commands.add_parser(name, help=f"{name} de um actor remoto")
        sub.add_argument("username")
        sub.add_argument("target", help="user@domain ou URI do actor")

    post = commands.add_parser("post", help="publica uma nota para os followers")
    post.add_argument("username")
    post.add_argument("content")

    return parser


async def run(args: argparse.Namespace, session_factory=None, http=None) -> int:
    if session_factory is None:
        await database.init_db()
        session_factory = database.async_session_factory

    owns_client = http is None
    http = http or build_http_client()
    federation = build_federation(http, session_factory)

    try:
        if args.command == "create-actor":
            actor = await federation.actors.create_local_actor(
                args.username, args.display_name, args.summary
            )
            print(f"✓ {actor.actor_id} criado.")
        elif args.command == "follow":
            result = await federation.service.follow(args.username, args.target)
            print(f"{'✓' if result.ok else '✗'} Follow entregue em {result.inbox_uri}")
            return 0 if result.ok else 1
        elif args.command == "unfollow":
            result = await federation.service.unfollow(args.username, args.target)
            if result is None:
                print(f"✗ {args.username} não segue {args.target}")
                return 1
            print(f"{'✓' if result.ok else '✗'} Undo entregue em {result.inbox_uri}")
            return 0 if result.ok else 1
        elif args.command == "post":
            post, results = await federation.service.publish_note(args.username, args.content)
            delivered = sum(r.ok for r in results)
            print(f"✓ {post.uri} publicado ({delivered}/{len(results)} inboxes)")
    except (FederationError, ValueError) as e:
        print(f"✗ {e}")
        return 1
    finally:
        if owns_client:
            await http.aclose()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
