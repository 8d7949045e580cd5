# sitecheck/__main__.py
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

import httpx

from .audit.runner import audit_site
from .database import create_db_engine, create_session_factory, init_db
from .errors import AuditError
from .pipeline import AuditPipeline
from .report.synthesizer import build_synthesizer
from .repository import SqlAlchemyAuditRepository
from .schemas import AuditStatus, ModuleKey
from .services.email_reports import build_gateway
from .services.logger import configure_logging
from .settings import get_settings

logger = logging.getLogger("sitecheck")

MODULE_CHOICES = [k.value for k in ModuleKey]


async def _check(url: str, modules: List[str], competitor: Optional[str]) -> int:
    keys = [ModuleKey(m) for m in modules] if modules else list(ModuleKey)
    result = await audit_site(url, keys, competitor_url=competitor)
    print(json.dumps(result.to_json_dict(), indent=2, ensure_ascii=False))
    return 0


async def _process(audit_id: str) -> int:
    settings = get_settings()
    repository = SqlAlchemyAuditRepository(create_session_factory(settings.DATABASE_URL))
    async with httpx.AsyncClient(follow_redirects=True, timeout=None) as client:
        pipeline = AuditPipeline(
            repository,
            build_synthesizer(settings),
            build_gateway(client, settings),
            settings=settings,
            client=client,
        )
        status = await pipeline.process(audit_id)
    print(status.value)
    return 0 if status == AuditStatus.COMPLETED else 1


def _create(url: str, email: str, modules: List[str], competitor: Optional[str]) -> int:
    settings = get_settings()
    repository = SqlAlchemyAuditRepository(create_session_factory(settings.DATABASE_URL))
    audit_id = repository.create_audit(url, email, modules or MODULE_CHOICES, competitor_url=competitor)
    print(audit_id)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitecheck", description="Single-page SEO audits.")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Audit a URL and print the raw result as JSON")
    check.add_argument("url")
    check.add_argument("--module", "-m", action="append", choices=MODULE_CHOICES, default=[],
                       help="Module to run (repeatable; default: all)")
    check.add_argument("--competitor", help="Competitor URL for the competitor overview")

    create = sub.add_parser("create", help="Queue a pending audit in the database and print its id")
    create.add_argument("url")
    create.add_argument("--email", required=True)
    create.add_argument("--module", "-m", action="append", choices=MODULE_CHOICES, default=[])
    create.add_argument("--competitor")

    process = sub.add_parser("process", help="Run the full pipeline for a stored audit")
    process.add_argument("audit_id")

    init = sub.add_parser("init-db", help="Create database tables")
    init.add_argument("--drop-all", action="store_true", help="Drop every table first")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        if args.command == "check":
            return asyncio.run(_check(args.url, args.module, args.competitor))
        if args.command == "create":
            return _create(args.url, args.email, args.module, args.competitor)
        if args.command == "process":
            return asyncio.run(_process(args.audit_id))
        init_db(create_db_engine(get_settings().DATABASE_URL), drop_all=args.drop_all)
        return 0
    except AuditError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
