import argparse
import signal
import threading

from loguru import logger

from padel_alert.config import get_settings
from padel_alert.db.database import get_session_factory, init_db
from padel_alert.log import configure_logging

settings = get_settings()


def init_database():
    """Create all tables"""
    init_db()


def run_scheduler():
    """Run only the scheduler until SIGINT/SIGTERM"""
    from padel_alert.scheduler import start_scheduler

    init_db()
    scheduler = start_scheduler(settings)

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    stop.wait()

    logger.info("Stopping scheduler")
    scheduler.stop()


def check_rule(rule_id: str):
    """Evaluate one rule right now and reschedule it"""
    from padel_alert.scheduler import create_scheduler

    scheduler = create_scheduler(settings)
    if scheduler.rule_storage.get_rule(rule_id) is None:
        logger.error(f"Unknown rule: {rule_id}")
        return
    scheduler.run_rule(rule_id)
    logger.info(f"Rule {rule_id} next run: {scheduler.rule_storage.get_next_run(rule_id)}")


def purge_seen():
    from padel_alert.scheduler.jobs import purge_seen_activities
    from padel_alert.storage.seen_cache import SeenCache

    purge_seen_activities(SeenCache(get_session_factory()), settings.seen_retention_days)


def main():
    parser = argparse.ArgumentParser(description="PadelAlert CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    subparsers.add_parser("init", help="Initialize database")

    # serve command
    subparsers.add_parser("serve", help="Start API server with the scheduler")

    # run command
    subparsers.add_parser("run", help="Run the scheduler without the API")

    # check command
    check_parser = subparsers.add_parser("check", help="Evaluate one rule now")
    check_parser.add_argument("rule_id", help="Rule ID")

    # purge-seen command
    subparsers.add_parser("purge-seen", help="Forget seen activities that already took place")

    args = parser.parse_args()
    configure_logging(settings.log_level)

    if args.command == "init":
        init_database()
    elif args.command == "serve":
        import uvicorn

        uvicorn.run(
            "padel_alert.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.debug,
        )
    elif args.command == "run":
        run_scheduler()
    elif args.command == "check":
        check_rule(args.rule_id)
    elif args.command == "purge-seen":
        purge_seen()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
