"""Load the default English and Arabic notification templates."""

from __future__ import annotations

import argparse

from sqlalchemy.exc import SQLAlchemyError

from crm.application.use_cases.notifications.default_templates import (
    build_default_templates,
    seed_default_templates,
)
from crm.infrastructure.database import SessionLocal, initialize_database


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Insert or refresh the default notification templates.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the templates that would be written without touching the database.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    if args.dry_run:
        for template in build_default_templates():
            print(
                f"{template.type.value:<24} {template.language} "
                f"{template.channel.value:<7} {template.title}"
            )
        return

    initialize_database()

    session = SessionLocal()
    try:
        written = seed_default_templates(session)
    except SQLAlchemyError as exc:
        session.rollback()
        raise SystemExit(f"Could not store notification templates: {exc}") from exc
    else:
        print(f"Seeded {written} notification templates.")
    finally:
        session.close()


if __name__ == "__main__":
    main()
