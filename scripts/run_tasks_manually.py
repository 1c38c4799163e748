# run_tasks_manually.py
import argparse
import logging

from app.core.logging_config import setup_logging
from app.dependencies import get_db_context
from app.services.auth import create_user_token
from app.services.user_levels import refresh_user_tiers
from app.crud import user as crud_user

logger = logging.getLogger("app.scripts")


def issue_token(email: str) -> None:
    """Печатает JWT для пользователя (для ручной проверки API)."""
    with get_db_context() as db:
        user = crud_user.get_user_by_email(db, email)
        if not user:
            print(f"User {email} not found.")
            return
        print(create_user_token(user.id))


def main():
    """
    Ручной запуск фоновых задач.
    """
    parser = argparse.ArgumentParser(description="Manual task runner")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("refresh-tiers", help="Пересчитать уровни лояльности всех пользователей")
    token_parser = subparsers.add_parser("issue-token", help="Выпустить JWT для пользователя")
    token_parser.add_argument("email")
    args = parser.parse_args()

    setup_logging()
    print("--- Manual Task Runner ---")

    if args.command == "refresh-tiers":
        print("Running: refresh_user_tiers...")
        refresh_user_tiers()
        print("Done.")
    elif args.command == "issue-token":
        issue_token(args.email)


if __name__ == "__main__":
    main()
