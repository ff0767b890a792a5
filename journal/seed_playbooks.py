"""
Seed script: populates the playbook with the default strategies and the
default account balance.
Run from project root: python -m journal.seed_playbooks

Safe to run repeatedly; nothing is inserted once the playbook has entries.
"""
import logging

from config.settings import settings
from journal import database

logger = logging.getLogger(__name__)

DEFAULT_PLAYBOOKS = [
    {
        "name": "No Strategy",
        "description": "No strategy assigned - needs categorization",
    },
    {
        "name": "Pullback long off VWAP",
        "description": "Long calls when price pulls back to VWAP with volume confirmation",
    },
    {
        "name": "Short off Call Resistance",
        "description": "Short puts when price rejects at call resistance level",
    },
    {
        "name": "Long off Resistance",
        "description": "Long calls when price breaks above resistance with volume",
    },
    {
        "name": "Long off Put Support",
        "description": "Long calls when price bounces off put support with volume",
    },
    {
        "name": "Short off Put Support",
        "description": "Short puts when price breaks below put support level",
    },
]

DEFAULT_SETTINGS = {
    "account_balance": settings.DEFAULT_ACCOUNT_BALANCE,
}


def seed_defaults() -> int:
    """Insert default playbooks and settings that are not present yet.

    Returns the number of playbooks inserted.
    """
    count = 0
    if not database.list_playbook_strategies():
        for p in DEFAULT_PLAYBOOKS:
            database.create_playbook_strategy({**p, "is_default": True})
            count += 1

    for key, value in DEFAULT_SETTINGS.items():
        if database.get_setting(key) is None:
            database.set_setting(key, value)

    if count:
        logger.info("Seeded %d default playbook strategies", count)
    return count


def main():
    logging.basicConfig(level=settings.LOG_LEVEL)
    database.init_db()
    count = seed_defaults()
    print(f"Done! Seeded {count} playbook strategies into {database.DB_PATH}")


if __name__ == "__main__":
    main()
