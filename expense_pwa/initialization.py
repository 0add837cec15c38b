# expense_pwa/initialization.py
"""First-launch data: the default account and categories."""

import logging

from .accounts import get_default_account, initialize_default_account
from .categories import initialize_default_categories

logger = logging.getLogger("expense-pwa")


def initialize_default_data(store):
    logger.info("Initializing default data...")
    initialize_default_account(store)
    initialize_default_categories(store)
    logger.info("Default data initialization complete")


def is_first_time_user(store):
    return store.accounts.count() == 0 and store.transactions.count() == 0


def get_initialization_status(store):
    accounts = store.accounts.count()
    categories = store.categories.count()
    return {
        "accounts": accounts,
        "categories": categories,
        "transactions": store.transactions.count(),
        "isInitialized": accounts > 0 and categories > 0,
        "isFirstTimeUser": is_first_time_user(store),
        "defaultAccountId": (get_default_account(store) or {}).get("id"),
    }
