from __future__ import annotations

from copy import deepcopy

DEFAULT_CATEGORIES = ["general", "technology", "business", "health", "sports", "entertainment"]

DEFAULT_CONFIG = {
    "newsapi": {
        "api_key": "YOUR_API_KEY_HERE",
        "user_api_key": "",
        "base_url": "https://newsapi.org/v2",
        "user_agent": "headline-sync/0.1",
        "categories": list(DEFAULT_CATEGORIES),
        "request_timeout": 10,
        "retry_count": 1,
        "retry_delay": 2,
    },
    "ticker": {
        "country": "br",
        "category": "general",
        "headline_count": 5,
    },
    "scheduler": {
        "enabled": False,
        "cron": None,
        "interval_minutes": None,
        "timezone": "UTC",
    },
    "database": {
        "enabled": True,
        "url": "sqlite:///data/headlines.sqlite",
    },
    "paths": {
        "data_dir": "data",
        "log_dir": "data/logs",
    },
    "logging": {"level": "INFO"},
}


def default_config_copy() -> dict:
    return deepcopy(DEFAULT_CONFIG)
