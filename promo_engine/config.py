import os

class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # discounts.* store settings
    DISCOUNTS_ENABLED = os.getenv("DISCOUNTS_ENABLED", "true").lower() != "false"
    # empty means no cap
    DISCOUNTS_MAX_PER_ORDER = os.getenv("DISCOUNTS_MAX_PER_ORDER", "1")
    DISCOUNTS_STACKING = os.getenv("DISCOUNTS_STACKING", "false").lower() == "true"
    # optimistic-lock retries per rule during commit
    DISCOUNTS_COMMIT_RETRIES = int(os.getenv("DISCOUNTS_COMMIT_RETRIES") or 3)

    @staticmethod
    def init_app(app):
        from .engine.resolver import DiscountSettings
        # bad discount settings fail at startup, not on the first request
        DiscountSettings.from_config(app.config)

        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'discounts.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")
