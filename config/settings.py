import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Storage
    JOURNAL_DB_PATH: str = os.getenv(
        "JOURNAL_DB_PATH",
        os.path.join(os.path.dirname(__file__), "..", "data", "journal.db"),
    )

    # API
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
    JOURNAL_API_URL: str = os.getenv("JOURNAL_API_URL", "http://localhost:8000")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Journal
    TIMEZONE: str = os.getenv("TIMEZONE", "America/Chicago")
    DEFAULT_ACCOUNT_BALANCE: str = os.getenv("DEFAULT_ACCOUNT_BALANCE", "25000")
    IMPORT_ENTRY_TIME: str = os.getenv("IMPORT_ENTRY_TIME", "09:30")
    IMPORT_EXIT_TIME: str = os.getenv("IMPORT_EXIT_TIME", "10:00")
    AUTOSAVE_DELAY: float = float(os.getenv("AUTOSAVE_DELAY", "2.0"))

    def validate(self):
        errors = []
        try:
            float(self.DEFAULT_ACCOUNT_BALANCE)
        except ValueError:
            errors.append("DEFAULT_ACCOUNT_BALANCE must be a number")
        for name in ("IMPORT_ENTRY_TIME", "IMPORT_EXIT_TIME"):
            value = getattr(self, name)
            parts = value.split(":")
            if len(parts) != 2 or not all(p.isdigit() for p in parts):
                errors.append(f"{name} must look like HH:MM (got {value!r})")
        if self.AUTOSAVE_DELAY < 0:
            errors.append("AUTOSAVE_DELAY cannot be negative")
        return errors


settings = Settings()
