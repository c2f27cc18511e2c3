from __future__ import annotations

import os
from dataclasses import dataclass, field, fields

DEFAULT_DATABASE_URL = "sqlite:///dinner_planner.db"


def _env_list(name: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


@dataclass
class Config:
    secret_key: str = "change-me"
    database_url: str = DEFAULT_DATABASE_URL
    cors_allowed_origins: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    # "plan" serializes counter increments per access key, "global" uses one lock for all plans
    quota_lock_scope: str = "plan"
    # Gate bypass paths
    discovery_path: str = "/openapi.json"
    public_document_prefix: str = "/documents/"
    registration_path: str = "/people"
    sequencer_isolation_level: str = "SERIALIZABLE"

    @classmethod
    def from_env(cls) -> Config:
        defaults = cls()
        return cls(
            secret_key=os.getenv("SECRET_KEY", defaults.secret_key),
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            cors_allowed_origins=_env_list("CORS_ALLOW_ORIGINS"),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            quota_lock_scope=os.getenv("QUOTA_LOCK_SCOPE", "").strip().lower() or defaults.quota_lock_scope,
            discovery_path=os.getenv("DISCOVERY_PATH", defaults.discovery_path),
            public_document_prefix=os.getenv("PUBLIC_DOCUMENT_PREFIX", defaults.public_document_prefix),
            registration_path=os.getenv("REGISTRATION_PATH", defaults.registration_path),
            sequencer_isolation_level=os.getenv("SEQUENCER_ISOLATION_LEVEL", defaults.sequencer_isolation_level),
        )

    def override(self, d: dict):
        names = {f.name for f in fields(self)}
        for k, v in d.items():
            if k in names:
                setattr(self, k, v)

    def to_flask_dict(self) -> dict[str, object]:
        # Flask keys are the upper-cased field names, except the SQLAlchemy URI
        out: dict[str, object] = {f.name.upper(): getattr(self, f.name) for f in fields(self)}
        out["SQLALCHEMY_DATABASE_URI"] = out.pop("DATABASE_URL")
        return out
