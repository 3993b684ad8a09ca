from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from deeptransfer.core.transfer.plan import DEFAULT_MAX_DEPTH


def _flag(name: str, default: str) -> bool:
    return (os.getenv(name) or default).strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class TransferSettings:
    env: str = "dev"
    catalog_file: Optional[Path] = None
    export_max_depth: int = DEFAULT_MAX_DEPTH
    security_headers_enabled: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "TransferSettings":
        env = (os.getenv("TRANSFER_ENV") or "dev").strip().lower()

        catalog_raw = (os.getenv("TRANSFER_CATALOG_FILE") or "").strip()
        catalog_file = Path(catalog_raw) if catalog_raw else None

        depth_raw = (os.getenv("TRANSFER_EXPORT_MAX_DEPTH") or str(DEFAULT_MAX_DEPTH)).strip()
        try:
            max_depth = int(depth_raw)
        except ValueError as e:
            raise ValueError(f"TRANSFER_EXPORT_MAX_DEPTH must be an integer, got {depth_raw!r}") from e
        if max_depth < 0:
            raise ValueError(f"TRANSFER_EXPORT_MAX_DEPTH must be >= 0, got {max_depth}")

        origins_raw = (os.getenv("TRANSFER_CORS_ORIGINS") or "").strip()
        origins = [o.strip() for o in origins_raw.split(",") if o.strip()] if origins_raw else ["*"]

        return cls(
            env=env,
            catalog_file=catalog_file,
            export_max_depth=max_depth,
            security_headers_enabled=_flag(
                "TRANSFER_SECURITY_HEADERS_ENABLED", "true" if env == "prod" else "false"
            ),
            cors_origins=origins,
        )
