from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


def _default_export_dir() -> Path:
    return Path.home() / ".ergdrive" / "exports"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("true", "1", "yes")


@dataclass
class EngineConfig:
    tick_interval_sec: float = 1.0
    ftp_watts: int = 250
    target_cadence_rpm: int = 90
    front_gears: int = 2
    rear_gears: int = 11
    shift_delay_sec: float = 0.5
    connect_timeout_sec: float = 5.0
    auto_shift: bool = True
    export_dir: Path = field(default_factory=_default_export_dir)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.tick_interval_sec <= 0:
            raise ValueError("tick_interval_sec must be > 0")
        if self.ftp_watts <= 0:
            raise ValueError("ftp_watts must be > 0")
        if self.target_cadence_rpm <= 0:
            raise ValueError("target_cadence_rpm must be > 0")
        if self.front_gears < 1 or self.rear_gears < 1:
            raise ValueError("gear counts must be >= 1")
        if self.shift_delay_sec < 0 or self.connect_timeout_sec <= 0:
            raise ValueError("shift_delay_sec must be >= 0 and connect_timeout_sec > 0")

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> EngineConfig:
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()  # loads .env from cwd

        export_dir = os.environ.get("ERGDRIVE_EXPORT_DIR")
        return cls(
            tick_interval_sec=float(os.environ.get("ERGDRIVE_TICK_INTERVAL", "1.0")),
            ftp_watts=int(os.environ.get("ERGDRIVE_FTP_WATTS", "250")),
            target_cadence_rpm=int(os.environ.get("ERGDRIVE_TARGET_CADENCE", "90")),
            front_gears=int(os.environ.get("ERGDRIVE_FRONT_GEARS", "2")),
            rear_gears=int(os.environ.get("ERGDRIVE_REAR_GEARS", "11")),
            shift_delay_sec=float(os.environ.get("ERGDRIVE_SHIFT_DELAY", "0.5")),
            connect_timeout_sec=float(os.environ.get("ERGDRIVE_CONNECT_TIMEOUT", "5.0")),
            auto_shift=_env_bool("ERGDRIVE_AUTO_SHIFT", True),
            export_dir=Path(export_dir).expanduser() if export_dir else _default_export_dir(),
            log_level=os.environ.get("ERGDRIVE_LOG_LEVEL", "INFO").upper(),
        )
