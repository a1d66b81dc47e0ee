"""Process configuration, read from environment variables."""

import logging
import os
from dataclasses import dataclass, field
from typing import List


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    host: str = '0.0.0.0'
    port: int = 3000
    cors_origins: List[str] = field(default_factory=lambda: ['*'])
    # pause after an accepted night action so the host device can finish its audio cue
    action_delay: float = 3.0
    discussion_seconds: int = 105
    min_players: int = 4
    room_code_length: int = 6
    room_idle_seconds: float = 3600.0
    reap_interval: float = 60.0
    log_level: str = 'INFO'
    socketio_logger: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv('MAFIA_CORS_ORIGINS', '*')
        return cls(
            host=os.getenv('MAFIA_HOST', '0.0.0.0'),
            port=int(os.getenv('PORT', '3000')),
            cors_origins=[o.strip() for o in origins.split(',') if o.strip()] or ['*'],
            action_delay=float(os.getenv('MAFIA_ACTION_DELAY', '3')),
            discussion_seconds=int(os.getenv('MAFIA_DISCUSSION_SECONDS', '105')),
            min_players=max(4, int(os.getenv('MAFIA_MIN_PLAYERS', '4'))),
            room_code_length=int(os.getenv('MAFIA_ROOM_CODE_LENGTH', '6')),
            room_idle_seconds=float(os.getenv('MAFIA_ROOM_IDLE_SECONDS', '3600')),
            reap_interval=float(os.getenv('MAFIA_REAP_INTERVAL', '60')),
            log_level=os.getenv('MAFIA_LOG_LEVEL', 'INFO').upper(),
            socketio_logger=_env_bool('MAFIA_SOCKETIO_LOGGER', False),
        )


def configure_logging(level: str = 'INFO'):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
