from enum import IntEnum, StrEnum

DECK_NAME_MAX = 100
DEFAULT_DECK_NAME = 'Inbox'
DECK_PATH_SEPARATOR = '/'

RETENTION_WINDOW = 100
FORECAST_DAYS = 7

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


class Rating(IntEnum):
    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3


class CardType(StrEnum):
    BASIC = 'basic'
    CLOZE = 'cloze'
    IMAGE = 'image'


class DeleteMode(StrEnum):
    CASCADE = 'cascade'
    REPARENT = 'reparent'
