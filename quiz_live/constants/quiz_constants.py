"""Quiz-related constants shared across the host, participants and server."""

# Session codes avoid 0/O and 1/I so they can be read off a projector.
SESSION_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SESSION_CODE_LENGTH: int = 6
SESSION_CODE_MAX_ATTEMPTS: int = 10

DEFAULT_TIME_LIMITS: dict[str, int] = {
    "mc": 20,
    "tf": 15,
    "open": 20,
    "sorting": 30,
    "slider": 20,
}
DEFAULT_WORDCLOUD_MAX_SUBMISSIONS: int = 3
MIN_SORTING_ITEMS: int = 3

CHOICE_BASE_POINTS: int = 500
CHOICE_SPEED_POINTS: int = 500
SORTING_POINTS_PER_POSITION: int = 200
SORTING_ALL_CORRECT_BONUS: int = 200
SLIDER_POINT_BANDS: tuple[tuple[int, int], ...] = ((1, 1000), (2, 800), (4, 500), (8, 200))
MIN_TIME_FACTOR: float = 0.5

WORDCLOUD_MIN_FONT_SIZE: int = 16
WORDCLOUD_FONT_STEP: int = 12
WORDCLOUD_MAX_FONT_SIZE: int = 60

SESSIONS_ROOT: str = "sessions"
RESULTS_ROOT: str = "quizResults"
