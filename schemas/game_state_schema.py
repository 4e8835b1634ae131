from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AttemptKind = Literal["guess", "skip"]
MediaKind = Literal["movie", "series"]
GameStatus = Literal["unplayed", "in-progress", "completed-won", "completed-lost"]


class CamelModel(BaseModel):
    # JSON persistido y expuesto en camelCase, atributos en snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Attempt(CamelModel):
    id: str
    kind: AttemptKind
    correct: bool = False
    title: Optional[str] = None
    subject_id: Optional[int] = None
    media_kind: Optional[MediaKind] = None
    timestamp: int = 0


class GameState(CamelModel):
    date: str
    attempts: int = 0
    max_attempts: int = 3
    attempt_log: list[Attempt] = []
    completed: bool = False
    won: bool = False
    current_hint_level: int = Field(default=1, ge=1, le=3)


class ValidationResult(CamelModel):
    is_valid: bool
    was_fixed: bool
    validated_state: Optional[GameState] = None
    issues: list[str] = []


class GuessRequest(CamelModel):
    title: str
    subject_id: int
    media_kind: MediaKind
    correct: bool = False


class GameStatusInfo(CamelModel):
    status: Literal["unplayed", "partial", "completed"]
    completion: Literal["won", "lost", "incomplete"]
    attempts: int
    can_resume: bool
    display_text: str


class GameStateResponse(CamelModel):
    date: str
    state: Optional[GameState] = None
    status: GameStatus
    info: GameStatusInfo
    progress: float = 0
    resume_message: str = ""


class SyncResponse(GameStateResponse):
    imported: bool


class DataSummary(CamelModel):
    games: int = 0
    completed: int = 0
    in_progress: int = 0


class GameListResponse(CamelModel):
    dates: list[str] = []
    summary: DataSummary


class GameStats(CamelModel):
    games_played: int = 0
    games_won: int = 0
    current_streak: int = 0
    max_streak: int = 0
    last_played_date: str = ""


class CleanupResponse(BaseModel):
    deleted: int


class UserSettings(CamelModel):
    dark_mode: Optional[bool] = None
    reduced_motion: Optional[bool] = None
    high_contrast: Optional[bool] = None
