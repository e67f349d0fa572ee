import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


@dataclass(slots=True)
class Config:
    # --- Constants ---
    PLAYER_COUNT: int = 4
    PIECES_PER_PLAYER: int = 4
    MAIN_CIRCUIT_SIZE: int = 40  # 0..39 shared loop
    HOME_PATH_SIZE: int = 4  # steps 1..4, last one is the home cell
    HOME_PATH_BASE: int = 100  # home cell = 100 * player_id + step
    START_SENTINEL: int = -1

    EXIT_ROLLS: tuple[int, ...] = (1, 6)
    BONUS_ROLL: int = 6
    DICE_MIN: int = 1
    DICE_MAX: int = 6

    # Per player id (1..4)
    PLAYER_COLORS: dict[int, str] = field(
        default_factory=lambda: {
            1: "#ff4141",
            2: "#41a7ff",
            3: "#ffda41",
            4: "#52ff41",
        }
    )
    START_ENTRIES: dict[int, int] = field(
        default_factory=lambda: {1: 6, 2: 16, 3: 26, 4: 36}
    )
    HOME_ENTRIES: dict[int, int] = field(
        default_factory=lambda: {1: 4, 2: 14, 3: 24, 4: 34}
    )
    # Warps sit on the home entries and link symmetric cells across the circuit
    WARP_PAIRS: list[tuple[int, int]] = field(
        default_factory=lambda: [(4, 24), (14, 34)]
    )
    GO_AGAIN_CELLS: list[int] = field(default_factory=lambda: [0, 10, 20, 30])

    # --- Tunables ---
    AI_ROLL_DELAY: float = float(os.getenv("AI_ROLL_DELAY", 1.5))
    AI_MOVE_DELAY: float = float(os.getenv("AI_MOVE_DELAY", 1.5))
    AI_DEFENSE_DELAY: float = float(os.getenv("AI_DEFENSE_DELAY", 1.0))
    SESSION_CODE_LENGTH: int = int(os.getenv("SESSION_CODE_LENGTH", 6))
    MAX_TURNS: int = int(os.getenv("MAX_TURNS", 2000))

    def __post_init__(self):
        for name in ("AI_ROLL_DELAY", "AI_MOVE_DELAY", "AI_DEFENSE_DELAY"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.SESSION_CODE_LENGTH < 1:
            raise ValueError("SESSION_CODE_LENGTH must be positive")
        if self.MAX_TURNS < 1:
            raise ValueError("MAX_TURNS must be positive")

    @property
    def player_ids(self) -> list[int]:
        return list(range(1, self.PLAYER_COUNT + 1))

    def home_cell(self, player_id: int, step: int) -> int:
        return self.HOME_PATH_BASE * player_id + step


config = Config()
