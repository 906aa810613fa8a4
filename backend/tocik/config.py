from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    tocik_data_dir: Path = Path.home() / ".tocik" / "data"
    sqlite_filename: str = "tocik.db"
    host: str = "127.0.0.1"
    port: int = 0  # 0 = pick a free port
    log_level: str = "warning"

    # Scheduler tuning (see services.scheduler.SchedulerParams)
    initial_interval: int = 1
    initial_ease_factor: float = 2.5
    minimum_ease_factor: float = 1.3
    failure_penalty: float = 0.2
    success_bonus: float = 0.1
    second_interval: int = 6
    ease_precision: int = 2
    maximum_interval: int = 36500  # days
    strict_scheduling: bool = False  # reject corrupt card state instead of clamping

    learning_curve_limit: int = 100  # review log rows kept per card
    due_queue_limit: int = 20
    forecast_days: int = 7

    model_config = {"env_prefix": "TOCIK_"}


settings = Settings()
