from datetime import datetime, timezone

from gigsync import config
from gigsync.pipeline.io import trim_log_by_time


def console_log(message, level="INFO"):
    """Default log_func: console only."""
    print(message)


class RunLog:
    """
    Log a message to both console and an in-memory buffer, then append the
    buffer to the rolling run log file when the job finishes.
    Instances are callable so they can be passed anywhere a log_func is accepted.
    """

    def __init__(self, job, echo=True):
        self.job = job
        self.echo = echo
        self.lines = []

    def __call__(self, message, level="INFO"):
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        if self.echo:
            print(message)
        self.lines.append(f"[{timestamp}] [{level}] {message}")

    def warning(self, message):
        self(message, "WARNING")

    def error(self, message):
        self(message, "ERROR")

    def save(self, log_path=None, retention_days=config.LOG_RETENTION_DAYS):
        """Write retained history plus this run's entries (time-based retention)."""
        log_path = log_path or config.LOG_PATH
        existing_log = trim_log_by_time(log_path, retention_days=retention_days)
        log_content = existing_log + [f"\n--- New Run: {self.job} ---\n"] + [line + "\n" for line in self.lines]

        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "w") as f:
            f.writelines(log_content)
        return log_path
