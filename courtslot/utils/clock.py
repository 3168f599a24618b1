from datetime import datetime


def now() -> datetime:
    """Local wall-clock time, second precision. Court hours are local, so is everything else."""
    return datetime.now().replace(microsecond=0)
