"""
Age checks for log files and backups
"""

import os
from datetime import datetime
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from .config import AgeType

Moment = Union[datetime, float, int]


def _to_datetime(moment: Moment) -> datetime:
    if isinstance(moment, datetime):
        return moment
    return datetime.fromtimestamp(moment)


def add_age(moment: Moment, age_type: Union[AgeType, int], amount: int) -> datetime:
    """
    Add ``amount`` days, months or years to ``moment``

    Month and year arithmetic clamp to the last valid day, so Jan 31 plus
    one month is the last day of February. Any ``age_type`` that is not a
    known AgeType counts as years.
    """
    moment = _to_datetime(moment)
    if age_type == AgeType.DAYS:
        return moment + relativedelta(days=amount)
    if age_type == AgeType.MONTHS:
        return moment + relativedelta(months=amount)
    return moment + relativedelta(years=amount)


def is_obsolete(
    modified: Moment,
    age_type: Union[AgeType, int],
    amount: int,
    now: Optional[Moment] = None,
) -> bool:
    """True if ``modified`` plus the configured age is not in the future"""
    current = _to_datetime(now) if now is not None else datetime.now()
    return add_age(modified, age_type, amount) <= current


def path_is_obsolete(
    path: Union[str, "os.PathLike[str]"],
    age_type: Union[AgeType, int],
    amount: int,
    now: Optional[Moment] = None,
) -> bool:
    """Check a file's modification time; missing files are never obsolete"""
    try:
        modified = os.stat(path).st_mtime
    except OSError:
        return False
    return is_obsolete(modified, age_type, amount, now)
