import datetime as dt

import pytest


@pytest.fixture
def d0():
    return dt.date(2026, 1, 27)


@pytest.fixture
def waka_day():
    def make(date, seconds, languages=None):
        day = {"range": {"date": date}, "grand_total": {"total_seconds": seconds}}
        if languages is not None:
            day["languages"] = languages
        return day

    return make
