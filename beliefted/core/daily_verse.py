from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Sequence, Union


@dataclass(frozen=True)
class Verse:
    reference: str
    text: str
    prompt: Optional[str] = None


DAILY_VERSES = (
    Verse(
        reference="Psalm 46:1",
        text="God is our refuge and strength, an ever-present help in trouble.",
        prompt="Where do you need His strength today?",
    ),
    Verse(
        reference="Philippians 4:6-7",
        text=(
            "Do not be anxious about anything, but in every situation, by prayer and "
            "petition, with thanksgiving, present your requests to God."
        ),
        prompt="What can you hand over in prayer right now?",
    ),
    Verse(
        reference="Isaiah 41:10",
        text="Do not fear, for I am with you; do not be dismayed, for I am your God.",
        prompt="What fear do you want to surrender today?",
    ),
    Verse(
        reference="Matthew 11:28",
        text="Come to me, all you who are weary and burdened, and I will give you rest.",
        prompt="Where do you need rest?",
    ),
    Verse(
        reference="Romans 12:12",
        text="Be joyful in hope, patient in affliction, faithful in prayer.",
        prompt="What is one way you can be faithful in prayer today?",
    ),
    Verse(
        reference="2 Corinthians 5:7",
        text="For we live by faith, not by sight.",
        prompt="Where is God asking you to trust Him?",
    ),
    Verse(
        reference="Joshua 1:9",
        text="Be strong and courageous. Do not be afraid; do not be discouraged.",
        prompt="What step of courage is in front of you?",
    ),
)

START_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)
ONE_DAY = timedelta(days=1)


def _as_utc(moment: Union[date, datetime]) -> datetime:
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment
    return datetime.combine(moment, time.min, tzinfo=timezone.utc)


def select_for_date(
    moment: Union[date, datetime, None] = None,
    verses: Sequence[Verse] = DAILY_VERSES,
) -> Verse:
    """Pick the verse for a day. The same day always yields the same verse."""
    if moment is None:
        moment = datetime.now(timezone.utc)
    days_since_start = (_as_utc(moment) - START_DATE) // ONE_DAY
    count = len(verses)
    index = ((days_since_start % count) + count) % count
    return verses[index]
