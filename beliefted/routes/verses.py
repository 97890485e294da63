from dataclasses import asdict
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query

from ..core.daily_verse import select_for_date

router = APIRouter(tags=["verses"])


@router.get("/daily-verse")
async def daily_verse(day: Optional[date] = Query(None, alias="date")):
    """Verse of the day, or of the given YYYY-MM-DD date"""
    day = day or datetime.now(timezone.utc).date()
    return {"date": day.isoformat(), **asdict(select_for_date(day))}
