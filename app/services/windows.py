# app/services/windows.py
"""
Ventanas de tiempo y calendarios de actividad para el dashboard.

Todas las fechas se manejan en UTC. Las ventanas están alineadas al
calendario: la semana empieza el lunes y los semestres son ene-jun / jul-dic.
"""
from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from app.core.errors import InvalidInput
from app.core.timeutils import as_utc, utcnow

WINDOW_FILTERS = ("all", "day", "week", "month", "semester", "semester1", "semester2")


@dataclass(frozen=True)
class Window:
    filter: str
    start: Optional[datetime]
    end: Optional[datetime]

    def contains(self, ts: datetime) -> bool:
        ts = as_utc(ts)
        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts > self.end:
            return False
        return True


def _midnight(d: datetime) -> datetime:
    return d.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 23, 59, 59, 999999, tzinfo=timezone.utc)


def resolve_window(filter_name: str | None, now: datetime | None = None) -> Window:
    """
    day       -> hoy 00:00 .. ahora
    week      -> lunes 00:00 .. ahora
    month     -> día 1 00:00 .. ahora
    semester  -> inicio del semestre actual .. ahora
    semester1 -> 1 ene .. 30 jun (fin del día) del año actual
    semester2 -> 1 jul .. 31 dic (fin del día) del año actual
    all/None  -> sin límites
    """
    now = as_utc(now) if now else utcnow()
    name = (filter_name or "all").strip().lower()

    if name == "all":
        return Window(name, None, None)
    if name == "day":
        return Window(name, _midnight(now), now)
    if name == "week":
        monday = _midnight(now) - timedelta(days=now.weekday())
        return Window(name, monday, now)
    if name == "month":
        return Window(name, _midnight(now).replace(day=1), now)
    if name == "semester":
        start_month = 1 if now.month <= 6 else 7
        return Window(name, datetime(now.year, start_month, 1, tzinfo=timezone.utc), now)
    if name == "semester1":
        return Window(name, datetime(now.year, 1, 1, tzinfo=timezone.utc), _end_of_day(now.year, 6, 30))
    if name == "semester2":
        return Window(name, datetime(now.year, 7, 1, tzinfo=timezone.utc), _end_of_day(now.year, 12, 31))

    raise InvalidInput(f"Filtro inválido: '{filter_name}'. Use uno de: {', '.join(WINDOW_FILTERS)}")


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    if not 1 <= month <= 12:
        raise InvalidInput("El mes debe estar entre 1 y 12")
    if not 1 <= year <= 9999:
        raise InvalidInput("Año inválido")
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, 1, tzinfo=timezone.utc), _end_of_day(year, month, last_day)


def weekly_activity(timestamps: Iterable[datetime]) -> list[dict]:
    """
    Agrupa marcas de tiempo por semana ISO.
    Devuelve [{year, week_number, days[7]}] con lunes = 0, la semana más reciente primero.
    """
    weeks: dict[tuple[int, int], set[int]] = defaultdict(set)
    for ts in timestamps:
        ts = as_utc(ts)
        iso_year, iso_week, iso_weekday = ts.isocalendar()
        weeks[(iso_year, iso_week)].add(iso_weekday - 1)

    out = []
    for (year, week) in sorted(weeks, reverse=True):
        days = [False] * 7
        for d in weeks[(year, week)]:
            days[d] = True
        out.append({"year": year, "week_number": week, "days": days})
    return out


def monthly_calendar(month: int, year: int, timestamps: Iterable[datetime]) -> dict:
    """
    Matriz semanas x 7 (lunes primero) de {day, has_activity}; day=0 es relleno.
    weekly_totals cuenta los registros de cada fila.
    """
    start, end = month_bounds(month, year)
    per_day: dict[int, int] = defaultdict(int)
    for ts in timestamps:
        ts = as_utc(ts)
        if start <= ts <= end:
            per_day[ts.day] += 1

    weeks = calendar.Calendar(firstweekday=calendar.MONDAY).monthdayscalendar(year, month)
    grid = [[{"day": d, "has_activity": d != 0 and per_day.get(d, 0) > 0} for d in week] for week in weeks]
    totals = [sum(per_day.get(d, 0) for d in week if d) for week in weeks]
    return {"month": month, "year": year, "calendar": grid, "weekly_totals": totals}
