from calendar_cpm.workdays.working_calendar import WEEKEND, WorkingDayCalendar, parse_date

__all__ = ["WEEKEND", "WorkingDayCalendar", "parse_date"]
