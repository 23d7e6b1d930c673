from datetime import date

from app.core.config import settings

_JA_WEEKDAYS = ["月", "火", "水", "木", "金", "土", "日"]
_EN_WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_EN_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

INTERVIEW_TYPE_LABELS = {
    "en": {"online": "Online", "onsite": "Onsite"},
    "ja": {"online": "オンライン", "onsite": "対面"},
}


def format_display_date(value: date, locale: str = None) -> str:
    """Human date shown to companies and staff, e.g. "Mon, Jan 15, 2024" or "2024年1月15日(月)"."""
    locale = locale or settings.display_locale
    if locale == "ja":
        return f"{value.year}年{value.month}月{value.day}日({_JA_WEEKDAYS[value.weekday()]})"
    return f"{_EN_WEEKDAYS[value.weekday()]}, {_EN_MONTHS[value.month - 1]} {value.day}, {value.year}"


def interview_type_label(interview_type: str, locale: str = None) -> str:
    labels = INTERVIEW_TYPE_LABELS.get(locale or settings.display_locale, INTERVIEW_TYPE_LABELS["en"])
    return labels.get(interview_type, labels["online"])
