"""
CSV exports for the admin dashboard.

Files start with a UTF-8 BOM so spreadsheet tools detect the Arabic text.
"""

import csv
import io
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from ..models import ChatLog, Feedback

BOM = "\ufeff"

LOG_HEADERS = [
    "رقم الجلسة", "التاريخ", "الوقت", "اسم العميل",
    "المدة (ثانية)", "ملخص الطلب", "سجل المحادثة الكامل",
]
FEEDBACK_HEADERS = ["التاريخ", "الوقت", "التقييم", "التعليق", "رقم الجلسة"]


def _split_timestamp(ts_ms: int) -> List[str]:
    moment = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
    return [moment.date().isoformat(), moment.strftime("%H:%M:%S")]


def _to_csv(headers: List[str], rows: Iterable[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return BOM + buffer.getvalue()


def logs_to_csv(logs: Iterable[ChatLog]) -> str:
    return _to_csv(LOG_HEADERS, (
        [
            log.id,
            *_split_timestamp(log.timestamp),
            log.client_name or "غير معروف",
            f"{log.duration:.0f}",
            log.bot_response,
            log.user_query,
        ]
        for log in logs
    ))


def feedback_to_csv(feedback: Iterable[Feedback]) -> str:
    return _to_csv(FEEDBACK_HEADERS, (
        [*_split_timestamp(fb.timestamp), str(fb.rating), fb.comment or "", fb.chat_id]
        for fb in feedback
    ))


def average_rating(feedback: List[Feedback]) -> Optional[float]:
    """Mean rating rounded to one decimal, None without feedback."""
    if not feedback:
        return None
    return round(sum(fb.rating for fb in feedback) / len(feedback), 1)
