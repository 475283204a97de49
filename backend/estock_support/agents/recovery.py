"""
Abandoned-Session Recovery - Commits sessions whose autosave was never cleared.

Runs once at startup. Each leftover snapshot with real conversation becomes a
recovered chat log, and every snapshot is deleted afterwards whatever happens,
so a broken snapshot cannot be recovered twice.
"""

import logging
from typing import List

from ..core.transcript import format_transcript
from ..models import ChatLog, now_ms

logger = logging.getLogger(__name__)

RECOVERED_CLIENT_NAME = "زائر (جلسة مستعادة)"
RECOVERED_SUMMARY = "جلسة غير مكتملة (تم الاسترداد تلقائياً)"


async def recover_abandoned_sessions(autosave, knowledge_store) -> List[str]:
    """
    Recover abandoned sessions.

    Args:
        autosave: AutosaveStore to scan
        knowledge_store: KnowledgeStore receiving the recovered logs

    Returns:
        List[str]: Ids of the logs written
    """
    recovered = []
    session_ids = await autosave.list_session_ids()
    if not session_ids:
        return recovered

    logger.info(f"Found {len(session_ids)} autosave snapshot(s) to recover")

    for session_id in session_ids:
        try:
            snapshot = await autosave.load(session_id)
            if snapshot is None or len(snapshot.messages) <= 1:
                continue
            if await knowledge_store.has_log(snapshot.session_id):
                logger.info(f"Session {snapshot.session_id} already has a log, skipping")
                continue

            await knowledge_store.append_log(ChatLog(
                id=snapshot.session_id,
                timestamp=snapshot.timestamp,
                duration=(now_ms() - snapshot.timestamp) / 1000,
                user_query=format_transcript(snapshot.messages),
                bot_response=RECOVERED_SUMMARY,
                client_name=RECOVERED_CLIENT_NAME,
            ))
            recovered.append(snapshot.session_id)
            logger.info(
                f"Recovered abandoned session {snapshot.session_id}",
                extra={"extra_fields": {"session_id": snapshot.session_id,
                                        "messages": len(snapshot.messages)}}
            )
        except Exception as e:
            logger.error(f"Failed to recover session {session_id}: {str(e)}", exc_info=True)
        finally:
            await autosave.clear(session_id)

    return recovered
