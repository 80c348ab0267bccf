"""SSE (Server-Sent Events) wire encoding"""

from __future__ import annotations

import json
from typing import AsyncIterator

from staysearch.schemas.stream_schema import StreamUpdate, UpdateType


DONE_MARKER = "[DONE]"


def _data_lines(payload: str) -> str:
    # 여러 줄 텍스트는 data: 줄 여러 개로 (클라이언트가 \n으로 다시 합침)
    return "".join(f"data: {line}\n" for line in payload.split("\n"))


def encode_update(update: StreamUpdate) -> str:
    """업데이트 1건 → SSE 프레임 문자열"""
    if update.type == UpdateType.TEXT:
        return _data_lines(update.text or "") + "\n"
    if update.type == UpdateType.STATUS:
        return f"event: status\n{_data_lines(update.status or '')}\n"
    if update.type == UpdateType.RESULTS:
        return f"event: results\ndata: {json.dumps(update.results or {}, ensure_ascii=False)}\n\n"
    if update.type == UpdateType.ERROR:
        body = {"error": update.error or "Unknown error"}
        if update.retry_after is not None:
            body["retryAfter"] = update.retry_after
        return f"event: server-error\ndata: {json.dumps(body, ensure_ascii=False)}\n\n"
    return f"data: {DONE_MARKER}\n\n"


async def encode_stream(updates: AsyncIterator[StreamUpdate]) -> AsyncIterator[str]:
    async for update in updates:
        yield encode_update(update)
