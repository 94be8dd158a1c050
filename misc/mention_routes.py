from __future__ import annotations

import re


def strip_bot_mention(content: str, bot_user_id: int) -> str:
    return re.sub(rf"<@!?\s*{int(bot_user_id)}\s*>", "", content or "").strip()


def extract_imagine_payload(prompt: str) -> str | None:
    text = (prompt or "").strip()
    if not text:
        return None
    m = re.match(r"^(?:imagine|draw)\s*:\s*(.+)$", text, flags=re.I | re.S)
    if m:
        return m.group(1).strip()
    m2 = re.match(r"^(?:imagine|draw)\s+(.+)$", text, flags=re.I | re.S)
    if m2:
        return m2.group(1).strip()
    return None


def classify_mention_route(prompt: str) -> str:
    if not (prompt or "").strip():
        return "empty"
    return "imagine" if extract_imagine_payload(prompt) is not None else "default"
