from __future__ import annotations

import re

from interjection.models import InterjectionType

PASS_WORD = "pass"

AI_COMMENT_PROMPT = """
Nobody asked you anything, but you've been reading along. Drop one short remark into the conversation below,
the way a regular would: react to what was actually said, riff on it, or ask a quick follow-up.
Rules:
- One or two sentences. No greeting, no sign-off.
- Don't summarize the conversation back to people.
- If nothing in the conversation is worth reacting to, reply with exactly: pass
""".strip()

FACT_PROMPT = """
Share one true, verifiable fact that connects to the conversation below.
Rules:
- Address the person whose message it relates to by name, then give the fact in one or two sentences.
- Don't open with "Fun fact" or "Did you know".
- Only state things you are confident are accurate. If you can't think of a fitting fact, reply with exactly: pass
""".strip()

NEWS_PROMPT = """
Mention a real technology or weird-news story that ties into the conversation below, with a one-sentence take
on why it's interesting. No sports.
Rules:
- Format: "<headline> (<outlet>, <month year>)" followed by your take.
- Don't invent links. Don't say "check out this article".
- If no real story fits, reply with exactly: pass
""".strip()

MENTION_PROMPT = """
{author} is talking to you directly. Answer them in your own voice.

{author}: {message}
""".strip()

_PROMPTS = {
    InterjectionType.AI: AI_COMMENT_PROMPT,
    InterjectionType.FACT: FACT_PROMPT,
    InterjectionType.NEWS: NEWS_PROMPT,
}

_ECHO_MARKERS = ("Rules:", "reply with exactly: pass", "{author}", "{message}")


def interjection_prompt(kind: InterjectionType) -> str:
    return _PROMPTS[kind]


def mention_prompt(author: str, message: str) -> str:
    return MENTION_PROMPT.format(author=author or "someone", message=message)


def is_pass_reply(text: str | None) -> bool:
    clean = re.sub(r"[^a-z]", "", (text or "").strip().lower())
    return clean == PASS_WORD


def looks_like_prompt_echo(reply: str | None, prompt: str) -> bool:
    body = (reply or "").strip()
    if not body:
        return False
    if any(marker in body for marker in _ECHO_MARKERS):
        return True
    head = prompt.strip()[:80]
    return bool(head) and head in body
