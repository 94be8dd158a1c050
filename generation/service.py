from __future__ import annotations

import math
import time
from dataclasses import dataclass

from config.defaults import IMAGE_CATEGORY
from config.defaults import TEXT_CATEGORY
from interjection.prompts import is_pass_reply
from interjection.prompts import mention_prompt
from interjection.quota import QuotaManager
from interjection.rate_limiter import Admission
from interjection.rate_limiter import DenyReason
from misc.discord_timestamps import epoch_timestamp_tag
from misc.errors import QuotaExhaustedError
from misc.errors import UpstreamGenerationError

_LABELS = {TEXT_CATEGORY: "text generation", IMAGE_CATEGORY: "image generation"}


@dataclass(frozen=True)
class ImageOutcome:
    image: bytes | None
    message: str


def denial_message(admission: Admission, category: str, *, now: float | None = None) -> str:
    label = _LABELS.get(category, category)
    wait = max(0.0, float(admission.retry_after or 0.0))
    if admission.reason == DenyReason.MINUTE_LIMIT_REACHED:
        return f"I'm rate limited on {label} right now. Try again in about {max(1, math.ceil(wait))} seconds."
    at = (time.time() if now is None else now) + wait
    if admission.reason == DenyReason.DAY_LIMIT_REACHED:
        return f"I've used up today's {label} budget. It frees up {epoch_timestamp_tag(at, 'R')}."
    return f"My {label} quota is exhausted for today. It comes back {epoch_timestamp_tag(at, 'R')}."


async def generate_image_for_user(prompt: str, *, quota: QuotaManager, generator) -> ImageOutcome:
    clean = (prompt or "").strip()
    if not clean:
        return ImageOutcome(None, "Usage: `!imagine <description>`")

    try:
        data, admission = await quota.run_metered(IMAGE_CATEGORY, lambda: generator.generate_image(clean))
    except QuotaExhaustedError:
        notice = quota.take_notice(IMAGE_CATEGORY)
        return ImageOutcome(None, notice or "Image generation is out of quota for today.")
    except UpstreamGenerationError as e:
        print(f"[Gen] image request failed: {e}")
        return ImageOutcome(None, "Image generation failed. Try again in a bit.")

    if not admission:
        return ImageOutcome(None, denial_message(admission, IMAGE_CATEGORY))
    caption = clean if len(clean) <= 180 else clean[:177] + "..."
    return ImageOutcome(data, f"**{caption}**")


async def answer_direct_address(
    prompt: str,
    *,
    author_name: str,
    context_text: str,
    quota: QuotaManager,
    generator,
) -> str | None:
    """
    Reply text for someone who addressed the bot. Unlike interjections,
    denials and failures come back as a short explanation.
    """
    full_prompt = mention_prompt(author_name, prompt)
    try:
        reply, admission = await quota.run_metered(
            TEXT_CATEGORY,
            lambda: generator.generate(full_prompt, context_text),
        )
    except QuotaExhaustedError:
        return quota.take_notice(TEXT_CATEGORY) or "I'm out of text-generation quota for today."
    except UpstreamGenerationError as e:
        print(f"[Gen] mention reply failed: {e}")
        return "Sorry, I couldn't come up with a reply just now."

    if not admission:
        return denial_message(admission, TEXT_CATEGORY)
    if is_pass_reply(reply):
        return None
    return reply
