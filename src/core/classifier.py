"""Per-message classification against the monitoring rules.

Decision order (first applicable rule wins):

1. Private one-to-one chats are never monitored.
2. Chats on the exclude list are dropped.
3. In a notification channel, retraction triggers are evaluated for every
   message, then our own and the bot's messages are dropped.
4. The chat must be in the monitor set (empty allow-list means everything
   not excluded). A migrated group is also accepted under its old id.
5. Messages with neither text nor media are dropped.
6. Keyword rules: target users, then global keywords, then monitor-all.
7. Repeats of ``chat:message`` within the dedup window are dropped.
"""

from __future__ import annotations

import logging

from core.config import Identity, MonitorRules
from core.dedup import DedupStore, compute_fingerprint
from core.lottery import parse_lottery_message
from core.models import ChatKind, ClassifierResult, IncomingMessage
from core.retraction import matches_trigger
from core.rules_engine import describe_hits, match_keywords

LOGGER = logging.getLogger(__name__)

MEDIA_PLACEHOLDER = "[media]"


def display_text(message: IncomingMessage) -> str:
    """Return the text to classify, a media placeholder, or "" for empty messages."""

    if message.text and message.text.strip():
        return message.text
    if message.has_media:
        return MEDIA_PLACEHOLDER
    return ""


def _reject(reason: str, *, retract: bool = False, text: str = "") -> ClassifierResult:
    return ClassifierResult(forward=False, reason=reason, retract=retract, display_text=text)


class Classifier:
    """Decide whether a message is forwarded and whether it may trigger a retraction."""

    def __init__(self, rules: MonitorRules, identity: Identity, dedup: DedupStore) -> None:
        self._rules = rules
        self._identity = identity
        self._dedup = dedup

    @property
    def rules(self) -> MonitorRules:
        return self._rules

    def is_monitored(self, message: IncomingMessage) -> bool:
        allow = self._rules.monitor_chat_ids
        if not allow:
            return True
        if message.chat_key and message.chat_key in allow:
            return True
        return bool(message.legacy_chat_key) and message.legacy_chat_key in allow

    def _is_own_or_bot(self, sender_id: str) -> bool:
        if not sender_id:
            return False
        return sender_id in {self._identity.self_id, self._identity.bot_id} - {""}

    def _may_trigger_retraction(self, sender_id: str) -> bool:
        targets = self._rules.target_user_ids
        if not targets:
            return True
        return bool(sender_id) and sender_id in targets

    def classify(self, message: IncomingMessage) -> ClassifierResult:
        rules = self._rules
        chat_key = message.chat_key
        sender_id = message.sender_id
        text = display_text(message)

        if message.chat_kind is ChatKind.PRIVATE:
            return _reject("private chat")

        if chat_key and chat_key in rules.exclude_chat_ids:
            return _reject("excluded chat")

        retract = False
        if chat_key and chat_key in rules.notification_chat_ids:
            if rules.retract_keywords and matches_trigger(text, rules.retract_keywords):
                retract = True
                if self.is_monitored(message):
                    return _reject("retraction trigger in notification channel", retract=True, text=text)
            if self._is_own_or_bot(sender_id):
                return _reject("own message in notification channel", retract=retract, text=text)

        if not self.is_monitored(message):
            return _reject("chat not monitored", retract=retract, text=text)

        if not text:
            LOGGER.warning("Message %s in %s has no content, skipping", message.message_id, message.chat_title)
            return _reject("empty message", retract=retract)

        if (
            not retract
            and rules.retract_keywords
            and self._may_trigger_retraction(sender_id)
            and matches_trigger(text, rules.retract_keywords)
        ):
            retract = True

        is_target_user = bool(sender_id) and sender_id in rules.target_user_ids
        user_hits = match_keywords(text, rules.user_keyword_patterns or rules.user_keywords)
        global_hits = match_keywords(text, rules.keyword_patterns or rules.keywords)

        if is_target_user and (not rules.user_keywords or user_hits):
            reason = describe_hits(user_hits, []) or "target user"
        elif global_hits:
            reason = describe_hits([], global_hits)
        elif not rules.keywords and not rules.user_keywords:
            reason = "monitor-all"
        else:
            return _reject("no keyword match", retract=retract, text=text)

        fingerprint = compute_fingerprint(chat_key, message.message_id)
        if not self._dedup.should_process(fingerprint, text):
            return _reject("duplicate", retract=retract, text=text)

        if user_hits or global_hits:
            LOGGER.info("%s: keyword detected", message.chat_title)

        payload = parse_lottery_message(text, rules.user_keywords + rules.keywords)
        return ClassifierResult(
            forward=True,
            reason=reason,
            payload=payload,
            retract=retract,
            display_text=text,
        )
