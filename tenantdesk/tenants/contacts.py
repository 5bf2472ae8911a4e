"""Merged contact directory of a tenant.

The console lists three kinds of entries in one directory:

- chatbot contacts (``ChatbotContact`` rows);
- the tenant's own users, typed ``TENANT_USER``;
- WhatsApp contacts that no chatbot contact claims ("orphans").

Chatbot contacts and users are enriched with the WhatsApp session and JID
needed to open the conversation, found by an explicit link, by phone number
or by JID. Only the tenant's own WhatsApp contacts are ever considered, and
a WhatsApp conversation that already enriched an entry is not listed again
as an orphan.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from tenantdesk.models import ChatbotContact, User, WhatsAppContact
from tenantdesk.phone import lookup_tails, phone_from_jid, phone_match_keys, try_normalize_phone

from .schemas import ContactEntry

logger = logging.getLogger(__name__)

WHATSAPP_FALLBACK_NAME = "WhatsApp Contact"
_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


def _iso(value: dt.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _aware(value: dt.datetime | None) -> dt.datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


@dataclass(frozen=True)
class WhatsAppLink:
    """The session coordinates of one WhatsApp conversation."""

    session_id: str
    jid: str
    session_status: str | None = None
    session_started_at: dt.datetime | None = None
    last_session_closed_at: dt.datetime | None = None

    @classmethod
    def from_contact(cls, contact: WhatsAppContact) -> "WhatsAppLink | None":
        if not contact.session_id or not contact.jid:
            return None
        return cls(
            session_id=contact.session_id,
            jid=contact.jid,
            session_status=contact.session_status,
            session_started_at=_aware(contact.session_started_at),
            last_session_closed_at=_aware(contact.last_session_closed_at),
        )

    def apply(self, metadata: dict[str, Any], *, with_session: bool = True) -> None:
        metadata["whatsappSessionId"] = self.session_id
        metadata["whatsappJid"] = self.jid
        if with_session:
            metadata["sessionStatus"] = self.session_status
            metadata["sessionStartTime"] = _iso(self.session_started_at)
            metadata["lastSessionClosedAt"] = _iso(self.last_session_closed_at)


def _is_linked(metadata: Mapping[str, Any]) -> bool:
    return bool(metadata.get("whatsappSessionId")) and bool(metadata.get("whatsappJid"))


def clean_metadata(metadata: Mapping[str, Any]) -> dict[str, Any] | None:
    """Drop ``None`` values and blank WhatsApp ids; empty results become ``None``."""

    cleaned = {key: value for key, value in metadata.items() if value is not None}
    for key in ("whatsappSessionId", "whatsappJid"):
        if key not in cleaned:
            continue
        value = str(cleaned[key]).strip()
        if value:
            cleaned[key] = str(cleaned[key])
        else:
            del cleaned[key]
    return cleaned or None


class ContactDirectory:
    """Builds the directory from rows already loaded for one tenant.

    Args:
        tenant_id: Tenant whose directory is being built.
        whatsapp_contacts: Every WhatsApp contact of the tenant.
        unread_counts: Unread console chat messages per sender, for the
            user viewing the directory.
        last_message_times: Most recent console chat message per counterpart.
    """

    def __init__(
        self,
        tenant_id: uuid.UUID,
        whatsapp_contacts: Iterable[WhatsAppContact],
        *,
        unread_counts: Mapping[uuid.UUID, int] | None = None,
        last_message_times: Mapping[uuid.UUID, dt.datetime] | None = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.whatsapp_contacts = [wc for wc in whatsapp_contacts if wc.tenant_id == tenant_id]
        self.unread_counts = dict(unread_counts or {})
        self.last_message_times = dict(last_message_times or {})
        self.by_phone: dict[str, WhatsAppLink] = {}
        self.by_user: dict[uuid.UUID, WhatsAppLink] = {}
        self.by_jid: dict[str, WhatsAppLink] = {}
        self.used_jids: set[str] = set()
        self._index()

    def _index(self) -> None:
        for contact in self.whatsapp_contacts:
            link = WhatsAppLink.from_contact(contact)
            if link is None:
                continue
            phone = contact.phone_number or phone_from_jid(contact.jid)
            for key in phone_match_keys(phone):
                self.by_phone[key] = link
            if contact.phone_number:
                self.by_phone[contact.phone_number] = link
            if contact.user_id is not None:
                self.by_user[contact.user_id] = link
            self.by_jid[link.jid] = link

    def find_by_phone(self, phone: str | None) -> WhatsAppLink | None:
        """Raw number, normalized number, then the 9/10 digit tails of each."""

        if not phone:
            return None
        normalized = try_normalize_phone(phone)
        candidates = [phone]
        if normalized:
            candidates.append(normalized)
        candidates.extend(lookup_tails(phone))
        if normalized:
            candidates.extend(lookup_tails(normalized))
        for key in candidates:
            link = self.by_phone.get(key)
            if link is not None:
                return link
        return None

    def _find_by_jids(self, contacts: Iterable[WhatsAppContact]) -> WhatsAppLink | None:
        for contact in contacts:
            if contact.jid and contact.jid in self.by_jid:
                return self.by_jid[contact.jid]
        return None

    def _finish(self, metadata: dict[str, Any]) -> dict[str, Any] | None:
        cleaned = clean_metadata(metadata)
        if cleaned and cleaned.get("whatsappJid"):
            self.used_jids.add(str(cleaned["whatsappJid"]).strip())
        return cleaned

    def chatbot_entry(self, contact: ChatbotContact) -> ContactEntry:
        metadata = dict(contact.metadata_ or {})
        linked = [wc for wc in contact.whatsapp_contacts if wc.tenant_id == self.tenant_id]

        if not _is_linked(metadata) and linked:
            first = WhatsAppLink.from_contact(linked[0])
            if first is not None:
                first.apply(metadata)
        if not _is_linked(metadata) and contact.phone:
            link = self.find_by_phone(contact.phone)
            if link is not None:
                link.apply(metadata)
        if not _is_linked(metadata):
            link = self._find_by_jids(linked)
            if link is not None:
                link.apply(metadata)

        return ContactEntry(
            id=contact.id,
            tenant_id=contact.tenant_id,
            type=contact.type,
            display_name=contact.display_name,
            name=contact.display_name,
            phone=contact.phone or None,
            email=contact.email or None,
            description=contact.description or None,
            avatar_url=contact.avatar_url or None,
            is_flowbot=contact.is_default_flowbot,
            metadata=self._finish(metadata),
            created_at=contact.created_at,
            updated_at=contact.updated_at,
        )

    def user_entry(self, user: User) -> ContactEntry:
        metadata = dict(user.metadata_ or {})
        if not metadata.get("role"):
            metadata["role"] = user.role

        link = self.by_user.get(user.id)
        if link is not None:
            link.apply(metadata, with_session=False)
        if not _is_linked(metadata) and user.phone:
            link = self.find_by_phone(user.phone)
            if link is not None:
                link.apply(metadata, with_session=False)
        if not _is_linked(metadata):
            owned = [wc for wc in self.whatsapp_contacts if wc.user_id == user.id]
            link = self._find_by_jids(owned)
            if link is not None:
                link.apply(metadata, with_session=False)

        label = user.name or user.email or "Unknown User"
        return ContactEntry(
            id=user.id,
            tenant_id=user.tenant_id,
            type="TENANT_USER",
            display_name=label,
            name=label,
            phone=user.phone or None,
            email=user.email or None,
            description=user.role or None,
            avatar_url=user.profile_picture_url or None,
            is_flowbot=False,
            metadata=self._finish(metadata),
            unread_count=self.unread_counts.get(user.id, 0),
            last_message_at=_aware(self.last_message_times.get(user.id)),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def orphan_entries(self, claimed_ids: set[uuid.UUID]) -> list[ContactEntry]:
        """WhatsApp contacts no fetched chatbot contact claims and no entry used."""

        entries: list[ContactEntry] = []
        for contact in self.whatsapp_contacts:
            if contact.chatbot_contact_id is not None and contact.chatbot_contact_id in claimed_ids:
                continue
            if contact.jid and contact.jid.strip() in self.used_jids:
                continue

            last_message_at = _aware(contact.last_message_at)
            metadata: dict[str, Any] = {
                "whatsappSessionId": contact.session_id,
                "whatsappJid": contact.jid,
                "lastMessageAt": _iso(last_message_at),
                "sessionStatus": contact.session_status.lower() if contact.session_status else None,
                "sessionStartTime": _iso(_aware(contact.session_started_at)),
                **(contact.metadata_ or {}),
            }
            for key in ("whatsappSessionId", "whatsappJid"):
                if not metadata.get(key) or not str(metadata[key]).strip():
                    metadata.pop(key, None)

            label = contact.name or contact.phone_number or contact.jid or WHATSAPP_FALLBACK_NAME
            entries.append(
                ContactEntry(
                    id=contact.id,
                    tenant_id=self.tenant_id,
                    type="CONTACT",
                    display_name=label,
                    name=label,
                    phone=contact.phone_number or None,
                    description=contact.jid or None,
                    is_flowbot=False,
                    metadata=metadata,
                    unread_count=contact.unread_count or 0,
                    last_message_at=last_message_at,
                    created_at=contact.created_at,
                    updated_at=contact.created_at,
                )
            )
        return entries

    def build(
        self, chatbot_contacts: Iterable[ChatbotContact], users: Iterable[User]
    ) -> list[ContactEntry]:
        """Return every entry, flowbot first, then most recent, then by name."""

        chatbot_contacts = list(chatbot_contacts)
        entries = [self.chatbot_entry(contact) for contact in chatbot_contacts]
        entries.extend(self.user_entry(user) for user in users)
        entries.extend(self.orphan_entries({contact.id for contact in chatbot_contacts}))

        entries.sort(
            key=lambda entry: (
                not entry.is_flowbot,
                -(entry.last_message_at or _EPOCH).timestamp(),
                entry.display_name.casefold(),
            )
        )
        linked = sum(1 for entry in entries if entry.metadata and _is_linked(entry.metadata))
        logger.info(
            "Built contact directory for tenant %s: %d entries, %d linked to WhatsApp",
            self.tenant_id,
            len(entries),
            linked,
        )
        return entries


__all__ = ["ContactDirectory", "WhatsAppLink", "clean_metadata"]
