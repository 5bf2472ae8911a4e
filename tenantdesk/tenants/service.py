"""Tenant administration service backed by a SQLAlchemy session.

The service never commits: callers own the transaction (the admin router
wraps each request in a commit/rollback scope). Failures are reported with
the domain exceptions defined here so the HTTP layer can map them to status
codes.
"""

from __future__ import annotations

import base64
import datetime as dt
import logging
import uuid
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from tenantdesk.models import (
    Application,
    ChatbotContact,
    Tenant,
    TenantUserChatMessage,
    User,
    WhatsAppContact,
)
from tenantdesk.phone import (
    PhoneNumberError,
    normalize_phone_number,
    phone_from_jid,
    strip_country_prefix_tail,
    try_normalize_phone,
)

from . import schemas
from .contacts import WHATSAPP_FALLBACK_NAME, ContactDirectory
from .settings import (
    PROFILE_FIELDS,
    build_dashboard_urls,
    build_integrations,
    build_session_settings,
    clean_optional_text,
    merge_tenant_settings,
    tenant_branding_logo,
)

logger = logging.getLogger(__name__)

ALLOWED_LOGO_TYPES = frozenset(
    {"image/png", "image/jpeg", "image/jpg", "image/webp", "image/svg+xml"}
)
MAX_LOGO_BYTES = 5 * 1024 * 1024


class TenantNotFoundError(RuntimeError):
    """Raised when a tenant id does not exist."""


class ContactNotFoundError(RuntimeError):
    """Raised when a contact does not exist for the tenant."""


class TenantConflictError(RuntimeError):
    """Raised when a domain or subdomain is already used by another tenant."""


class TenantValidationError(ValueError):
    """Raised for malformed tenant input (blank name, invalid phone...)."""


class LogoValidationError(ValueError):
    """Raised when an uploaded logo is empty, too large or of a wrong type."""


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class TenantAdminService:
    """Operations behind the ``/api/admin/tenants`` endpoints."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -- helpers -----------------------------------------------------------

    def _get(self, tenant_id: uuid.UUID) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError("Tenant not found")
        return tenant

    def _flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise TenantConflictError("Domain already in use") from exc

    def _counts(self, model: Any, tenant_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        rows = self.session.execute(
            select(model.tenant_id, func.count())
            .where(model.tenant_id.in_(tenant_ids))
            .group_by(model.tenant_id)
        ).all()
        return {tenant_id: count for tenant_id, count in rows}

    def _summary(
        self,
        tenant: Tenant,
        users: dict[uuid.UUID, int],
        applications: dict[uuid.UUID, int],
        contacts: dict[uuid.UUID, int],
    ) -> schemas.TenantSummary:
        return schemas.TenantSummary(
            id=tenant.id,
            name=tenant.name,
            domain=tenant.domain,
            subdomain=tenant.subdomain,
            is_active=tenant.is_active,
            settings=tenant.settings if isinstance(tenant.settings, dict) else None,
            user_count=users.get(tenant.id, 0),
            application_count=applications.get(tenant.id, 0),
            contact_count=contacts.get(tenant.id, 0),
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
        )

    def _summaries(self, tenants: list[Tenant]) -> list[schemas.TenantSummary]:
        if not tenants:
            return []
        ids = [tenant.id for tenant in tenants]
        users = self._counts(User, ids)
        applications = self._counts(Application, ids)
        contacts = self._counts(ChatbotContact, ids)
        return [self._summary(tenant, users, applications, contacts) for tenant in tenants]

    def _find_by_key(self, key: str) -> Tenant | None:
        key = key.strip()
        if not key:
            return None
        conditions = [Tenant.subdomain == key, Tenant.domain == key]
        as_uuid = _parse_uuid(key)
        if as_uuid is not None:
            conditions.append(Tenant.id == as_uuid)
        return self.session.execute(
            select(Tenant).where(or_(*conditions)).limit(1)
        ).scalar_one_or_none()

    # -- tenants -----------------------------------------------------------

    def list_tenants(self) -> list[schemas.TenantSummary]:
        tenants = list(
            self.session.execute(select(Tenant).order_by(Tenant.created_at.desc())).scalars()
        )
        return self._summaries(tenants)

    def create_tenant(self, payload: schemas.TenantCreate) -> schemas.TenantSummary:
        name = (payload.name or "").strip()
        if not name:
            raise TenantValidationError("Tenant name is required")

        tenant = Tenant(
            name=name,
            domain=clean_optional_text(payload.domain),
            subdomain=clean_optional_text(payload.subdomain),
            settings=dict(payload.settings) if payload.settings else None,
        )
        if payload.integrations is not None:
            tenant.integrations = build_integrations(payload.integrations)
        if payload.session_settings is not None:
            tenant.session_settings = build_session_settings(payload.session_settings)
        if payload.dashboard_urls is not None:
            tenant.dashboard_urls = build_dashboard_urls(payload.dashboard_urls)

        self.session.add(tenant)
        self._flush()
        logger.info("Created tenant %s (%s)", tenant.id, tenant.name)
        return self._summary(tenant, {}, {}, {})

    def update_tenant(
        self, tenant_id: uuid.UUID, payload: schemas.TenantUpdate
    ) -> schemas.TenantSummary:
        tenant = self._get(tenant_id)
        fields = payload.model_fields_set

        if "name" in fields:
            name = (payload.name or "").strip()
            if not name:
                raise TenantValidationError("Tenant name cannot be empty")
            tenant.name = name
        if "domain" in fields:
            tenant.domain = clean_optional_text(payload.domain)
        if "subdomain" in fields:
            tenant.subdomain = clean_optional_text(payload.subdomain)
        if "is_active" in fields and payload.is_active is not None:
            tenant.is_active = payload.is_active

        settings = dict(tenant.settings or {})
        settings_changed = False
        if "settings" in fields and payload.settings is not None:
            settings = merge_tenant_settings(tenant.settings, payload.settings)
            settings_changed = True
        if "payment_return_home_url" in fields:
            settings["paymentReturnHomeUrl"] = clean_optional_text(payload.payment_return_home_url)
            settings_changed = True
        if settings_changed:
            tenant.settings = settings

        for field in PROFILE_FIELDS:
            if field in fields:
                setattr(tenant, field, clean_optional_text(getattr(payload, field)))

        if "integrations" in fields and payload.integrations is not None:
            tenant.integrations = build_integrations(payload.integrations)
        if "session_settings" in fields and payload.session_settings is not None:
            tenant.session_settings = build_session_settings(payload.session_settings)
        if "dashboard_urls" in fields and payload.dashboard_urls is not None:
            tenant.dashboard_urls = build_dashboard_urls(payload.dashboard_urls)

        tenant.updated_at = _utcnow()
        self._flush()
        return self._summaries([tenant])[0]

    def deactivate_tenant(self, tenant_id: uuid.UUID) -> None:
        tenant = self._get(tenant_id)
        tenant.is_active = False
        self.session.flush()
        logger.info("Deactivated tenant %s", tenant_id)

    def get_tenant(self, tenant_id: uuid.UUID) -> schemas.TenantDetail:
        tenant = self._get(tenant_id)
        settings = tenant.settings if isinstance(tenant.settings, dict) else None
        return schemas.TenantDetail(
            id=tenant.id,
            name=tenant.name,
            domain=tenant.domain,
            subdomain=tenant.subdomain,
            is_active=tenant.is_active,
            settings=settings,
            payment_return_home_url=(settings or {}).get("paymentReturnHomeUrl") or None,
            **{field: getattr(tenant, field) for field in PROFILE_FIELDS},
            logo_url=tenant.logo_url,
            logo_width=tenant.logo_width,
            logo_height=tenant.logo_height,
            logo_mime_type=tenant.logo_mime_type,
            logo_updated_at=tenant.logo_updated_at,
            integrations=tenant.integrations,
            session_settings=tenant.session_settings,
            dashboard_urls=tenant.dashboard_urls,
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
        )

    def get_tenant_by_key(self, key: str) -> schemas.TenantLookup | None:
        """Find a tenant by subdomain, id or domain."""

        tenant = self._find_by_key(key)
        if tenant is None:
            return None
        return schemas.TenantLookup(
            id=tenant.id,
            name=tenant.name,
            logo_url=tenant_branding_logo(tenant.settings, tenant.logo_url),
            subdomain=tenant.subdomain,
            domain=tenant.domain,
            settings=tenant.settings if isinstance(tenant.settings, dict) else None,
        )

    # -- branding ------------------------------------------------------------

    def upload_logo(
        self, tenant_id: uuid.UUID, content: bytes, mime_type: str | None
    ) -> schemas.LogoUploadResult:
        """Store ``content`` as a base64 data URL on the tenant.

        The data URL is written to ``settings.branding.logoUrl`` and to the
        ``logo_url`` column. Image dimensions are not inspected.
        """

        tenant = self._get(tenant_id)
        mime = (mime_type or "").lower()
        if mime not in ALLOWED_LOGO_TYPES:
            raise LogoValidationError(
                "Unsupported logo type. Use PNG, JPEG, WEBP or SVG images."
            )
        if not content:
            raise LogoValidationError("Logo file is empty")
        if len(content) > MAX_LOGO_BYTES:
            raise LogoValidationError("Logo file exceeds the 5 MB limit")

        data_url = f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"
        settings = dict(tenant.settings or {})
        branding = settings.get("branding")
        settings["branding"] = {**(branding if isinstance(branding, dict) else {}), "logoUrl": data_url}

        tenant.settings = settings
        tenant.logo_url = data_url
        tenant.logo_width = None
        tenant.logo_height = None
        tenant.logo_mime_type = mime
        tenant.logo_updated_at = _utcnow()
        self.session.flush()
        logger.info("Uploaded logo for tenant %s (%s, %d bytes)", tenant_id, mime, len(content))
        return schemas.LogoUploadResult(logo_url=data_url, mime_type=mime)

    def get_customization(self, key: str) -> schemas.TenantCustomization:
        tenant = self._find_by_key(key)
        if tenant is None or not isinstance(tenant.settings, dict):
            return schemas.TenantCustomization(customization=None)
        return schemas.TenantCustomization(
            customization=tenant.settings.get("customization") or None
        )

    def update_customization(
        self, tenant_id: uuid.UUID, customization: dict[str, Any] | None
    ) -> schemas.TenantCustomization:
        tenant = self._get(tenant_id)
        tenant.settings = {**(tenant.settings or {}), "customization": customization}
        self.session.flush()
        return schemas.TenantCustomization(customization=customization)

    # -- contacts ------------------------------------------------------------

    def _chat_activity(
        self, tenant_id: uuid.UUID, user_id: uuid.UUID
    ) -> tuple[dict[uuid.UUID, int], dict[uuid.UUID, dt.datetime]]:
        unread_rows = self.session.execute(
            select(TenantUserChatMessage.sender_id, func.count())
            .where(TenantUserChatMessage.tenant_id == tenant_id)
            .where(TenantUserChatMessage.recipient_id == user_id)
            .where(TenantUserChatMessage.read_at.is_(None))
            .group_by(TenantUserChatMessage.sender_id)
        ).all()
        unread = {sender: count for sender, count in unread_rows}

        last_rows = self.session.execute(
            select(
                TenantUserChatMessage.sender_id,
                TenantUserChatMessage.recipient_id,
                func.max(TenantUserChatMessage.created_at),
            )
            .where(TenantUserChatMessage.tenant_id == tenant_id)
            .where(
                or_(
                    TenantUserChatMessage.sender_id == user_id,
                    TenantUserChatMessage.recipient_id == user_id,
                )
            )
            .group_by(TenantUserChatMessage.sender_id, TenantUserChatMessage.recipient_id)
        ).all()
        last: dict[uuid.UUID, dt.datetime] = {}
        for sender, recipient, when in last_rows:
            other = recipient if sender == user_id else sender
            if when is not None and (other not in last or when > last[other]):
                last[other] = when
        return unread, last

    def _tenant_whatsapp_contacts(self, tenant_id: uuid.UUID) -> list[WhatsAppContact]:
        return list(
            self.session.execute(
                select(WhatsAppContact).where(WhatsAppContact.tenant_id == tenant_id)
            ).scalars()
        )

    def get_tenant_contacts(
        self, tenant_id: uuid.UUID, user_id: uuid.UUID | None = None
    ) -> schemas.ContactList:
        """Return the merged, enriched directory of ``tenant_id``.

        When ``user_id`` is given, tenant users carry the unread count and
        last message time of their console chat with that user.
        """

        self._get(tenant_id)
        chatbot_contacts = list(
            self.session.execute(
                select(ChatbotContact)
                .where(ChatbotContact.tenant_id == tenant_id)
                .options(selectinload(ChatbotContact.whatsapp_contacts))
            ).scalars()
        )
        users = list(
            self.session.execute(
                select(User)
                .where(User.tenant_id == tenant_id, User.deleted_at.is_(None))
                .order_by(User.name)
            ).scalars()
        )
        unread: dict[uuid.UUID, int] = {}
        last: dict[uuid.UUID, dt.datetime] = {}
        if user_id is not None:
            unread, last = self._chat_activity(tenant_id, user_id)

        directory = ContactDirectory(
            tenant_id,
            self._tenant_whatsapp_contacts(tenant_id),
            unread_counts=unread,
            last_message_times=last,
        )
        return schemas.ContactList(success=True, contacts=directory.build(chatbot_contacts, users))

    def debug_tenant_contacts(self, tenant_id: uuid.UUID) -> dict[str, Any]:
        """Diagnostic report explaining how phones match WhatsApp contacts."""

        self._get(tenant_id)
        chatbot_contacts = list(
            self.session.execute(
                select(ChatbotContact)
                .where(ChatbotContact.tenant_id == tenant_id)
                .options(selectinload(ChatbotContact.whatsapp_contacts))
            ).scalars()
        )
        users = list(self.session.execute(select(User).where(User.tenant_id == tenant_id)).scalars())
        whatsapp = self._tenant_whatsapp_contacts(tenant_id)

        def phone_rows(items: list[tuple[uuid.UUID, str | None]]) -> list[dict[str, Any]]:
            return [
                {"id": str(item_id), "original": phone, "normalized": try_normalize_phone(phone)}
                for item_id, phone in items
                if phone
            ]

        contact_phones = phone_rows([(c.id, c.phone) for c in chatbot_contacts])
        user_phones = phone_rows([(u.id, u.phone) for u in users])
        whatsapp_phones = phone_rows([(w.id, w.phone_number) for w in whatsapp])
        whatsapp_jid_phones = phone_rows([(w.id, phone_from_jid(w.jid)) for w in whatsapp])
        candidates = [p for p in whatsapp_phones + whatsapp_jid_phones if p["normalized"]]

        attempts: list[dict[str, Any]] = []
        for kind, phones in (("contact", contact_phones), ("user", user_phones)):
            for phone in phones:
                if not phone["normalized"]:
                    continue
                exact = next((c for c in candidates if c["normalized"] == phone["normalized"]), None)
                if exact is not None:
                    attempts.append(
                        {
                            "type": kind,
                            "phone": phone["original"],
                            "normalized": phone["normalized"],
                            "matched": True,
                            "partial_match": False,
                            "whatsapp_phone": exact["original"],
                            "whatsapp_normalized": exact["normalized"],
                        }
                    )
                    continue
                tail = strip_country_prefix_tail(phone["normalized"])
                partial = next(
                    (c for c in candidates if strip_country_prefix_tail(c["normalized"]) == tail),
                    None,
                )
                attempts.append(
                    {
                        "type": kind,
                        "phone": phone["original"],
                        "normalized": phone["normalized"],
                        "matched": partial is not None,
                        "partial_match": partial is not None,
                        "last9": tail,
                        "whatsapp_match": None
                        if partial is None
                        else {
                            "phone": partial["original"],
                            "normalized": partial["normalized"],
                            "last9": strip_country_prefix_tail(partial["normalized"]),
                        },
                    }
                )

        user_ids = {u.id for u in users}
        contact_ids = {c.id for c in chatbot_contacts}
        return {
            "tenant_id": str(tenant_id),
            "summary": {
                "chatbot_contacts_count": len(chatbot_contacts),
                "tenant_users_count": len(users),
                "whatsapp_contacts_count": len(whatsapp),
                "whatsapp_sessions_count": len({w.session_id for w in whatsapp if w.session_id}),
                "contact_phones_count": len(contact_phones),
                "user_phones_count": len(user_phones),
                "whatsapp_phones_count": len(whatsapp_phones),
                "whatsapp_phones_from_jid_count": len(whatsapp_jid_phones),
                "matching_attempts_count": len(attempts),
                "successful_matches": sum(1 for a in attempts if a["matched"]),
                "failed_matches": sum(1 for a in attempts if not a["matched"]),
            },
            "chatbot_contacts": [
                {
                    "id": str(c.id),
                    "display_name": c.display_name,
                    "phone": c.phone,
                    "normalized_phone": try_normalize_phone(c.phone),
                    "metadata_keys": sorted((c.metadata_ or {}).keys()),
                    "linked_whatsapp_contacts": [
                        {"session_id": w.session_id, "jid": w.jid, "phone_number": w.phone_number}
                        for w in c.whatsapp_contacts[:5]
                    ],
                }
                for c in chatbot_contacts
            ],
            "tenant_users": [
                {
                    "id": str(u.id),
                    "name": u.name,
                    "email": u.email,
                    "phone": u.phone,
                    "normalized_phone": try_normalize_phone(u.phone),
                    "metadata_keys": sorted((u.metadata_ or {}).keys()),
                    "existing_whatsapp_session_id": (u.metadata_ or {}).get("whatsappSessionId"),
                    "existing_whatsapp_jid": (u.metadata_ or {}).get("whatsappJid"),
                }
                for u in users
            ],
            "whatsapp_contacts": [
                {
                    "id": str(w.id),
                    "session_id": w.session_id,
                    "jid": w.jid,
                    "phone_number": w.phone_number,
                    "phone_from_jid": phone_from_jid(w.jid),
                    "normalized_phone": try_normalize_phone(w.phone_number),
                    "normalized_phone_from_jid": try_normalize_phone(phone_from_jid(w.jid)),
                    "user_id": str(w.user_id) if w.user_id else None,
                    "chatbot_contact_id": str(w.chatbot_contact_id) if w.chatbot_contact_id else None,
                    "name": w.name,
                }
                for w in whatsapp
            ],
            "phone_normalization": {
                "contact_phones": contact_phones,
                "user_phones": user_phones,
                "whatsapp_phones": whatsapp_phones,
                "whatsapp_phones_from_jid": whatsapp_jid_phones,
            },
            "matching_attempts": attempts,
            "user_id_matching": {
                "user_ids": sorted(str(i) for i in user_ids),
                "linked_whatsapp_contacts": [
                    str(w.id) for w in whatsapp if w.user_id is not None and w.user_id in user_ids
                ],
            },
            "chatbot_contact_id_matching": {
                "chatbot_contact_ids": sorted(str(i) for i in contact_ids),
                "linked_whatsapp_contacts": [
                    str(w.id)
                    for w in whatsapp
                    if w.chatbot_contact_id is not None and w.chatbot_contact_id in contact_ids
                ],
            },
        }

    def _claim_orphan(
        self, tenant_id: uuid.UUID, contact_id: uuid.UUID, display_name: str | None
    ) -> ChatbotContact | None:
        orphan = self.session.execute(
            select(WhatsAppContact)
            .where(WhatsAppContact.id == contact_id)
            .where(WhatsAppContact.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if orphan is None:
            return None

        contact = ChatbotContact(
            id=orphan.id,
            tenant_id=tenant_id,
            type="CONTACT",
            display_name=(display_name or "").strip()
            or orphan.name
            or orphan.phone_number
            or orphan.jid
            or WHATSAPP_FALLBACK_NAME,
            phone=orphan.phone_number or None,
        )
        self.session.add(contact)
        self.session.flush()
        orphan.chatbot_contact_id = contact.id
        self.session.flush()
        logger.info("Linked WhatsApp contact %s to a new chatbot contact", orphan.id)
        return contact

    def update_tenant_contact(
        self, tenant_id: uuid.UUID, contact_id: uuid.UUID, payload: schemas.ContactUpdate
    ) -> schemas.ContactUpdateResult:
        self._get(tenant_id)
        contact = self.session.execute(
            select(ChatbotContact)
            .where(ChatbotContact.id == contact_id)
            .where(ChatbotContact.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if contact is None:
            contact = self._claim_orphan(tenant_id, contact_id, payload.display_name)
        if contact is None:
            raise ContactNotFoundError(f"Contact {contact_id} not found for tenant {tenant_id}")

        fields = payload.model_fields_set
        changed = False
        if "display_name" in fields and payload.display_name is not None:
            display_name = payload.display_name.strip()
            if not display_name:
                raise TenantValidationError("Display name cannot be empty")
            contact.display_name = display_name
            changed = True
        if "phone" in fields:
            if payload.phone and payload.phone.strip():
                try:
                    contact.phone = normalize_phone_number(payload.phone).normalized
                except PhoneNumberError as exc:
                    raise TenantValidationError(str(exc)) from exc
            else:
                contact.phone = None
            changed = True
        if "email" in fields:
            contact.email = clean_optional_text(payload.email)
            changed = True
        if "description" in fields:
            contact.description = clean_optional_text(payload.description)
            changed = True

        if changed:
            contact.updated_at = _utcnow()
            self.session.flush()

        return schemas.ContactUpdateResult(
            success=True,
            contact=schemas.ContactEntry(
                id=contact.id,
                tenant_id=contact.tenant_id,
                type=contact.type,
                display_name=contact.display_name,
                name=contact.display_name,
                phone=contact.phone,
                email=contact.email,
                description=contact.description,
                avatar_url=contact.avatar_url,
                is_flowbot=False,
                metadata=contact.metadata_,
                created_at=contact.created_at,
                updated_at=contact.updated_at,
            ),
        )


__all__ = [
    "ALLOWED_LOGO_TYPES",
    "ContactNotFoundError",
    "LogoValidationError",
    "MAX_LOGO_BYTES",
    "TenantAdminService",
    "TenantConflictError",
    "TenantNotFoundError",
    "TenantValidationError",
]
