"""
Identity provider webhook handler.

user.created provisions a pending affiliate for the new account.
"""

import re
import secrets

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import (
    DEFAULT_COMMISSION_RATE,
    REFERRAL_CODE_FALLBACK_PREFIX,
    REFERRAL_CODE_MAX_ATTEMPTS,
    REFERRAL_CODE_SUFFIX_BYTES,
)
from app.models.affiliate import Affiliate
from app.models.enums import AffiliateStatus
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.tier_repository import TierRepository
from app.services.base_service import BaseService
from app.services.fraud.fraud_service import FraudCheckService
from app.services.webhooks.referral_recorder import HandlerDeps
from app.services.webhooks.results import WebhookOutcome, WebhookResult
from app.utils.datetime_utils import utc_now
from app.utils.request_context import RequestMeta
from app.utils.security import mask_email


USER_CREATED = "user.created"
DEFAULT_TIER_SLUG = "initiate"

_NON_LETTERS = re.compile(r"[^A-Z]")


def referral_code_prefix(first_name: str | None, last_name: str | None, email: str) -> str:
    """
    Letters-only code prefix derived from the applicant.

    Examples:
        >>> referral_code_prefix("Jane", "Doe", "jane@example.com")
        'JANDOE'
        >>> referral_code_prefix(None, None, "x1@example.com")
        'AFF'
    """
    if first_name and last_name:
        base = first_name[:3] + last_name[:3]
    elif first_name:
        base = first_name[:5]
    else:
        base = email.split("@", 1)[0][:5]

    base = _NON_LETTERS.sub("", base.upper())
    if len(base) < 3:
        return REFERRAL_CODE_FALLBACK_PREFIX
    return base


def generate_referral_code(first_name: str | None, last_name: str | None, email: str) -> str:
    """Prefix plus a random 4-hex suffix."""
    suffix = secrets.token_hex(REFERRAL_CODE_SUFFIX_BYTES).upper()
    return f"{referral_code_prefix(first_name, last_name, email)}{suffix}"


def applicant_ip(user: dict) -> str | None:
    """
    Signup IP recorded on the user by the sign-up flow, if any.

    The webhook request itself comes from the identity provider's
    servers, so its address says nothing about the applicant.
    """
    for key in ("private_metadata", "public_metadata"):
        value = (user.get(key) or {}).get("signup_ip")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def primary_email(user: dict) -> str | None:
    """Primary address of an identity user payload, else the first one."""
    addresses = user.get("email_addresses") or []
    primary_id = user.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address")
    if addresses:
        return addresses[0].get("email_address")
    return None


class IdentityWebhookHandler(BaseService):
    """Creates or links affiliates for identity provider users."""

    def __init__(self, session: AsyncSession, deps: HandlerDeps) -> None:
        super().__init__(session)
        self.deps = deps
        self.affiliate_repo = AffiliateRepository(session)
        self.tier_repo = TierRepository(session)
        self.fraud = FraudCheckService(session)

    async def handle(self, event: dict, meta: RequestMeta | None = None) -> WebhookResult:
        """Dispatch by event type."""
        event_type = event.get("type")
        if event_type != USER_CREATED:
            return WebhookResult(WebhookOutcome.IGNORED, {"type": event_type})
        return await self.user_created(event.get("data") or {}, meta)

    async def _unique_code(self, first_name: str | None, last_name: str | None, email: str) -> str:
        code = generate_referral_code(first_name, last_name, email)
        for _ in range(REFERRAL_CODE_MAX_ATTEMPTS):
            if not await self.affiliate_repo.referral_code_taken(code):
                break
            code = generate_referral_code(first_name, last_name, email)
        return code

    async def user_created(self, user: dict, meta: RequestMeta | None = None) -> WebhookResult:
        """
        Provision an affiliate for a new identity user.

        Idempotent on the subject id. A pre-existing affiliate with the
        same email is linked to the subject instead of duplicated.
        """
        subject = user.get("id")
        email = primary_email(user)
        if not subject or not email:
            self.logger.error(f"user.created without subject or email (subject={subject})")
            return WebhookResult(WebhookOutcome.IGNORED, {"reason": "missing subject or email"})

        email = email.strip().lower()
        if await self.affiliate_repo.get_by_identity_subject(subject) is not None:
            return WebhookResult(WebhookOutcome.ALREADY_EXISTS, {"subject": subject})

        existing = await self.affiliate_repo.get_by_email(email)
        if existing is not None:
            if existing.identity_subject:
                return WebhookResult(WebhookOutcome.ALREADY_EXISTS, {"affiliate_id": existing.id})
            existing.identity_subject = subject
            await self.session.commit()
            self.logger.info(f"Linked affiliate {existing.id} to identity subject {subject}")
            return WebhookResult(WebhookOutcome.AFFILIATE_LINKED, {"affiliate_id": existing.id})

        first_name = user.get("first_name") or None
        last_name = user.get("last_name") or None
        ladder = await self.tier_repo.list_ordered()
        lowest = ladder[0] if ladder else None

        affiliate = Affiliate(
            identity_subject=subject,
            email=email,
            first_name=first_name,
            last_name=last_name,
            referral_code=await self._unique_code(first_name, last_name, email),
            status=AffiliateStatus.PENDING,
            tier=lowest.slug if lowest else DEFAULT_TIER_SLUG,
            commission_rate=lowest.commission_rate if lowest else DEFAULT_COMMISSION_RATE,
        )
        try:
            self.session.add(affiliate)
            await self.session.commit()
        except IntegrityError:
            # Concurrent delivery for the same user won the insert
            await self.session.rollback()
            self.logger.info(f"Affiliate for subject {subject} created concurrently")
            return WebhookResult(WebhookOutcome.ALREADY_EXISTS, {"subject": subject})

        affiliate_id = affiliate.id
        signup_meta = RequestMeta(
            ip_address=applicant_ip(user), endpoint=meta.endpoint if meta else None
        )
        self.logger.info(
            f"New affiliate {affiliate_id}: {mask_email(email)}, code {affiliate.referral_code}"
        )

        await self.deps.activity.log(
            "signup",
            affiliate_id=affiliate_id,
            details={
                "identity_subject": subject,
                "email": email,
                "referral_code": affiliate.referral_code,
                "source": "identity_webhook",
            },
            meta=signup_meta,
        )

        assessment = await self.fraud.check_application(
            affiliate_id, email, signup_meta.ip_address, utc_now()
        )
        if assessment.flagged:
            await self.deps.activity.log(
                "application_fraud_flagged",
                affiliate_id=affiliate_id,
                details=assessment.to_dict(),
                meta=signup_meta,
            )

        await self.deps.notifier.signed_up(affiliate)
        return WebhookResult(
            WebhookOutcome.AFFILIATE_CREATED,
            {"affiliate_id": affiliate_id, "referral_code": affiliate.referral_code},
        )
