"""
Service container.

Holds the long-lived collaborators (HTTP clients, session factory,
audit sinks) and builds per-session services from them. The web app
and the background jobs each own one instance.
"""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.settings import settings
from app.services.admin import (
    AdminAuthorizer,
    AffiliateAdminService,
    OperationsAdminService,
    PayoutAdminService,
    ReferralAdminService,
    TierAdminService,
)
from app.services.audit.activity_logger import ActivityLogger
from app.services.audit.diagnostics import DiagnosticSink
from app.services.integrations.interfaces import (
    DiscountProvisioner,
    NotificationClient,
    PayoutProcessor,
)
from app.services.integrations.klaviyo_client import KlaviyoClient
from app.services.integrations.notifier import AffiliateNotifier
from app.services.integrations.paypal_client import PayPalClient
from app.services.integrations.shopify_client import ShopifyClient
from app.services.payout.orchestrator import PayoutOrchestrator
from app.services.payout.reconciliation import ReconciliationPoller
from app.services.payout.settlement import PayoutSettlementService
from app.services.webhooks import (
    DisbursementWebhookHandler,
    HandlerDeps,
    IdentityWebhookHandler,
    StorefrontWebhookHandler,
    SubscriptionWebhookHandler,
    WebhookVerifier,
)


@dataclass
class ServiceContainer:
    """Wiring for one process."""

    session_factory: async_sessionmaker[AsyncSession]
    processor: PayoutProcessor | None = None
    notification_client: NotificationClient | None = None
    provisioner: DiscountProvisioner | None = None
    verifier: WebhookVerifier = field(default_factory=WebhookVerifier.from_settings)
    authorizer: AdminAuthorizer = field(default_factory=AdminAuthorizer)

    def __post_init__(self) -> None:
        self.diagnostics = DiagnosticSink(self.session_factory)
        self.activity = ActivityLogger(self.session_factory)
        self.notifier = AffiliateNotifier(self.notification_client)

    @classmethod
    def from_settings(
        cls, session_factory: async_sessionmaker[AsyncSession]
    ) -> "ServiceContainer":
        """Build real clients for whatever integrations are configured."""
        processor = PayPalClient() if settings.paypal_configured else None
        notification_client = KlaviyoClient() if settings.klaviyo_api_key else None
        provisioner = ShopifyClient() if settings.shopify_configured else None

        logger.info(
            "Integrations: "
            f"paypal={'on' if processor else 'off'}, "
            f"klaviyo={'on' if notification_client else 'off'}, "
            f"shopify={'on' if provisioner else 'off'}"
        )
        return cls(
            session_factory=session_factory,
            processor=processor,
            notification_client=notification_client,
            provisioner=provisioner,
        )

    async def close(self) -> None:
        """Close owned HTTP sessions."""
        for client in (self.processor, self.notification_client, self.provisioner):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    @property
    def handler_deps(self) -> HandlerDeps:
        return HandlerDeps(
            notifier=self.notifier, activity=self.activity, diagnostics=self.diagnostics
        )

    # Webhooks

    def storefront_handler(self, session: AsyncSession) -> StorefrontWebhookHandler:
        return StorefrontWebhookHandler(session, self.handler_deps)

    def subscription_handler(self, session: AsyncSession) -> SubscriptionWebhookHandler:
        return SubscriptionWebhookHandler(session, self.handler_deps)

    def identity_handler(self, session: AsyncSession) -> IdentityWebhookHandler:
        return IdentityWebhookHandler(session, self.handler_deps)

    def disbursement_handler(self, session: AsyncSession) -> DisbursementWebhookHandler:
        return DisbursementWebhookHandler(
            session, self.settlement(session), self.diagnostics, self.processor
        )

    # Payouts

    def settlement(self, session: AsyncSession) -> PayoutSettlementService:
        return PayoutSettlementService(session, self.notifier, self.activity)

    def orchestrator(self, session: AsyncSession) -> PayoutOrchestrator:
        return PayoutOrchestrator(session, self.diagnostics, self.processor, self.activity)

    def poller(self, session: AsyncSession) -> ReconciliationPoller | None:
        if self.processor is None:
            return None
        return ReconciliationPoller(
            session, self.processor, self.settlement(session), self.diagnostics
        )

    # Admin

    def affiliate_admin(self, session: AsyncSession) -> AffiliateAdminService:
        return AffiliateAdminService(
            session, self.notifier, self.activity, self.diagnostics, self.provisioner
        )

    def referral_admin(self, session: AsyncSession) -> ReferralAdminService:
        return ReferralAdminService(session, self.activity)

    def payout_admin(self, session: AsyncSession) -> PayoutAdminService:
        return PayoutAdminService(
            session, self.settlement(session), self.orchestrator(session), self.activity
        )

    def tier_admin(self, session: AsyncSession) -> TierAdminService:
        return TierAdminService(session, self.activity)

    def operations_admin(self, session: AsyncSession) -> OperationsAdminService:
        return OperationsAdminService(session)
