"""
Fraud signals.

Pure scoring over snapshots of recent ledger activity. No I/O and no
clock reads: everything time-dependent is already folded into the
snapshot by the caller.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from app.config import constants as c
from app.utils.email_utils import has_plus_addressing, is_disposable_email, normalize_email


@dataclass(frozen=True)
class ReferralActivitySnapshot:
    """
    Counts the referral-time signals are computed from.

    Attributes:
        affiliate_last_hour: Affiliate's referrals in the trailing hour
        affiliate_last_24h: Affiliate's referrals in the trailing 24h
        affiliate_prior_30d: Affiliate's referrals in the 30 days before that
        global_last_24h: Referrals from all affiliates in the trailing 24h
        order_total: Total of the order being attributed
    """

    affiliate_last_hour: int
    affiliate_last_24h: int
    affiliate_prior_30d: int
    global_last_24h: int
    order_total: Decimal


@dataclass(frozen=True)
class ApplicationSnapshot:
    """Inputs for the affiliate-application check."""

    email: str
    existing_emails: tuple[str, ...]
    affiliates_sharing_ip: int = 0


@dataclass
class FraudAssessment:
    """Additive score with the reasons that contributed to it."""

    score: int = 0
    flagged: bool = False
    reasons: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def add(self, points: int, reason: str) -> None:
        self.score += points
        self.reasons.append(reason)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "flagged": self.flagged,
            "reasons": list(self.reasons),
            "notes": list(self.notes),
        }


def score_referral(
    snapshot: ReferralActivitySnapshot,
    threshold: int = c.FRAUD_FLAG_THRESHOLD,
) -> FraudAssessment:
    """
    Score a referral about to be created.

    Signals:
        velocity: >= 10 referrals in the last hour (+30)
        code usage: >= 20 referrals globally in 24h (+20)
        spike: >= 5 in 24h against a < 1/day 30-day average (+25)
        order total: > 1000 (+10) or < 10 (+15)

    Args:
        snapshot: Activity counts
        threshold: Score at which the referral is flagged

    Returns:
        FraudAssessment
    """
    result = FraudAssessment()

    if snapshot.affiliate_last_hour >= c.REFERRALS_PER_HOUR_LIMIT:
        result.add(
            c.REFERRAL_VELOCITY_SCORE,
            f"High referral velocity: {snapshot.affiliate_last_hour} referrals in the last hour",
        )

    # Counts every referral, not uses of one code
    if snapshot.global_last_24h >= c.CODE_USES_PER_DAY_LIMIT:
        result.add(
            c.CODE_USAGE_SCORE,
            f"High discount code usage: {snapshot.global_last_24h} uses in 24 hours",
        )

    historical_daily_avg = Decimal(snapshot.affiliate_prior_30d) / c.SPIKE_HISTORY_DAYS
    if (
        snapshot.affiliate_last_24h >= c.SPIKE_RECENT_MIN
        and historical_daily_avg < c.SPIKE_HISTORICAL_DAILY_AVG_MAX
    ):
        result.add(
            c.SPIKE_SCORE,
            f"Unusual activity spike: {snapshot.affiliate_last_24h} referrals in 24h "
            f"vs {historical_daily_avg:.2f}/day average",
        )

    if snapshot.order_total > c.HIGH_ORDER_TOTAL:
        result.add(c.HIGH_ORDER_SCORE, f"High order total: ${snapshot.order_total}")
    elif snapshot.order_total < c.LOW_ORDER_TOTAL:
        result.add(c.LOW_ORDER_SCORE, f"Suspiciously low order total: ${snapshot.order_total}")

    result.flagged = result.score >= threshold
    return result


def count_similar_emails(email: str, existing: Iterable[str]) -> int:
    """
    Count existing emails that normalize to the same address.

    Examples:
        >>> count_similar_emails("j.doe+1@x.com", ["jdoe@x.com", "JDoe@X.com", "other@x.com"])
        2
    """
    target = normalize_email(email)
    return sum(1 for other in existing if normalize_email(other) == target)


def score_application(
    snapshot: ApplicationSnapshot,
    threshold: int = c.FRAUD_FLAG_THRESHOLD,
) -> FraudAssessment:
    """
    Score an affiliate application.

    Signals:
        similar emails: >= 3 (+40), any (+15)
        shared IP over 7 days: >= 3 other affiliates (+35), any (+10)

    Disposable domains and plus-addressing are recorded as notes only.
    """
    result = FraudAssessment()

    similar = count_similar_emails(snapshot.email, snapshot.existing_emails)
    if similar >= c.SIMILAR_EMAILS_MANY:
        result.add(c.SIMILAR_EMAILS_MANY_SCORE, f"Multiple similar emails found: {similar}")
    elif similar > 0:
        result.add(c.SIMILAR_EMAILS_SOME_SCORE, f"Similar email found: {similar}")

    sharing = snapshot.affiliates_sharing_ip
    if sharing >= c.IP_CLUSTER_MANY:
        result.add(c.IP_CLUSTER_MANY_SCORE, f"Multiple affiliates from same IP: {sharing}")
    elif sharing > 0:
        result.add(c.IP_CLUSTER_SOME_SCORE, f"Shared IP with another affiliate: {sharing}")

    if is_disposable_email(snapshot.email):
        result.notes.append("Disposable email domain")
    if has_plus_addressing(snapshot.email):
        result.notes.append("Plus-addressed email")

    result.flagged = result.score >= threshold
    return result
