from typing import Dict, List

DEFAULT_PLAN_TIER = "free"

# Stands in for "unlimited" so the quota comparison stays a plain integer check.
UNLIMITED_CREDITS = 999999

PLAN_DEFINITIONS: Dict[str, Dict] = {
    "free": {
        "tier": "free",
        "label": "Free",
        "price_hint": "$0 forever",
        "chapter_credits": 5,
        "image_credits": 30,
        "highlights": [
            "5 AI chapter generations/month",
            "30 image generations/month",
            "Unlimited projects",
            "Basic character vault",
        ],
    },
    "pro": {
        "tier": "pro",
        "label": "Pro",
        "price_hint": "$19/month",
        "chapter_credits": 100,
        "image_credits": 500,
        "highlights": [
            "100 AI chapter generations/month",
            "500 image generations/month",
            "Advanced story memory",
            "Priority AI processing",
        ],
    },
    "studio": {
        "tier": "studio",
        "label": "Studio",
        "price_hint": "$49/month",
        "chapter_credits": UNLIMITED_CREDITS,
        "image_credits": UNLIMITED_CREDITS,
        "highlights": [
            "Unlimited AI generations",
            "Unlimited image generations",
            "Team collaboration",
            "Priority support",
        ],
    },
}

# Tiers that unlock each feature flag.
FEATURE_TIERS: Dict[str, tuple] = {
    "pro": ("pro", "studio"),
    "studio": ("studio",),
}


def normalize_tier(tier: str) -> str:
    value = str(tier or "").strip().lower()
    return value if value in PLAN_DEFINITIONS else DEFAULT_PLAN_TIER


def get_plan_definition(tier: str) -> Dict:
    return PLAN_DEFINITIONS[normalize_tier(tier)]


def _int_value(value, default=0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def has_feature(tier: str, feature: str) -> bool:
    return normalize_tier(tier) in FEATURE_TIERS.get(feature, ())


def ensure_account_plan_defaults(user, preferred_tier: str = DEFAULT_PLAN_TIER) -> Dict:
    """Fill any unset plan fields on ``user`` from its tier definition."""

    tier = normalize_tier(getattr(user, "subscription_tier", "") or preferred_tier)
    plan = get_plan_definition(tier)

    if not getattr(user, "subscription_tier", None):
        user.subscription_tier = tier
    if getattr(user, "monthly_chapter_credits", None) is None:
        user.monthly_chapter_credits = plan["chapter_credits"]
    if getattr(user, "monthly_image_credits", None) is None:
        user.monthly_image_credits = plan["image_credits"]
    if getattr(user, "credits_used_this_month", None) is None:
        user.credits_used_this_month = 0
    if getattr(user, "images_used_this_month", None) is None:
        user.images_used_this_month = 0
    return plan


def apply_tier(user, tier: str) -> Dict:
    """Move ``user`` onto ``tier`` and reset its quotas to the plan values.

    Consumed counters are left untouched; they only change at period rollover.
    """

    plan = get_plan_definition(tier)
    user.subscription_tier = plan["tier"]
    user.monthly_chapter_credits = plan["chapter_credits"]
    user.monthly_image_credits = plan["image_credits"]
    ensure_account_plan_defaults(user, preferred_tier=plan["tier"])
    return plan


def reset_monthly_usage(user) -> None:
    user.credits_used_this_month = 0
    user.images_used_this_month = 0


def get_subscription_snapshot(user) -> Dict:
    plan = get_plan_definition(getattr(user, "subscription_tier", DEFAULT_PLAN_TIER))

    chapter_quota = _int_value(getattr(user, "monthly_chapter_credits", None), plan["chapter_credits"])
    image_quota = _int_value(getattr(user, "monthly_image_credits", None), plan["image_credits"])
    chapter_used = max(0, _int_value(getattr(user, "credits_used_this_month", 0), 0))
    image_used = max(0, _int_value(getattr(user, "images_used_this_month", 0), 0))

    return {
        "tier": plan["tier"],
        "label": plan["label"],
        "monthlyChapterCredits": chapter_quota,
        "monthlyImageCredits": image_quota,
        "creditsUsedThisMonth": chapter_used,
        "imagesUsedThisMonth": image_used,
        "chapterCreditsRemaining": max(0, chapter_quota - chapter_used),
        "imageCreditsRemaining": max(0, image_quota - image_used),
    }


def get_plan_catalog() -> List[Dict]:
    return [PLAN_DEFINITIONS[key] for key in ("free", "pro", "studio")]
