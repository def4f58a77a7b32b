"""Demo content — one carousel and one grid per segment on the dashboard."""

from ..bridge.contracts import CardFields
from ..models import ComponentType, UserType
from ..utils.logging import get_logger
from .content_store import ContentStore

logger = get_logger("engine.demo_seed")

_PRE_PAID_CARDS = [
    {
        "imageUrl": "https://picsum.photos/800/400?random=1",
        "title": "Top Up & Save!",
        "subtitle": "Get 20% bonus on recharge",
        "description": "Recharge PKR 500 or more and get 20% extra balance",
        "price": 500,
        "currency": "PKR",
        "ctaText": "Recharge Now",
        "ctaAction": "navigate",
        "ctaUrl": "/recharge",
        "backgroundColor": "#1a365d",
        "textColor": "#ffffff",
    },
    {
        "imageUrl": "https://picsum.photos/800/400?random=2",
        "title": "Data Bundle",
        "subtitle": "10GB for 30 days",
        "description": "Unlimited streaming with our data bundle",
        "price": 999,
        "currency": "PKR",
        "ctaText": "Subscribe",
        "ctaAction": "navigate",
        "ctaUrl": "/bundles/data",
        "backgroundColor": "#2d3748",
        "textColor": "#ffffff",
    },
]

_POST_PAID_CARDS = [
    {
        "imageUrl": "https://picsum.photos/800/400?random=3",
        "title": "Upgrade Your Plan",
        "subtitle": "Get unlimited calls",
        "description": "Switch to our Premium plan and enjoy unlimited calls",
        "price": 2999,
        "currency": "PKR",
        "ctaText": "Upgrade",
        "ctaAction": "navigate",
        "ctaUrl": "/plans/upgrade",
        "backgroundColor": "#744210",
        "textColor": "#ffffff",
    },
    {
        "imageUrl": "https://picsum.photos/800/400?random=4",
        "title": "Pay Your Bill",
        "subtitle": "Easy online payment",
        "description": "Pay your bill online and get 5% cashback",
        "ctaText": "Pay Now",
        "ctaAction": "navigate",
        "ctaUrl": "/bill/pay",
        "backgroundColor": "#22543d",
        "textColor": "#ffffff",
    },
]

_SEED = (
    (
        UserType.PRE_PAID,
        "Pre-Paid Special Offers",
        4000,
        _PRE_PAID_CARDS,
        "Quick Recharge",
        {
            "columns": 3,
            "gridItems": [
                {"id": "1", "title": "PKR 100", "subtitle": "Basic", "ctaUrl": "/recharge/100"},
                {"id": "2", "title": "PKR 500", "subtitle": "Popular", "ctaUrl": "/recharge/500"},
                {"id": "3", "title": "PKR 1000", "subtitle": "Value", "ctaUrl": "/recharge/1000"},
            ],
        },
    ),
    (
        UserType.POST_PAID,
        "Post-Paid Exclusive",
        5000,
        _POST_PAID_CARDS,
        "Bill & Plans",
        {
            "columns": 2,
            "gridItems": [
                {"id": "1", "title": "View Bill", "subtitle": "Due: PKR 2,500", "ctaUrl": "/bill"},
                {"id": "2", "title": "My Plan", "subtitle": "Unlimited Plus", "ctaUrl": "/plan"},
            ],
        },
    ),
)


async def seed_demo_data(store: ContentStore, screen_slug: str = "dashboard") -> dict:
    """Append demo content to a screen. Flushes only; the caller commits."""
    screen = await store.provision_screen(screen_slug)
    features = 0
    for segment, carousel_title, interval, cards, grid_title, grid_config in _SEED:
        await store.create_feature_with_carousel(
            title=carousel_title,
            user_type=segment,
            cards=[CardFields.model_validate(card) for card in cards],
            auto_play=True,
            interval=interval,
            screen_id=screen.id,
        )
        await store.create_feature(
            title=grid_title,
            type=ComponentType.GRID,
            user_type=segment,
            config=grid_config,
            screen_id=screen.id,
        )
        features += 2

    logger.info("demo_data_seeded", screen=screen_slug, features=features)
    return {
        "message": "Demo data seeded successfully",
        "screens": 1,
        "carousels": len(_SEED),
        "gridFeatures": features,
        "note": "Content is separate for PRE_PAID and POST_PAID users",
    }
