"""Service catalog and the default plan tiers, seeded idempotently."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.enums import UsagePeriod
from models.service import Service
from models.subscription_plan import UNLIMITED_USAGE, PlanService, SubscriptionPlan
from services.errors import ServiceNotFound

logger = logging.getLogger(__name__)

POST_GENERATOR = "post_generator_ai"
EMAIL_GENERATOR = "email_generator_ai"
HOOK_GENERATOR = "hook_generator_ai"
PROMPT_MARKETPLACE = "ai_prompt_marketplace"
CONTENT_SCHEDULER = "content_scheduler"
PROMPT_TEMPLATE_GENERATOR = "prompt_template_generator"
AD_COPY_GENERATOR = "ai_ad_copy_generator"
HEADLINE_GENERATOR = "ai_headline_generator"
VOICE_SCRIPT_WRITER = "ai_voice_script_writer"

SERVICE_CATALOG: List[Dict[str, Any]] = [
    {
        "name": POST_GENERATOR,
        "title": "Post Generator AI",
        "description": "Generate high-quality social media posts with AI",
        "icon": "post-generator-icon.svg",
        "credit_cost": 3,
    },
    {
        "name": EMAIL_GENERATOR,
        "title": "Email Generator AI",
        "description": "Create professional email content using AI",
        "icon": "email-ai-icon.svg",
        "credit_cost": 4,
    },
    {
        "name": HOOK_GENERATOR,
        "title": "Hook Generator AI",
        "description": "Generate attention-grabbing hooks with AI",
        "icon": "hook-ai-icon.svg",
        "credit_cost": 2,
    },
    {
        "name": PROMPT_MARKETPLACE,
        "title": "AI Prompt Marketplace",
        "description": "Access and use pre-made AI prompts",
        "icon": "marketplace-icon.svg",
        "credit_cost": 1,
    },
    {
        "name": CONTENT_SCHEDULER,
        "title": "Content Scheduler",
        "description": "Schedule and manage your content across platforms",
        "icon": "scheduler-icon.svg",
        "credit_cost": 0,
    },
    {
        "name": PROMPT_TEMPLATE_GENERATOR,
        "title": "Prompt Template Generator",
        "description": "Create custom AI prompt templates",
        "icon": "template-icon.svg",
        "credit_cost": 2,
    },
    {
        "name": AD_COPY_GENERATOR,
        "title": "AI Ad Copy Generator",
        "description": "Generate compelling ad copy with AI",
        "icon": "ad-copy-icon.svg",
        "credit_cost": 3,
    },
    {
        "name": HEADLINE_GENERATOR,
        "title": "AI Headline Generator",
        "description": "Create catchy headlines using AI",
        "icon": "headline-icon.svg",
        "credit_cost": 2,
    },
    {
        "name": VOICE_SCRIPT_WRITER,
        "title": "AI Voice Script Writer",
        "description": "Generate voice scripts for videos and podcasts",
        "icon": "voice-script-icon.svg",
        "credit_cost": 5,
    },
]

# Plan -> {service name: monthly usage limit}. ``None`` for services means every service.
PLAN_CATALOG: List[Dict[str, Any]] = [
    {
        "name": "Free",
        "title": "Free Plan",
        "description": "Perfect for getting started with basic features",
        "price": 0,
        "duration_days": 30,
        "is_recurring": True,
        "credits_included": 10,
        "paddle_plan_id": None,
        "services": {
            PROMPT_MARKETPLACE: 5,
            HOOK_GENERATOR: 3,
            POST_GENERATOR: 3,
            HEADLINE_GENERATOR: 3,
            CONTENT_SCHEDULER: 10,
        },
    },
    {
        "name": "Pro",
        "title": "Professional Plan",
        "description": "Perfect for professionals and small businesses",
        "price": 2999,
        "duration_days": 30,
        "is_recurring": True,
        "credits_included": 100,
        "paddle_plan_id": "12345",
        "services": {
            POST_GENERATOR: 100,
            EMAIL_GENERATOR: 50,
            HOOK_GENERATOR: 50,
            HEADLINE_GENERATOR: 50,
            AD_COPY_GENERATOR: 30,
            PROMPT_TEMPLATE_GENERATOR: 30,
            VOICE_SCRIPT_WRITER: 20,
            PROMPT_MARKETPLACE: 100,
            CONTENT_SCHEDULER: UNLIMITED_USAGE,
        },
    },
    {
        "name": "Business",
        "title": "Business Plan",
        "description": "Perfect for teams and growing businesses",
        "price": 9999,
        "duration_days": 30,
        "is_recurring": True,
        "credits_included": 500,
        "paddle_plan_id": "67890",
        "services": None,
    },
]


async def get_service_by_name(name: str, db: AsyncSession) -> Service:
    result = await db.execute(select(Service).where(Service.name == name, Service.is_active.is_(True)))
    service = result.scalar_one_or_none()
    if service is None:
        logger.error("Service %s is missing from the catalog", name)
        raise ServiceNotFound(f"Service not found: {name}")
    return service


async def get_service(service_id: str, db: AsyncSession) -> Optional[Service]:
    result = await db.execute(select(Service).where(Service.id == service_id))
    return result.scalar_one_or_none()


async def list_services(db: AsyncSession) -> List[Service]:
    result = await db.execute(
        select(Service).where(Service.is_active.is_(True)).order_by(Service.name.asc())
    )
    return list(result.scalars().all())


def service_to_dict(service: Service) -> Dict[str, Any]:
    return {
        "id": service.id,
        "name": service.name,
        "title": service.title,
        "description": service.description,
        "icon": service.icon,
        "creditCost": int(service.credit_cost or 0),
        "isActive": bool(service.is_active),
    }


async def _upsert_services(db: AsyncSession) -> Dict[str, Service]:
    result = await db.execute(select(Service))
    existing = {service.name: service for service in result.scalars().all()}
    for entry in SERVICE_CATALOG:
        service = existing.get(entry["name"])
        if service is None:
            service = Service(**entry)
            db.add(service)
            existing[entry["name"]] = service
        else:
            for key, value in entry.items():
                setattr(service, key, value)
    await db.flush()
    return existing


async def _upsert_plan(entry: Dict[str, Any], services: Dict[str, Service], db: AsyncSession) -> SubscriptionPlan:
    result = await db.execute(select(SubscriptionPlan).where(SubscriptionPlan.name == entry["name"]))
    plan = result.scalar_one_or_none()
    fields = {key: value for key, value in entry.items() if key != "services"}
    if plan is None:
        plan = SubscriptionPlan(**fields)
        db.add(plan)
        await db.flush()

    limits = entry["services"]
    if limits is None:
        limits = {name: UNLIMITED_USAGE for name in services}

    links = await db.execute(select(PlanService).where(PlanService.plan_id == plan.id))
    by_service = {link.service_id: link for link in links.scalars().all()}
    for service_name, usage_limit in limits.items():
        service = services[service_name]
        link = by_service.get(service.id)
        if link is None:
            db.add(
                PlanService(
                    plan_id=plan.id,
                    service_id=service.id,
                    usage_limit=usage_limit,
                    usage_period=UsagePeriod.MONTHLY.value,
                )
            )
        else:
            link.usage_limit = usage_limit
            link.usage_period = UsagePeriod.MONTHLY.value
    await db.flush()
    return plan


async def seed_catalog(db: AsyncSession) -> Dict[str, int]:
    """Create or refresh the services and the Free/Pro/Business plans. Safe to rerun."""
    services = await _upsert_services(db)
    for entry in PLAN_CATALOG:
        await _upsert_plan(entry, services, db)
    await db.commit()
    logger.info("Catalog seeded: %s services, %s plans", len(SERVICE_CATALOG), len(PLAN_CATALOG))
    return {"services": len(SERVICE_CATALOG), "plans": len(PLAN_CATALOG)}
