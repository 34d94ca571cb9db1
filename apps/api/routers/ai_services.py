"""AI content services router. Every generate call is a billable action."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.enums import CreditActionType
from models.user import User
from routers.auth_scope import get_current_user
from routers.rate_limit import rate_limit
from routers.schemas import CamelModel
from services import catalog, content_templates
from services.billable import run_billable_action
from services.clock import Clock, get_clock

router = APIRouter()
logger = logging.getLogger(__name__)

generation_rate_limit = rate_limit("ai_generate", limit=120, window_seconds=3600)


class GenerateHookRequest(CamelModel):
    topic: str = Field(min_length=1)
    hook_type: Literal["question", "statistic", "story", "quote", "bold_statement", "problem_solution"]
    platform: Literal["social_media", "blog", "email", "video", "podcast"]
    target_audience: Optional[str] = None
    context: Optional[str] = None


class GeneratePostRequest(CamelModel):
    topic: str = Field(min_length=1)
    tone: Literal["professional", "casual", "friendly", "authoritative", "humorous", "inspirational"]
    platform: Literal["twitter", "facebook", "instagram", "linkedin", "tiktok"]
    target_audience: Optional[str] = None
    hashtags: Optional[List[str]] = None
    additional_context: Optional[str] = None


class GenerateEmailRequest(CamelModel):
    email_type: Literal["marketing", "sales", "newsletter", "follow_up", "cold_outreach", "thank_you", "announcement"]
    tone: Literal["professional", "casual", "friendly", "formal", "persuasive", "urgent"]
    subject: str = Field(min_length=1)
    target_audience: Optional[str] = None
    key_points: Optional[List[str]] = None
    call_to_action: Optional[str] = None
    additional_context: Optional[str] = None


class GenerateHeadlineRequest(CamelModel):
    topic: str = Field(min_length=1)
    audience: str = Field(min_length=1)
    headline_type: Literal[
        "blog_post",
        "news_article",
        "social_media",
        "email_subject",
        "ad_headline",
        "press_release",
        "landing_page",
        "product_launch",
    ]
    styles: Optional[
        List[Literal["question", "how_to", "list", "emotional", "urgent", "benefit_driven", "curiosity", "direct"]]
    ] = None
    keywords: Optional[List[str]] = None
    character_limit: Optional[int] = Field(default=None, ge=10, le=300)
    count: int = Field(default=5, ge=1, le=10)


class GenerateAdCopyRequest(CamelModel):
    product: str = Field(min_length=1)
    platform: Literal[
        "google_ads",
        "facebook_ads",
        "instagram_ads",
        "linkedin_ads",
        "twitter_ads",
        "youtube_ads",
        "tiktok_ads",
    ]
    objective: Literal[
        "brand_awareness",
        "lead_generation",
        "sales",
        "traffic",
        "engagement",
        "app_promotion",
        "event_promotion",
    ]
    tone: Literal["urgent", "friendly", "professional", "casual", "authoritative", "playful", "emotional"]
    target_audience: str = Field(min_length=1)
    key_benefits: List[str] = Field(default_factory=list)
    call_to_action: Optional[str] = None
    character_limit: Optional[int] = Field(default=None, ge=20, le=500)
    count: int = Field(default=3, ge=1, le=5)


class GenerateVoiceScriptRequest(CamelModel):
    topic: str = Field(min_length=1)
    audience: str = Field(min_length=1)
    script_type: Literal[
        "podcast",
        "voiceover",
        "presentation",
        "commercial",
        "audiobook",
        "training",
        "explainer_video",
        "youtube_video",
    ]
    voice_style: Literal[
        "conversational",
        "professional",
        "casual",
        "energetic",
        "calm",
        "authoritative",
        "friendly",
        "dramatic",
    ]
    key_points: List[str] = Field(min_length=1)
    call_to_action: Optional[str] = None
    brand_name: Optional[str] = None
    reading_speed: Optional[int] = Field(default=None, ge=80, le=250)


class GeneratePromptTemplateRequest(CamelModel):
    purpose: Literal[
        "content_creation",
        "marketing",
        "email_writing",
        "social_media",
        "business_communication",
        "creative_writing",
        "education",
        "technical",
    ]
    use_case: str = Field(min_length=1)
    target_audience: str = Field(min_length=1)
    complexity: Literal["beginner", "intermediate", "advanced", "expert"] = "intermediate"
    requirements: Optional[str] = None
    industry: Optional[str] = None
    variables: Optional[List[str]] = None


class UsePromptRequest(CamelModel):
    prompt_id: str = Field(min_length=1)
    variables: Optional[Dict[str, Any]] = None


async def _run(
    db: AsyncSession,
    user: User,
    clock: Clock,
    *,
    service_name: str,
    action: CreditActionType,
    message: str,
    perform,
    metadata: Dict[str, Any],
) -> Dict[str, Any]:
    return await run_billable_action(
        db,
        user.id,
        service_name=service_name,
        action=action,
        perform=perform,
        message=message,
        metadata=metadata,
        clock=clock,
    )


@router.post("/hook-generator/generate")
async def generate_hook(
    request: GenerateHookRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.HOOK_GENERATOR,
        action=CreditActionType.GENERATE_HOOK,
        message="Hook generated successfully",
        perform=lambda: content_templates.generate_hook(**request.model_dump()),
        metadata={"topic": request.topic, "hookType": request.hook_type},
    )


@router.post("/post-generator/generate")
async def generate_post(
    request: GeneratePostRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.POST_GENERATOR,
        action=CreditActionType.GENERATE_POST,
        message="Post generated successfully",
        perform=lambda: content_templates.generate_post(**request.model_dump()),
        metadata={"topic": request.topic, "platform": request.platform},
    )


@router.post("/email-generator/generate")
async def generate_email(
    request: GenerateEmailRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.EMAIL_GENERATOR,
        action=CreditActionType.GENERATE_EMAIL,
        message="Email generated successfully",
        perform=lambda: content_templates.generate_email(**request.model_dump()),
        metadata={"emailType": request.email_type, "subject": request.subject},
    )


@router.post("/headline-generator/generate")
async def generate_headlines(
    request: GenerateHeadlineRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.HEADLINE_GENERATOR,
        action=CreditActionType.GENERATE_HEADLINE,
        message="Headlines generated successfully",
        perform=lambda: content_templates.generate_headlines(**request.model_dump()),
        metadata={"topic": request.topic, "headlineType": request.headline_type},
    )


@router.post("/ad-copy-generator/generate")
async def generate_ad_copy(
    request: GenerateAdCopyRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.AD_COPY_GENERATOR,
        action=CreditActionType.GENERATE_AD_COPY,
        message="Ad copy generated successfully",
        perform=lambda: content_templates.generate_ad_copy(**request.model_dump()),
        metadata={"product": request.product, "platform": request.platform},
    )


@router.post("/voice-script-writer/generate")
async def generate_voice_script(
    request: GenerateVoiceScriptRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.VOICE_SCRIPT_WRITER,
        action=CreditActionType.GENERATE_VOICE_SCRIPT,
        message="Voice script generated successfully",
        perform=lambda: content_templates.generate_voice_script(**request.model_dump()),
        metadata={"topic": request.topic, "scriptType": request.script_type},
    )


@router.post("/prompt-template-generator/generate")
async def generate_prompt_template(
    request: GeneratePromptTemplateRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.PROMPT_TEMPLATE_GENERATOR,
        action=CreditActionType.GENERATE_PROMPT_TEMPLATE,
        message="Prompt template generated successfully",
        perform=lambda: content_templates.generate_prompt_template(**request.model_dump()),
        metadata={"purpose": request.purpose, "useCase": request.use_case},
    )


@router.get("/prompt-marketplace/prompts")
async def browse_prompts(
    category: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=10, ge=1, le=50),
    _user: User = Depends(get_current_user),
):
    return content_templates.browse_prompts(category=category, search=search, limit=limit)


@router.post("/prompt-marketplace/use")
async def use_prompt(
    request: UsePromptRequest,
    _rate_limit: None = Depends(generation_rate_limit),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    prompt = content_templates.find_prompt(request.prompt_id)
    return await _run(
        db,
        user,
        clock,
        service_name=catalog.PROMPT_MARKETPLACE,
        action=CreditActionType.USE_PROMPT_TEMPLATE,
        message="Prompt used successfully",
        perform=lambda: content_templates.render_prompt(prompt, request.variables),
        metadata={"promptId": request.prompt_id, "variables": request.variables},
    )
