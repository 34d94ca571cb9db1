"""Deterministic content generators behind the billable AI service endpoints.

Every generator is a pure function of its inputs: no I/O and no randomness, so
the same request always yields the same payload.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from services.errors import PromptNotFound


POWER_WORDS = ("ultimate", "proven", "secret", "essential", "powerful", "simple", "free", "new")


def _words(text: str) -> List[str]:
    return [word for word in re.split(r"\s+", text.strip()) if word]


def _truncate(text: str, limit: int) -> str:
    if limit and len(text) > limit:
        return text[: max(limit - 3, 0)] + "..."
    return text


# Hooks

HOOK_CATEGORIES = {
    "question": "Question-based hook",
    "statistic": "Data-driven hook",
    "story": "Narrative hook",
    "quote": "Authority-based hook",
    "bold_statement": "Statement hook",
    "problem_solution": "Problem-solving hook",
}


def generate_hook(
    *,
    topic: str,
    hook_type: str,
    platform: str,
    target_audience: Optional[str] = None,
    context: Optional[str] = None,
) -> Dict[str, Any]:
    if hook_type == "question":
        hook = f"What if {topic} could {context.lower()}?" if context else f"Did you know that {topic} can transform your business?"
        alternatives = [
            f"Have you considered how {topic} impacts your industry?",
            f"What's the real secret behind {topic}?",
            f"Why is everyone talking about {topic}?",
        ]
    elif hook_type == "statistic":
        hook = f"95% of businesses see improved results with {topic}."
        alternatives = [
            f"Studies show {topic} increases productivity by 40%.",
            f"9 out of 10 experts recommend focusing on {topic}.",
            f"The latest research reveals {topic} drives 60% more engagement.",
        ]
    elif hook_type == "bold_statement":
        hook = f"{topic} is completely changing the game."
        alternatives = [
            f"{topic} is the future, and the future is now.",
            f"Everything you know about {topic} is about to change.",
            f"{topic} isn't just a trend. It's a revolution.",
        ]
    else:
        hook = {
            "story": f"Last year, I discovered the power of {topic}...",
            "quote": f'"The future belongs to those who understand {topic}" - Industry Expert',
            "problem_solution": f"Struggling with efficiency? {topic} is your answer.",
        }.get(hook_type, f"Discover the power of {topic}.")
        alternatives = [
            f"The ultimate guide to {topic}.",
            f"Master {topic} in 5 simple steps.",
            f"Why {topic} matters more than you think.",
        ]

    if platform == "social_media":
        hook = _truncate(hook, 100)

    tips = ["Keep it concise and impactful", "Test different variations"]
    tips.extend(
        {
            "question": ["Follow with compelling answers", "Use to start conversations"],
            "statistic": ["Cite credible sources", "Use eye-catching numbers"],
            "story": ["Keep it relatable", "Include emotional elements"],
        }.get(hook_type, [])
    )
    if platform == "social_media":
        tips.extend(["Include relevant emojis", "Use hashtags strategically"])
    if target_audience:
        tips.append(f"Speak directly to {target_audience}")

    return {
        "hook": hook,
        "category": HOOK_CATEGORIES.get(hook_type, "General hook"),
        "alternatives": alternatives,
        "usageTips": tips,
        "characterCount": len(hook),
    }


# Posts

PLATFORM_LIMITS = {
    "twitter": 280,
    "facebook": 63206,
    "instagram": 2200,
    "linkedin": 3000,
    "tiktok": 300,
}

POST_OPENERS = {
    "professional": "Exploring the impact of {topic} in today's landscape. This emerging trend is reshaping how we approach innovation and efficiency.",
    "casual": "Just discovered something cool about {topic}! The possibilities are endless and I'm excited to see where this goes.",
    "friendly": "Hey everyone! Want to share some thoughts on {topic}. It's amazing how this is changing the game for so many industries.",
    "authoritative": "{topic} represents a significant paradigm shift. Industry leaders must adapt to leverage these innovations effectively.",
    "humorous": "{topic} is like that friend who always has the best ideas. Revolutionary, game-changing, and slightly intimidating!",
    "inspirational": "{topic} reminds us that innovation knows no bounds. Every challenge is an opportunity to create something extraordinary.",
}

POST_CALLS_TO_ACTION = {
    "linkedin": " What are your thoughts? Share your experience in the comments!",
    "twitter": " What do you think?",
    "instagram": " Double tap if you agree!",
    "facebook": " Let me know your thoughts in the comments below!",
    "tiktok": " Drop a comment if you found this helpful!",
}

PLATFORM_HASHTAGS = {
    "linkedin": ["#professional", "#leadership", "#growth"],
    "twitter": ["#tech", "#trending", "#discussion"],
    "instagram": ["#inspiration", "#motivation", "#lifestyle"],
    "facebook": ["#community", "#sharing", "#insights"],
    "tiktok": ["#viral", "#trending", "#fyp"],
}


def suggest_hashtags(topic: str, platform: str) -> List[str]:
    topic_tags = [f"#{word.lower()}" for word in _words(topic) if len(word) > 3]
    tags = topic_tags + ["#innovation", "#technology", "#business"] + PLATFORM_HASHTAGS.get(platform, [])
    return tags[:8]


def _platform_recommendation(platform: str, length: int) -> str:
    ratio = length / PLATFORM_LIMITS.get(platform, 280) * 100
    if ratio > 90:
        return f"Near {platform} character limit. Consider shortening for better engagement."
    if ratio > 70:
        return f"Good length for {platform}. Optimal for engagement."
    if ratio > 40:
        return f"Perfect length for {platform}. Great for readability."
    return f"Short and concise for {platform}. Consider adding more detail."


def generate_post(
    *,
    topic: str,
    tone: str,
    platform: str,
    target_audience: Optional[str] = None,
    hashtags: Optional[List[str]] = None,
    additional_context: Optional[str] = None,
) -> Dict[str, Any]:
    content = POST_OPENERS.get(tone, "Sharing insights about {topic} and its potential impact on our industry.").format(
        topic=topic
    )
    if target_audience:
        content += f" Perfect for {target_audience} looking to stay ahead of the curve."
    if additional_context:
        content += f" {additional_context}"
    content += POST_CALLS_TO_ACTION.get(platform, "")
    content = _truncate(content, PLATFORM_LIMITS.get(platform, 280))

    return {
        "content": content,
        "hashtags": list(hashtags) if hashtags else suggest_hashtags(topic, platform),
        "characterCount": len(content),
        "platformRecommendations": _platform_recommendation(platform, len(content)),
    }


# Emails

EMAIL_GREETINGS = {
    "formal": "Dear valued customer,",
    "professional": "Hello,",
    "casual": "Hi there,",
    "friendly": "Hi friend,",
    "persuasive": "Hello,",
    "urgent": "Important:",
}

EMAIL_INTROS = {
    "marketing": "We're excited to share something new with you.",
    "sales": "I wanted to reach out about an opportunity that could make a real difference for you.",
    "newsletter": "Here's what's new this month.",
    "follow_up": "I'm following up on our recent conversation.",
    "cold_outreach": "I came across your work and thought this might be relevant.",
    "thank_you": "Thank you for being part of our community.",
    "announcement": "We have some big news to share.",
}


def generate_email(
    *,
    email_type: str,
    tone: str,
    subject: str,
    target_audience: Optional[str] = None,
    key_points: Optional[List[str]] = None,
    call_to_action: Optional[str] = None,
    additional_context: Optional[str] = None,
) -> Dict[str, Any]:
    lines = [EMAIL_GREETINGS.get(tone, "Hello,"), "", EMAIL_INTROS.get(email_type, "I hope this message finds you well.")]
    if target_audience:
        lines.append(f"As someone in {target_audience}, you'll find this especially relevant.")
    if key_points:
        lines.append("")
        lines.extend(f"- {point}" for point in key_points)
    if additional_context:
        lines.extend(["", additional_context])
    lines.extend(["", call_to_action or "Reply to this email to learn more.", "", "Best regards,", "The Team"])
    body = "\n".join(lines)

    subject_line = subject.upper() if tone == "urgent" else subject
    preview_text = _truncate(EMAIL_INTROS.get(email_type, subject), 90)

    suggestions = ["Personalize the greeting with the recipient's name", "Keep paragraphs short for mobile readers"]
    if not call_to_action:
        suggestions.append("Add a specific call-to-action")
    if len(subject) > 50:
        suggestions.append("Shorten the subject line to under 50 characters")

    return {
        "subject": subject_line,
        "body": body,
        "previewText": preview_text,
        "suggestions": suggestions,
        "wordCount": len(_words(body)),
    }


# Headlines

HEADLINE_PATTERNS = {
    "question": ["Are You Making These {topic} Mistakes?", "What Does {topic} Mean for {audience}?", "Is {topic} Worth It?"],
    "how_to": ["How to Master {topic} in 30 Days", "How {audience} Can Win With {topic}", "How to Get Started With {topic}"],
    "list": ["7 Proven {topic} Strategies for {audience}", "10 Essential {topic} Tips", "5 {topic} Trends to Watch"],
    "emotional": ["The Heartbreaking Truth About {topic}", "Why {topic} Changed Everything for {audience}", "Fall in Love With {topic} Again"],
    "urgent": ["Don't Miss Out on {topic} This Year", "Last Chance: {topic} for {audience}", "{topic}: Act Now Before It's Too Late"],
    "benefit_driven": ["Save Time and Money With {topic}", "Boost Your Results With {topic}", "{topic} That Actually Works for {audience}"],
    "curiosity": ["The Secret Behind {topic} Nobody Talks About", "What {audience} Don't Know About {topic}", "This {topic} Trick Surprised Everyone"],
    "direct": ["{topic} for {audience}", "The Complete Guide to {topic}", "{topic}, Explained"],
}


def score_headline(headline: str, keywords: Optional[List[str]] = None) -> float:
    score = 5.0
    length = len(headline)
    if 30 <= length <= 60:
        score += 1
    elif 60 < length <= 90:
        score += 0.5
    lowered = headline.lower()
    score += sum(1 for keyword in keywords or [] if keyword.lower() in lowered) * 0.5
    score += sum(1 for word in POWER_WORDS if word in lowered) * 0.3
    if re.search(r"\d", headline):
        score += 0.5
    return round(min(score, 10.0), 1)


def generate_headlines(
    *,
    topic: str,
    audience: str,
    headline_type: str,
    styles: Optional[List[str]] = None,
    keywords: Optional[List[str]] = None,
    character_limit: Optional[int] = None,
    count: int = 5,
) -> Dict[str, Any]:
    chosen_styles = styles or ["how_to", "list", "question", "benefit_driven", "curiosity"]
    candidates: List[Dict[str, Any]] = []
    for index in range(max(int(count), 1)):
        style = chosen_styles[index % len(chosen_styles)]
        patterns = HEADLINE_PATTERNS.get(style, HEADLINE_PATTERNS["direct"])
        headline = patterns[(index // len(chosen_styles)) % len(patterns)].format(topic=topic, audience=audience)
        if character_limit:
            headline = _truncate(headline, int(character_limit))
        candidates.append(
            {
                "headline": headline,
                "style": style,
                "characterCount": len(headline),
                "score": score_headline(headline, keywords),
                "reasoning": f"{style.replace('_', ' ').title()} headline tailored for {headline_type.replace('_', ' ')}.",
            }
        )

    recommended = max(candidates, key=lambda item: item["score"])
    return {
        "topic": topic,
        "headlineType": headline_type,
        "variations": candidates,
        "recommendedHeadline": recommended["headline"],
        "optimizationTips": [
            "Keep headlines between 30 and 60 characters",
            "Lead with the strongest benefit",
            "Use numbers where they fit naturally",
        ],
        "testingSuggestions": [
            "A/B test the top two variations",
            f"Compare click-through rates across {audience}",
        ],
    }


# Ad copy

AD_LIMITS = {
    "google_ads": 90,
    "facebook_ads": 125,
    "instagram_ads": 125,
    "linkedin_ads": 150,
    "twitter_ads": 280,
    "youtube_ads": 100,
    "tiktok_ads": 100,
}

AD_CTA_DEFAULTS = {
    "brand_awareness": "Learn More",
    "lead_generation": "Sign Up Today",
    "sales": "Shop Now",
    "traffic": "Visit Our Site",
    "engagement": "Join the Conversation",
    "app_promotion": "Download Now",
    "event_promotion": "Reserve Your Spot",
}


def generate_ad_copy(
    *,
    product: str,
    platform: str,
    objective: str,
    tone: str,
    target_audience: str,
    key_benefits: List[str],
    call_to_action: Optional[str] = None,
    character_limit: Optional[int] = None,
    count: int = 3,
) -> Dict[str, Any]:
    limit = int(character_limit or AD_LIMITS.get(platform, 125))
    cta = call_to_action or AD_CTA_DEFAULTS.get(objective, "Learn More")
    benefits = key_benefits or [f"the best {product} experience"]

    variations: List[Dict[str, Any]] = []
    for index in range(max(int(count), 1)):
        benefit = benefits[index % len(benefits)]
        headline = _truncate(
            [f"{product}: {benefit}", f"Why {target_audience} Choose {product}", f"Discover {product} Today"][index % 3],
            40,
        )
        copy = {
            "urgent": f"Limited time! Get {product} and enjoy {benefit}.",
            "playful": f"Say hello to {product}. {benefit.capitalize()}, minus the hassle.",
            "emotional": f"Imagine {benefit} every single day with {product}.",
        }.get(tone, f"{product} helps {target_audience} with {benefit}.")
        copy = _truncate(copy, limit)
        variations.append(
            {
                "headline": headline,
                "copy": copy,
                "callToAction": cta,
                "characterCount": len(copy),
            }
        )

    return {
        "product": product,
        "platform": platform,
        "variations": variations,
        "recommendations": [
            f"Keep primary text under {limit} characters on {platform.replace('_', ' ')}",
            f"Target {target_audience} with benefit-led messaging",
        ],
        "optimizationTips": [
            "Test at least two headlines per ad set",
            "Match the landing page to the ad promise",
        ],
    }


# Voice scripts

def _section(title: str, content: str, words_per_minute: int, notes: str) -> Dict[str, Any]:
    return {
        "title": title,
        "content": content,
        "duration": round(len(_words(content)) / words_per_minute * 60),
        "voiceNotes": notes,
    }


def generate_voice_script(
    *,
    topic: str,
    audience: str,
    script_type: str,
    voice_style: str,
    key_points: List[str],
    call_to_action: Optional[str] = None,
    brand_name: Optional[str] = None,
    reading_speed: Optional[int] = None,
) -> Dict[str, Any]:
    wpm = int(reading_speed or 150)
    speaker = brand_name or "we"
    sections = [
        _section(
            "Introduction",
            f"Welcome! Today {speaker} will talk about {topic} and why it matters to {audience}.",
            wpm,
            f"Open in a {voice_style} tone and smile while speaking.",
        )
    ]
    for index, point in enumerate(key_points, start=1):
        sections.append(
            _section(
                f"Point {index}",
                f"{point}. This is where {topic} makes a real difference for {audience}.",
                wpm,
                "Pause briefly before the key phrase.",
            )
        )
    sections.append(
        _section(
            "Conclusion",
            f"That's a wrap on {topic}. {call_to_action or 'Thanks for listening.'}",
            wpm,
            "Slow down for the final sentence.",
        )
    )

    full_script = "\n\n".join(section["content"] for section in sections)
    return {
        "topic": topic,
        "scriptType": script_type,
        "sections": sections,
        "fullScript": full_script,
        "totalDuration": sum(section["duration"] for section in sections),
        "wordCount": len(_words(full_script)),
        "deliveryTips": [
            f"Keep a {voice_style} delivery throughout",
            f"Aim for about {wpm} words per minute",
        ],
        "recordingNotes": ["Record in a quiet room", "Leave two seconds of silence at each end"],
    }


# Prompt templates

def generate_prompt_template(
    *,
    purpose: str,
    use_case: str,
    target_audience: str,
    complexity: str = "intermediate",
    requirements: Optional[str] = None,
    industry: Optional[str] = None,
    variables: Optional[List[str]] = None,
) -> Dict[str, Any]:
    names = [name.strip().upper() for name in (variables or ["TOPIC", "TONE", "AUDIENCE"]) if name.strip()]
    placeholders = ", ".join(f"[{name}]" for name in names)
    template = f"Act as an expert in {purpose.replace('_', ' ')}. {use_case} for {target_audience}."
    if industry:
        template += f" Focus on the {industry} industry."
    if requirements:
        template += f" Requirements: {requirements}."
    template += f" Use these inputs: {placeholders}."
    if complexity in ("advanced", "expert"):
        template += " Explain your reasoning step by step before the final answer."

    example = template
    for name in names:
        example = example.replace(f"[{name}]", MARKETPLACE_DEFAULTS.get(name, name.lower()))

    return {
        "template": template,
        "title": f"{use_case.strip().capitalize()} Prompt",
        "description": f"A {complexity} prompt for {purpose.replace('_', ' ')} aimed at {target_audience}.",
        "variables": names,
        "instructions": "Replace each bracketed variable with your own value before running the prompt.",
        "example": example,
    }


# Prompt marketplace

MARKETPLACE_DEFAULTS = {
    "TOPIC": "your business",
    "TONE": "professional",
    "PLATFORM": "social media",
    "AUDIENCE": "your target audience",
}

MARKETPLACE_PROMPTS: List[Dict[str, Any]] = [
    {
        "id": "social-post-creator",
        "title": "Social Media Post Creator",
        "description": "Generate engaging social media posts for any platform",
        "category": "content_creation",
        "credits": 1,
        "preview": "Create a [TONE] social media post about [TOPIC] for [PLATFORM] that will engage [AUDIENCE]. Include relevant hashtags and a call-to-action.",
        "variables": ["TONE", "TOPIC", "PLATFORM", "AUDIENCE"],
        "rating": 4.8,
        "usageCount": 1247,
    },
    {
        "id": "email-marketing",
        "title": "Email Marketing Campaign",
        "description": "Professional email templates for marketing campaigns",
        "category": "marketing",
        "credits": 1,
        "preview": "Write a compelling marketing email about [TOPIC] with a [TONE] tone. Include a strong subject line and clear call-to-action for [AUDIENCE].",
        "variables": ["TOPIC", "TONE", "AUDIENCE"],
        "rating": 4.6,
        "usageCount": 892,
    },
    {
        "id": "blog-outline",
        "title": "Blog Post Outline Generator",
        "description": "Create detailed blog post outlines and structures",
        "category": "content_creation",
        "credits": 1,
        "preview": "Create a comprehensive blog post outline about [TOPIC] for [AUDIENCE]. Include main sections, key points, and SEO considerations.",
        "variables": ["TOPIC", "AUDIENCE"],
        "rating": 4.7,
        "usageCount": 634,
    },
    {
        "id": "product-description",
        "title": "Product Description Writer",
        "description": "Compelling product descriptions that convert",
        "category": "business",
        "credits": 1,
        "preview": "Write a persuasive product description for [TOPIC] targeting [AUDIENCE]. Highlight key benefits and include a compelling call-to-action.",
        "variables": ["TOPIC", "AUDIENCE"],
        "rating": 4.9,
        "usageCount": 1156,
    },
    {
        "id": "creative-story",
        "title": "Creative Story Generator",
        "description": "Generate creative stories and narratives",
        "category": "creative",
        "credits": 1,
        "preview": "Write a creative story about [TOPIC] with a [TONE] mood. Include interesting characters and an engaging plot.",
        "variables": ["TOPIC", "TONE"],
        "rating": 4.5,
        "usageCount": 423,
    },
]


def browse_prompts(
    *,
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    filtered = MARKETPLACE_PROMPTS
    if category:
        filtered = [prompt for prompt in filtered if prompt["category"] == category]
    if search:
        needle = search.lower()
        filtered = [
            prompt
            for prompt in filtered
            if needle in prompt["title"].lower() or needle in prompt["description"].lower()
        ]
    page = filtered[: int(limit or 10)]
    return {"prompts": page, "total": len(filtered), "count": len(page)}


def find_prompt(prompt_id: str) -> Dict[str, Any]:
    for prompt in MARKETPLACE_PROMPTS:
        if prompt["id"] == prompt_id:
            return prompt
    raise PromptNotFound()


def render_prompt(prompt: Dict[str, Any], variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Fill ``[VARIABLE]`` placeholders from ``variables``, then from the defaults."""
    content = prompt["preview"]
    for key, value in (variables or {}).items():
        content = content.replace(f"[{str(key).upper()}]", str(value))
    for key, value in MARKETPLACE_DEFAULTS.items():
        content = content.replace(f"[{key}]", value)
    return {"content": content, "prompt": prompt}
