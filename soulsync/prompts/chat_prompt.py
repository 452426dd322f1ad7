# soulsync/prompts/chat_prompt.py
"""
Chat prompt templates
"""

from typing import List

from soulsync.schemas.memory_schemas import RetrievedMemory
from soulsync.utils.time_utils import format_time_ago


class ChatPrompts:
    """Personality and memory prompt templates"""

    PERSONALITIES = {
        "reflective": (
            "You're SoulSync, a sophisticated AI confidante: wise, thoughtful, calm, and deeply "
            "introspective. You respond with philosophical depth, poetic insight, and gentle wisdom. "
            "You help users explore their inner world through thoughtful questions and profound "
            "observations. Keep responses contemplative yet concise."
        ),
        "supportive": (
            "You're SoulSync, a warm and encouraging companion: empathetic, validating, and nurturing. "
            "You respond with emotional support, positive reinforcement, and genuine care. You "
            "prioritize making users feel heard, understood, and valued. Keep responses warm and "
            "uplifting yet concise."
        ),
        "creative": (
            "You're SoulSync, an imaginative and artistic soul: poetic, metaphorical, and creatively "
            "expressive. You respond with vivid imagery, artistic analogies, and creative perspectives. "
            "You help users see their experiences through a lens of beauty and wonder. Keep responses "
            "evocative yet concise."
        ),
    }
    DEFAULT_PERSONALITY = "reflective"

    MEMORY_CONTEXT = """

Relevant past memories (use only if contextually appropriate):
{memory_list}

If a memory has nothing to do with the user's current message, ignore it and do not mention it.
Answer factual questions directly from your own knowledge."""

    SENTIMENT_CLASSIFICATION = """You are a sentiment classifier.
Classify the emotional tone of the user's message as exactly one of:
very_positive, positive, neutral, negative, very_negative

Respond with JSON only, in this exact shape and nothing else:
{{"mood": "<label>"}}"""


def personality_prompt(personality: str = None) -> str:
    return ChatPrompts.PERSONALITIES.get(
        personality or ChatPrompts.DEFAULT_PERSONALITY,
        ChatPrompts.PERSONALITIES[ChatPrompts.DEFAULT_PERSONALITY],
    )


def format_memory_list(memories: List[RetrievedMemory]) -> str:
    return "\n".join(
        f"{i}. {m.content} ({format_time_ago(m.timestamp)})"
        for i, m in enumerate(memories, start=1)
    )


def build_system_prompt(personality: str, memories: List[RetrievedMemory]) -> str:
    prompt = personality_prompt(personality)
    if memories:
        prompt += ChatPrompts.MEMORY_CONTEXT.format(memory_list=format_memory_list(memories))
    return prompt
