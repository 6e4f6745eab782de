import json
import re
import time
import logging
from typing import Any, Dict, List, Optional

from agent.prompts import ACTION_PROMPT
from config import settings

logger = logging.getLogger(__name__)

LLMProvider = str


def _client_for(provider: LLMProvider):
    return {
        "anthropic": settings.anthropic_client,
        "openai": settings.openai_client,
        "groq": settings.groq_client,
    }.get(provider)


def get_llm_response(system_prompt: str, prompt: str, provider: LLMProvider) -> str:
    for attempt in range(3):
        try:
            if provider == "anthropic":
                if not settings.anthropic_client: raise ValueError("Anthropic client not initialized.")
                return call_anthropic(system_prompt, prompt)
            elif provider == "openai":
                if not settings.openai_client: raise ValueError("OpenAI client not initialized.")
                return call_openai(system_prompt, prompt)
            elif provider == "groq":
                if not settings.groq_client: raise ValueError("Groq client not initialized.")
                return call_groq(system_prompt, prompt)
            else:
                raise ValueError(f"Unsupported LLM provider: {provider}")
        except Exception as e:
            if attempt == 2:
                raise
            logger.warning(f"LLM call failed (attempt {attempt + 1}): {e}")
            time.sleep(2)


def call_anthropic(system_prompt: str, prompt: str) -> str:
    messages = [{"role": "user", "content": [{"type": "text", "text": prompt}]}]
    response = settings.anthropic_client.messages.create(model=settings.ANTHROPIC_MODEL, max_tokens=1024, system=system_prompt, messages=messages, timeout=60)
    return response.content[0].text


def call_openai(system_prompt: str, prompt: str) -> str:
    response = settings.openai_client.chat.completions.create(model=settings.OPENAI_MODEL, max_tokens=1024, messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": prompt}], response_format={"type": "json_object"}, timeout=60)
    return response.choices[0].message.content


def call_groq(system_prompt: str, prompt: str) -> str:
    response = settings.groq_client.chat.completions.create(model=settings.GROQ_MODEL, max_tokens=1024, messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": prompt}], response_format={"type": "json_object"}, timeout=60)
    return response.choices[0].message.content


def extract_json_from_response(text: str) -> Dict:
    start_brace_index = text.find('{')
    if start_brace_index == -1:
        raise ValueError(f"No JSON object found in the model's response: {text}")

    end_brace_index = text.rfind('}')
    if end_brace_index == -1:
        json_str = text[start_brace_index:]
    else:
        json_str = text[start_brace_index : end_brace_index + 1]

    json_str_fixed = re.sub(r',\s*([\}\]])', r'\1', json_str)

    open_braces = json_str_fixed.count('{')
    close_braces = json_str_fixed.count('}')
    if open_braces > close_braces:
        json_str_fixed += '}' * (open_braces - close_braces)

    return json.loads(json_str_fixed)


def format_elements(elements: List[Dict[str, Any]]) -> str:
    return "\n".join(f"[{e['id']}] <{e.get('tag', '')}> {e.get('label', '')[:100]}" for e in elements)


def choose_element(instruction: str, elements: List[Dict[str, Any]], provider: LLMProvider = None) -> Optional[str]:
    """Asks the configured LLM which element performs `instruction`.

    Returns the element id, or None when no LLM is configured, the call fails,
    or the model declines. The instruction is passed with its %placeholders%
    unresolved so secrets never leave the process.
    """
    provider = provider or settings.ACTION_LLM_PROVIDER
    if not elements or not _client_for(provider):
        return None

    prompt = ACTION_PROMPT.format(instruction=instruction, elements=format_elements(elements))
    system_prompt = "You resolve browser actions to page elements. Respond ONLY with the JSON object."
    try:
        response_text = get_llm_response(system_prompt, prompt, provider)
        choice = extract_json_from_response(response_text)
    except Exception as e:
        # Provider SDK errors included; the caller reports the unresolved action
        logger.warning(f"LLM element resolution failed for '{instruction}': {e}")
        return None

    element_id = choice.get("id")
    logger.info(f"LLM resolved '{instruction}' to element {element_id}: {choice.get('reason', '')}")
    return str(element_id) if element_id not in (None, "", "null") else None
