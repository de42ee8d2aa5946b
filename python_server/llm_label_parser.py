#!/usr/bin/env python3
"""
LLM-based prescription label interpreter
Sends OCR text to an OpenAI-compatible chat completions API and returns the
medication name, directions and warnings. Best effort: every failure is
logged and reported as None so callers can fall back to rule-based parsing.
"""

import json
import logging
from typing import Dict, Optional

import requests

import config

logger = logging.getLogger(__name__)

NO_WARNINGS = "None listed"

SYSTEM_PROMPT = (
    "You are a helpful assistant that extracts medication information from "
    "prescription labels. Always respond with valid JSON."
)


class LLMLabelParser:
    def __init__(self,
                 api_key: Optional[str] = None,
                 api_url: Optional[str] = None,
                 model: Optional[str] = None,
                 timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        """Initialize with an API key; without one the parser is disabled"""
        self.api_key = api_key or config.OPENAI_API_KEY
        self.api_url = api_url or config.OPENAI_API_URL
        self.model = model or config.OPENAI_MODEL
        self.timeout = timeout if timeout is not None else config.LLM_TIMEOUT
        self.session = session or requests.Session()

        if not self.api_key:
            logger.warning("OPENAI_API_KEY not set, AI label parsing disabled")
        else:
            logger.info(f"LLM label parser initialized with model {self.model}")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def extract_label_fields(self, ocr_text: str) -> Optional[Dict[str, str]]:
        """
        Extract name, directions and warnings from label text

        Args:
            ocr_text (str): Raw OCR text from a prescription label

        Returns:
            Optional[Dict[str, str]]: {'name', 'directions', 'warnings'} or
            None when the service is unavailable or replies with garbage
        """
        if not self.enabled:
            return None
        if not isinstance(ocr_text, str) or not ocr_text.strip():
            return None

        try:
            logger.info(f"Sending label text to LLM: '{ocr_text[:100]}...'")
            content = self._call_api(self._create_prompt(ocr_text))
        except requests.exceptions.RequestException as e:
            logger.error(f"LLM request failed: {e}")
            return None
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Unexpected LLM response envelope: {e}")
            return None

        if not isinstance(content, str):
            return None
        return self._parse_response(content)

    def _create_prompt(self, ocr_text: str) -> str:
        return f"""You are a medical prescription label parser. Extract ONLY the following information from this prescription label text:

1. MEDICATION NAME (just the drug name, including dosage if present)
2. DIRECTIONS (how to take the medication)
3. WARNINGS (any important warnings or side effects mentioned)

Return the information in this EXACT JSON format:
{{
    "name": "medication name here",
    "directions": "directions here",
    "warnings": "warnings here or '{NO_WARNINGS}' if no warnings"
}}

Prescription label text:
{ocr_text}"""

    def _call_api(self, prompt: str) -> Optional[str]:
        """
        POST the prompt and return the assistant message content

        Returns None on a non-200 status.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt}
            ],
            "temperature": 0.3,
            "max_tokens": 200
        }

        response = self.session.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
        logger.info(f"LLM API status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"LLM API error: {response.text[:500]}")
            return None

        result = response.json()
        return result['choices'][0]['message']['content']

    def _parse_response(self, content: str) -> Optional[Dict[str, str]]:
        # Models sometimes wrap JSON in markdown fences
        clean_text = content.strip()
        if clean_text.startswith('```json'):
            clean_text = clean_text[7:]
        elif clean_text.startswith('```'):
            clean_text = clean_text[3:]
        if clean_text.endswith('```'):
            clean_text = clean_text[:-3]
        clean_text = clean_text.strip()

        try:
            parsed = json.loads(clean_text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse LLM JSON response: {e}")
            logger.error(f"Raw response: {content}")
            return None

        if not isinstance(parsed, dict):
            logger.error("LLM response is not a JSON object")
            return None

        fields = {}
        for key in ('name', 'directions', 'warnings'):
            value = parsed.get(key)
            if not isinstance(value, str):
                logger.error(f"LLM response missing string field '{key}'")
                return None
            fields[key] = value.strip()

        if not fields['name']:
            logger.error("LLM response has an empty medication name")
            return None

        logger.info(f"LLM extracted: {fields}")
        return fields
