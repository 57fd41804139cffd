"""
Task description drafting through a generative-text API (Gemini
`generateContent` request/response shape).
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from backend.config import Settings
from schemas import STATUS_COLUMNS

logger = logging.getLogger(__name__)

PROMPT_PREFIX = (
    "Generate a paragraph without any headlines with more details with limit of 200 words "
    "task description similar to JIRA for the following task items: "
)


class DescriptionError(Exception):
    pass


class DescriptionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assigned_to_name: Optional[str] = Field(None, alias="assignedToName")
    assigned_by_name: Optional[str] = Field(None, alias="assignedByName")
    title: Optional[str] = None
    tags: Optional[str] = None
    resource_link: Optional[str] = None
    status: Optional[int] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None


def build_prompt(req: DescriptionRequest) -> str:
    prompt = PROMPT_PREFIX
    if req.assigned_to_name:
        prompt += f"Assigned To: {req.assigned_to_name}. "
    if req.assigned_by_name:
        prompt += f"Assigned By: {req.assigned_by_name}. "
    if req.title:
        prompt += f"Title: {req.title}. "
    if req.tags:
        prompt += f"comma_seprated_tags: {req.tags}. "
    if req.resource_link:
        prompt += f"Resource_link: {req.resource_link}. "
    if req.status in STATUS_COLUMNS:
        prompt += f"status: {STATUS_COLUMNS[req.status]}. "
    if req.priority:
        prompt += f"priority: {req.priority}. "
    if req.due_date:
        prompt += f"due_date: {req.due_date}. "
    return prompt


def extract_text(data) -> str:
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"].strip()
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise DescriptionError(f"unexpected response structure: {data!r}") from exc


class DescriptionGenerator:
    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.api_url = settings.gemini_api_url
        self.api_key = settings.gemini_api_key
        self.timeout = settings.gemini_timeout
        self.transport = transport

    def generate(self, req: DescriptionRequest) -> str:
        if not self.api_url or not self.api_key:
            raise DescriptionError("GEMINI_API_URL / GEMINI_API_KEY not configured")

        payload = {"contents": [{"parts": [{"text": build_prompt(req)}]}]}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.api_url, params={"key": self.api_key}, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DescriptionError(f"description request failed: {exc}") from exc
        return extract_text(data)
