"""Slash-command response payloads and delayed follow-up delivery."""

from __future__ import annotations

import logging
from typing import List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field
from requests import Session
from requests.exceptions import RequestException

from .errors import NotificationError

logger = logging.getLogger(__name__)

BOT_NAME = "Matterbuild"
BOT_ICON_URL = "https://mattermost.com/wp-content/uploads/2022/02/icon.png"

RESPONSE_IN_CHANNEL = "in_channel"
RESPONSE_EPHEMERAL = "ephemeral"

COLOR_INFO = "#0060aa"
COLOR_ERROR = "#fc081c"


class Attachment(BaseModel):
    fallback: str = ""
    color: str = ""
    pretext: str = ""
    author_name: str = ""
    author_link: str = ""
    author_icon: str = ""
    title: str = ""
    title_link: str = ""
    text: str = ""

    model_config = ConfigDict(extra="forbid")


class SlashResponse(BaseModel):
    response_type: str = RESPONSE_EPHEMERAL
    text: str = ""
    goto_location: str = ""
    username: str = BOT_NAME
    icon_url: str = BOT_ICON_URL
    attachments: Optional[List[Attachment]] = Field(default=None)

    model_config = ConfigDict(extra="forbid")


def standard_response(text: str, response_type: str = RESPONSE_EPHEMERAL) -> SlashResponse:
    return SlashResponse(response_type=response_type, text=text)


def enriched_response(title: str, text: str, color: str, response_type: str = RESPONSE_IN_CHANNEL) -> SlashResponse:
    """Single-attachment response, the shape every plugin release message uses."""

    attachment = Attachment(
        fallback=text,
        color=color,
        text=text,
        title=title,
        author_name=BOT_NAME,
        author_icon=BOT_ICON_URL,
    )
    return SlashResponse(response_type=response_type, attachments=[attachment])


def post_extra_message(response_url: str, payload: SlashResponse, *, session: Optional[Session] = None, timeout: float = 30.0) -> None:
    """POST ``payload`` to the command's response URL."""

    if session is not None:
        _post(session, response_url, payload, timeout)
        return
    with requests.Session() as http:
        _post(http, response_url, payload, timeout)


def _post(http: Session, response_url: str, payload: SlashResponse, timeout: float) -> None:
    try:
        response = http.post(
            response_url,
            data=payload.model_dump_json(),
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
    except RequestException as exc:
        raise NotificationError(f"failed to post follow-up message: {exc}") from exc
    try:
        if response.status_code >= 400:
            raise NotificationError(
                f"failed to post follow-up message: {response.status_code} {response.reason}"
            )
    finally:
        response.close()
    logger.debug("posted follow-up message to %s", response_url)
