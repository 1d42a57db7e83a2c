"""
Helper utilities for request handling
"""

from typing import Optional
import uuid

from fastapi import Request

from smart_wardrobe.models.behavior import BehaviorContext, DeviceType


class Helpers:
    """Utility helper class"""

    @staticmethod
    def generate_session_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def device_type(user_agent: Optional[str]) -> DeviceType:
        """Mobile when the user agent says so, desktop otherwise"""
        if user_agent and "Mobile" in user_agent:
            return DeviceType.MOBILE
        return DeviceType.DESKTOP

    @staticmethod
    def enrich_context(request: Request, context: Optional[BehaviorContext] = None) -> BehaviorContext:
        """Fill user agent, device type and session id from the request"""
        context = context or BehaviorContext()
        user_agent = request.headers.get("user-agent")
        session_id = (
            context.session_id
            or request.headers.get("x-session-id")
            or Helpers.generate_session_id()
        )
        return context.model_copy(update={
            "user_agent": user_agent,
            "device_type": Helpers.device_type(user_agent).value,
            "session_id": session_id,
        })
