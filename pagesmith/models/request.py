"""
Request models for pagesmith
"""
from __future__ import annotations
from typing import Dict, List
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """One page generation request as sent to a model backend."""

    system_prompt: str = Field("", description="System prompt (site-wide instructions and layout)")
    user_prompt: str = Field(..., description="Page prompt, plus any user input")
    model: str = Field(..., description="Model identifier")
    suppress_reasoning: bool = Field(
        False,
        description="Ask the backend not to emit intermediate reasoning output"
    )

    def messages(self) -> List[Dict[str, str]]:
        """Chat messages in the OpenAI/Ollama wire format."""
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.user_prompt})
        return messages
