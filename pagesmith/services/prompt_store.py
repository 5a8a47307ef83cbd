"""
Prompt Store for pagesmith

Loads prompt text from the prompts directory:
- ``system_prompt.txt``: site-wide system prompt
- ``layout.min.txt`` or ``layout.txt``: layout instructions appended to it
- ``<page>.txt``: the prompt for one page (``home.txt`` for ``/``)
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import aiofiles

from pagesmith.errors import PromptNotFound

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_FILE = "system_prompt.txt"
LAYOUT_FILES = ("layout.min.txt", "layout.txt")
DEFAULT_PAGE = "home"


class PromptStore:
    """Reads prompt files, re-reading a file only when it changes on disk."""

    def __init__(self, prompts_dir: Path):
        self.prompts_dir = Path(prompts_dir)
        self._cache: Dict[str, Tuple[float, str]] = {}

    def page_path(self, page: str) -> Path:
        """Map a URL path to its prompt file. Raises ``PromptNotFound``."""
        name = page.strip("/") or DEFAULT_PAGE
        if not name.endswith(".txt"):
            name += ".txt"

        root = self.prompts_dir.resolve()
        path = (root / name).resolve()
        if root not in path.parents or not path.is_file():
            raise PromptNotFound(name)
        return path

    async def get_system_prompt(self) -> str:
        """System prompt with the layout appended, if either exists."""
        parts = []
        system_prompt = await self._read_file(self.prompts_dir / SYSTEM_PROMPT_FILE)
        if system_prompt is None:
            logger.warning("%s not found in %s", SYSTEM_PROMPT_FILE, self.prompts_dir)
        elif system_prompt:
            parts.append(system_prompt)

        for layout_name in LAYOUT_FILES:
            layout = await self._read_file(self.prompts_dir / layout_name)
            if layout is not None:
                if layout:
                    parts.append(layout)
                break

        return "\n\n".join(parts)

    async def get_page_prompt(self, page: str) -> str:
        path = self.page_path(page)
        content = await self._read_file(path)
        if content is None:
            raise PromptNotFound(path.name)
        return content

    async def build_prompts(self, page: str, user_input: str = "") -> Tuple[str, str]:
        """Return ``(system_prompt, user_prompt)`` for a page request."""
        user_prompt = await self.get_page_prompt(page)
        if user_input:
            user_prompt += "\n\nUser Input: " + user_input
        return await self.get_system_prompt(), user_prompt

    async def _read_file(self, path: Path) -> Optional[str]:
        """Read a file with caching. Returns None if it doesn't exist."""
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return None

        cache_key = str(path)
        cached = self._cache.get(cache_key)
        if cached and cached[0] == mtime:
            return cached[1]

        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
        self._cache[cache_key] = (mtime, content)
        return content


# Global instance
_prompt_store: Optional[PromptStore] = None


def get_prompt_store() -> PromptStore:
    """Get the global prompt store instance."""
    global _prompt_store
    if _prompt_store is None:
        from pagesmith.config import get_settings
        _prompt_store = PromptStore(Path(get_settings().prompts_dir))
    return _prompt_store
