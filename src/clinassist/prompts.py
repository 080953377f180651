# Prompt template repository: loads the packaged JSON templates from clinassist.resources.prompts via
# importlib.resources and serves them by command key.

from importlib import resources
from typing import Dict, Iterable, Optional

from pydantic import ValidationError

from .context import Context
from .models import PromptTemplate

PROMPTS_PACKAGE = "clinassist.resources.prompts"


class PromptStore:
    """
    Read-only mapping of command key -> PromptTemplate.

    Templates are immutable once loaded. A file that fails to parse is logged
    and skipped; it never prevents the other commands from loading.
    """

    def __init__(self, templates: Optional[Iterable[PromptTemplate]] = None, ctx: Optional[Context] = None) -> None:
        self.ctx = ctx or Context()
        self._templates: Dict[str, PromptTemplate] = {}
        if templates is not None:
            for t in templates:
                self._templates[t.command] = t

    @classmethod
    def load(cls, package: str = PROMPTS_PACKAGE, ctx: Optional[Context] = None) -> "PromptStore":
        """Build a store from every *.json resource in package."""
        store = cls(ctx=ctx)
        root = resources.files(package)
        for entry in sorted(root.iterdir(), key=lambda e: e.name):
            if not entry.name.endswith(".json"):
                continue
            try:
                template = PromptTemplate.model_validate_json(entry.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                store.ctx.error_message(f"Failed to load prompt from {entry.name}: {e}")
                continue
            store._templates[template.command] = template
        return store

    def template(self, command: str) -> Optional[PromptTemplate]:
        return self._templates.get(command)

    # lookup(command) -> template or None
    lookup = template

    def commands(self) -> list:
        return sorted(self._templates)
