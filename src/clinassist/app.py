# Application wiring: one shared client, prompt store, settings and dispatcher, and one orchestrator per
# screen. A presentation layer builds a ClinicalApp and binds its views to the two orchestrators.

from typing import Optional

from .client import StreamingClient
from .commands import CdsCommand, DrugLookupCommand
from .context import Context
from .dispatch import StateDispatcher
from .errors import ClinAssistError
from .orchestrator import CommandOrchestrator
from .prompts import PromptStore
from .settings import SecretStore, SecureSettings, YamlSecretStore


class ClinicalApp:
    """
    Process-wide collaborators plus the drug lookup and CDS orchestrators.

    Both orchestrators share the dispatcher (one coordinator thread, like a UI
    main thread) but stream independently of each other.
    """

    def __init__(
        self,
        store: Optional[SecretStore] = None,
        client: Optional[StreamingClient] = None,
        prompt_store: Optional[PromptStore] = None,
        dispatcher: Optional[StateDispatcher] = None,
        ctx: Optional[Context] = None,
    ) -> None:
        self.ctx = ctx or Context()
        self.settings = SecureSettings(store or YamlSecretStore(ctx=self.ctx))
        self.client = client or StreamingClient(ctx=self.ctx)
        self.prompt_store = prompt_store or PromptStore.load(ctx=self.ctx)
        self.dispatcher = dispatcher or StateDispatcher()

        self.drug_lookup = CommandOrchestrator(
            DrugLookupCommand(),
            self.client,
            self.prompt_store,
            self.settings,
            dispatcher=self.dispatcher,
            ctx=self.ctx,
        )
        self.cds = CommandOrchestrator(
            CdsCommand(),
            self.client,
            self.prompt_store,
            self.settings,
            dispatcher=self.dispatcher,
            ctx=self.ctx,
        )

    def save_settings(self, api_key: str, model: str) -> Optional[str]:
        """Persist credentials; returns a user-facing error string, or None on success."""
        try:
            self.settings.update(api_key, model)
        except ClinAssistError as e:
            self.ctx.error_message(str(e))
            return str(e)
        return None

    def shutdown(self) -> None:
        self.drug_lookup.cancel_streaming()
        self.cds.cancel_streaming()
        self.dispatcher.shutdown()
