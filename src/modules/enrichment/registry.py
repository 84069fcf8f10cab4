import logging

from src.modules.enrichment.contracts import EnrichmentHook

logger = logging.getLogger(__name__)


class HookRegistry:
    """Name -> hook lookup for the executor."""

    def __init__(self) -> None:
        self._hooks: dict[str, EnrichmentHook] = {}

    def register(self, hook: EnrichmentHook) -> None:
        self._hooks[hook.name] = hook
        logger.info("Registered hook %s for domains: %s", hook.name, ", ".join(hook.domains))

    def get(self, name: str) -> EnrichmentHook | None:
        return self._hooks.get(name)

    def hooks_for_domain(self, domain: str) -> list[EnrichmentHook]:
        """Hooks serving ``domain``, highest priority first."""
        return sorted(
            (h for h in self._hooks.values() if domain in h.domains),
            key=lambda h: h.priority,
            reverse=True,
        )

    def all(self) -> list[EnrichmentHook]:
        return list(self._hooks.values())

    def names(self) -> list[str]:
        return list(self._hooks)

    def has(self, name: str) -> bool:
        return name in self._hooks

    async def health_check(self) -> dict[str, bool]:
        results: dict[str, bool] = {}
        for name, hook in self._hooks.items():
            check = getattr(hook, "health_check", None)
            if check is None:
                results[name] = True
                continue
            try:
                results[name] = bool(await check())
            except Exception:
                logger.warning("Health check raised for hook %s", name, exc_info=True)
                results[name] = False
        return results
