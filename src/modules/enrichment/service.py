import asyncio
import logging
import time

from src.modules.enrichment.registry import HookRegistry
from src.modules.enrichment.schemas import (
    Candidate,
    EnrichedCandidate,
    EnrichmentContext,
    EnrichmentStats,
    ExecutorOptions,
    HookStats,
)

logger = logging.getLogger(__name__)


class EnrichmentExecutor:
    """Runs every candidate's hook chain concurrently.

    Within one candidate the hooks are tried in the declared order and the
    first verified result wins. A hook that raises or runs past the timeout
    counts as a failure and the chain moves on. Candidates nothing verifies
    are returned unverified rather than dropped.
    """

    def __init__(self, registry: HookRegistry) -> None:
        self._registry = registry

    async def execute(
        self,
        candidates: list[Candidate],
        options: ExecutorOptions | None = None,
    ) -> tuple[list[EnrichedCandidate], EnrichmentStats]:
        options = options or ExecutorOptions()
        started = time.perf_counter()
        hook_stats: dict[str, HookStats] = {}
        context = EnrichmentContext(
            timeout=options.timeout,
            request_id=options.request_id,
            search_location=options.search_location,
        )

        enriched = list(await asyncio.gather(
            *(self._enrich_candidate(c, context, hook_stats) for c in candidates)
        ))

        verified = sum(1 for c in enriched if c.verified)
        stats = EnrichmentStats(
            candidates_processed=len(candidates),
            candidates_verified=verified,
            verification_rate=verified / len(candidates) if candidates else 0.0,
            hook_success_rates={name: s.rate for name, s in hook_stats.items()},
            total_time_ms=(time.perf_counter() - started) * 1000,
        )
        logger.info(
            "[%s] Enriched %d/%d candidates in %.0fms",
            options.request_id, verified, len(candidates), stats.total_time_ms,
        )
        return enriched, stats

    async def _enrich_candidate(
        self,
        candidate: Candidate,
        context: EnrichmentContext,
        hook_stats: dict[str, HookStats],
    ) -> EnrichedCandidate:
        base = candidate.model_dump()
        if not candidate.enrichment_hooks:
            logger.debug("No hooks specified for %r", candidate.name)
            return EnrichedCandidate(**base, verified=False)

        for hook_name in candidate.enrichment_hooks:
            hook = self._registry.get(hook_name)
            if hook is None:
                logger.warning("Hook not found: %s", hook_name)
                continue

            stats = hook_stats.setdefault(hook_name, HookStats())
            try:
                result = await asyncio.wait_for(
                    hook.enrich(candidate, context), timeout=context.timeout
                )
            except asyncio.TimeoutError:
                stats.failed += 1
                logger.warning(
                    "Hook %s timed out after %.1fs for %r",
                    hook_name, context.timeout, candidate.name,
                )
                continue
            except Exception as exc:
                stats.failed += 1
                logger.warning("Hook %s failed for %r: %s", hook_name, candidate.name, exc)
                continue

            if result is not None and result.verified:
                stats.success += 1
                return EnrichedCandidate(**base, verified=True, enrichment=result)
            stats.failed += 1

        return EnrichedCandidate(**base, verified=False)
