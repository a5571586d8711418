# ============================================================================
# MODULE CONTEXT - QUERY COORDINATOR
# ============================================================================
# STATUS: Core Engine - per-layer state machine
# PURPOSE: Containment pass, proximity pass, assembly; concurrent multi-layer fan-out
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: QueryCoordinator
# DEPENDENCIES: concurrent.futures, time, util_logger
# PATTERNS: Failure isolation per pass and per layer
# ENTRY_POINTS: QueryCoordinator(fetch).query(point, radius_miles, layer)
# ============================================================================

"""
Query Coordinator.

Per layer::

    Init -> Containment (polygon layers) -> Proximity (radius > 0) -> Finalize

Each pass is isolated: a failure is logged and recorded in the result's
``errors`` while the other pass still runs. ``query`` never raises for a
single-layer failure. ``query_layers`` runs one state machine per layer on a
bounded thread pool; a layer that outlives the layer timeout is reported as
failed and left to finish in the background, since fetch loops cannot be
cancelled.
"""

import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Callable, List, Optional, Sequence

from util_logger import ContextLogger, LoggerFactory, ComponentType

from .assembler import ResultAssembler
from .config import SpatialQueryConfig, get_spatial_query_config
from .evaluators import ContainmentEvaluator, DistanceEvaluator
from .fetcher import FetchJSON, FetchOutcome, PaginatedFetcher, QueryPass, SpatialFilter
from .models import LayerConfig, LayerQueryResult, LayerStatus, QueryPoint, RadiusSpec


class QueryCoordinator:
    """
    Runs containment and proximity queries for logical layers.

    Args:
        fetch: Transport callable ``(url, params) -> dict``
        config: Engine configuration (singleton if not provided)
        sleep: Sleep function used between batches (injectable for tests)
    """

    def __init__(
        self,
        fetch: FetchJSON,
        config: Optional[SpatialQueryConfig] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config or get_spatial_query_config()
        self.fetcher = PaginatedFetcher(
            fetch,
            page_size=self.config.page_size,
            max_records=self.config.max_records,
            batch_delay_seconds=self.config.batch_delay_seconds,
            sleep=sleep
        )
        self.logger = LoggerFactory.create_logger(ComponentType.COORDINATOR, "QueryCoordinator")

    def _run_pass(
        self,
        log: ContextLogger,
        layer: LayerConfig,
        spatial_filter: SpatialFilter,
        errors: List[str]
    ) -> Optional[FetchOutcome]:
        try:
            outcome = self.fetcher.fetch(layer, spatial_filter)
        except Exception as e:
            log.error(
                f"❌ {spatial_filter.query_pass.value} pass crashed for {layer.key}: {e}",
                exc_info=True,
                extra={'custom_dimensions': {'query_pass': spatial_filter.query_pass.value}}
            )
            errors.append(f"{spatial_filter.query_pass.value}: {e}")
            return None

        if outcome.error:
            errors.append(f"{spatial_filter.query_pass.value}: {outcome.error}")
        return outcome

    def query(
        self,
        point: QueryPoint,
        radius_miles: Optional[float],
        layer: LayerConfig,
        request_id: Optional[str] = None
    ) -> LayerQueryResult:
        """
        Query one layer at ``point``.

        Args:
            point: Query location
            radius_miles: Requested radius; None or <= 0 means containment only
            layer: Layer definition
            request_id: Correlation id for logs

        Returns:
            LayerQueryResult whose ``features`` is the sorted, unique ResultSet
        """
        start = time.perf_counter()
        log = LoggerFactory.create_with_context(
            ComponentType.COORDINATOR, "QueryCoordinator",
            request_id=request_id, layer_key=layer.key
        )

        radius = RadiusSpec.from_request(radius_miles, layer.radius_cap_miles)
        if radius.requested_miles > radius.capped_miles:
            log.debug(f"Radius {radius.requested_miles} mi clamped to {radius.capped_miles} mi for {layer.key}")

        containment = ContainmentEvaluator(log)
        distance = DistanceEvaluator(log)
        assembler = ResultAssembler(radius.capped_miles)
        errors: List[str] = []
        passes_run = 0
        passes_failed = 0
        requests_issued = 0
        truncated = False

        if layer.runs_containment:
            passes_run += 1
            outcome = self._run_pass(log, layer, SpatialFilter.containment(point), errors)
            if outcome is None:
                passes_failed += 1
            else:
                requests_issued += outcome.requests_issued
                if outcome.error:
                    passes_failed += 1
                try:
                    assembler.add_all(containment.evaluate_pass(point, layer, outcome.features))
                except Exception as e:
                    log.error(f"❌ Containment evaluation failed for {layer.key}: {e}", exc_info=True)
                    errors.append(f"{QueryPass.CONTAINMENT.value}: {e}")
                    passes_failed += 1

        if radius.proximity_enabled:
            passes_run += 1
            spatial_filter = SpatialFilter.proximity(point, radius.capped_miles, layer.distance_unit)
            outcome = self._run_pass(log, layer, spatial_filter, errors)
            if outcome is None:
                passes_failed += 1
            else:
                requests_issued += outcome.requests_issued
                truncated = outcome.truncated
                if outcome.error:
                    passes_failed += 1
                try:
                    assembler.add_all(distance.evaluate_pass(
                        point, layer, outcome.features, radius.capped_miles,
                        skip_ids=assembler.containing_ids()
                    ))
                except Exception as e:
                    log.error(f"❌ Distance evaluation failed for {layer.key}: {e}", exc_info=True)
                    errors.append(f"{QueryPass.PROXIMITY.value}: {e}")
                    passes_failed += 1

        features = assembler.assemble()

        if passes_run and passes_failed >= passes_run:
            status = LayerStatus.FAILED
        elif passes_failed or truncated:
            status = LayerStatus.PARTIAL
        else:
            status = LayerStatus.COMPLETE

        duration_ms = (time.perf_counter() - start) * 1000
        log.info(
            f"Layer {layer.key}: {len(features)} feature(s), status={status.value}",
            extra={'custom_dimensions': {
                'status': status.value,
                'feature_count': len(features),
                'requests_issued': requests_issued,
                'radius_miles': radius.capped_miles,
                'duration_ms': round(duration_ms, 1)
            }}
        )

        return LayerQueryResult(
            layer_key=layer.key,
            status=status,
            radius=radius,
            features=features,
            errors=errors,
            requests_issued=requests_issued,
            truncated=truncated,
            duration_ms=duration_ms
        )

    def _failed_result(self, layer: LayerConfig, radius_miles: Optional[float], message: str) -> LayerQueryResult:
        return LayerQueryResult(
            layer_key=layer.key,
            status=LayerStatus.FAILED,
            radius=RadiusSpec.from_request(radius_miles, layer.radius_cap_miles),
            errors=[message]
        )

    def query_layers(
        self,
        point: QueryPoint,
        radius_miles: Optional[float],
        layers: Sequence[LayerConfig],
        request_id: Optional[str] = None
    ) -> List[LayerQueryResult]:
        """
        Query several layers concurrently.

        Returns:
            One LayerQueryResult per layer, in the order of ``layers``
        """
        if not layers:
            return []

        timeout = self.config.layer_timeout_seconds
        workers = min(self.config.max_concurrent_layers, len(layers))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="layer-query")
        results: List[LayerQueryResult] = []

        try:
            submitted = time.monotonic()
            futures = [
                executor.submit(self.query, point, radius_miles, layer, request_id)
                for layer in layers
            ]
            for layer, future in zip(layers, futures):
                remaining = max(0.0, submitted + timeout - time.monotonic())
                try:
                    results.append(future.result(timeout=remaining))
                except FuturesTimeoutError:
                    future.cancel()
                    self.logger.warning(
                        f"Layer {layer.key} exceeded {timeout}s; reporting as failed",
                        extra={'custom_dimensions': {'layer_key': layer.key, 'timeout_seconds': timeout}}
                    )
                    results.append(self._failed_result(layer, radius_miles, f"timed out after {timeout}s"))
                except Exception as e:
                    self.logger.error(
                        f"❌ Layer {layer.key} failed: {e}",
                        exc_info=True,
                        extra={'custom_dimensions': {'layer_key': layer.key}}
                    )
                    results.append(self._failed_result(layer, radius_miles, str(e)))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return results
