"""
Tiling Engine - runs the clipper over every tile of a grid
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from tqdm import tqdm

from .clipper import TileClipper
from .schemas import ProcessingPhase, ProcessingState, TileResult, TilingRun
from ..common.config import settings
from ..common.errors import SettingsValidationError, TilingCancelled
from ..pod1_document_ingestion.parser import load_scene
from ..pod1_document_ingestion.schemas import SourceDocument
from ..pod2_grid_planning.planner import compute_grid, validate_settings
from ..pod2_grid_planning.schemas import GridSpec, LayoutSettings
from ..pod2_grid_planning.transform import CoordinateTransformer

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CancelPredicate = Callable[[], bool]


class TilingEngine:
    """
    Batch tiling in grid scan order

    Tiles are clipped one at a time on a worker thread. Cancellation is
    polled before each tile starts, and progress is reported after each
    tile completes.
    """

    def __init__(self, layout: Optional[LayoutSettings] = None, max_workers: Optional[int] = None):
        """
        Initialize tiling engine

        Args:
            layout: Layout settings
            max_workers: Worker threads, defaults to settings.max_workers
        """
        self.layout = layout or LayoutSettings()
        self._executor = ThreadPoolExecutor(max_workers=max_workers or settings.max_workers)

    def check_settings(self):
        """Raise SettingsValidationError listing every layout issue"""
        issues = validate_settings(self.layout)
        if issues:
            raise SettingsValidationError(issues)

    async def process_tiles(
        self,
        document: SourceDocument,
        grid: GridSpec,
        on_progress: Optional[ProgressCallback] = None,
        is_cancelled: Optional[CancelPredicate] = None,
        show_progress: bool = False
    ) -> List[TileResult]:
        """
        Clip every tile asynchronously

        Args:
            document: Source document
            grid: Grid computed for the document
            on_progress: Called with (completed, total) after each tile
            is_cancelled: Polled before each tile starts
            show_progress: Display a tqdm progress bar

        Returns:
            Results of exported tiles in scan order

        Raises:
            SettingsValidationError: Layout settings are invalid
            TilingCancelled: Cancellation was requested; no results are kept
        """
        self.check_settings()

        loop = asyncio.get_running_loop()
        transform = CoordinateTransformer.from_document(document)
        scene = load_scene(document)
        clipper = TileClipper(self.layout)
        prepared = await loop.run_in_executor(self._executor, clipper.prepare, scene)

        total = grid.total_tiles
        yield_every = max(1, settings.yield_every)
        results: List[TileResult] = []
        unsafe = 0

        logger.info(f"Tiling {document.file_name} into {grid.cols}x{grid.rows} grid ({total} tiles, {self.layout.clip_strategy.value})")

        with tqdm(total=total, desc="Tiling", disable=not show_progress) as pbar:
            for i, tile in enumerate(grid.tiles):
                if is_cancelled is not None and is_cancelled():
                    logger.info(f"Tiling cancelled before {tile.id} ({i}/{total} done)")
                    raise TilingCancelled("Processing cancelled")

                clip = await loop.run_in_executor(
                    self._executor,
                    clipper.clip_tile,
                    prepared,
                    tile,
                    grid,
                    transform
                )

                if clip.has_unsafe_fallback:
                    unsafe += 1
                if clip.svg_content is not None:
                    results.append(TileResult(tile=clip.tile, svg_content=clip.svg_content))

                pbar.update(1)
                if on_progress is not None:
                    on_progress(i + 1, total)

                # Let the event loop breathe between tiles
                if (i + 1) % yield_every == 0:
                    await asyncio.sleep(0)

        logger.info(f"Tiling completed: {len(results)} of {total} tiles exported, {unsafe} with unclipped fallbacks")
        return results

    def run(
        self,
        document: SourceDocument,
        grid: Optional[GridSpec] = None,
        on_progress: Optional[ProgressCallback] = None,
        is_cancelled: Optional[CancelPredicate] = None,
        show_progress: bool = False
    ) -> TilingRun:
        """
        Synchronous batch with a terminal processing state

        Cancellation ends in phase CANCELLED with no results. Any other
        exception during the batch ends in phase FAILED carrying its message.

        Raises:
            SettingsValidationError: Layout settings are invalid
        """
        start_time = time.time()
        self.check_settings()

        if grid is None:
            grid = compute_grid(document.detected_width_mm, document.detected_height_mm, self.layout)

        state = ProcessingState(phase=ProcessingPhase.PREPARING, total_tiles=grid.total_tiles)

        def track(completed: int, total: int):
            state.phase = ProcessingPhase.TILING
            state.current_tile = completed
            if on_progress is not None:
                on_progress(completed, total)

        try:
            results = asyncio.run(self.process_tiles(document, grid, track, is_cancelled, show_progress))
        except TilingCancelled:
            state.phase = ProcessingPhase.CANCELLED
            return TilingRun(state=state, processing_time=time.time() - start_time)
        except Exception as e:
            logger.exception(f"Tiling failed for {document.file_name}")
            state.phase = ProcessingPhase.FAILED
            state.error = str(e)
            return TilingRun(state=state, processing_time=time.time() - start_time)

        state.phase = ProcessingPhase.DONE
        return TilingRun(
            state=state,
            results=results,
            grid=grid.with_results(results),
            processing_time=time.time() - start_time,
        )

    def cleanup(self):
        """Cleanup resources"""
        self._executor.shutdown(wait=True)


async def process_tiles(
    document: SourceDocument,
    grid: GridSpec,
    layout: LayoutSettings,
    on_progress: Optional[ProgressCallback] = None,
    is_cancelled: Optional[CancelPredicate] = None
) -> List[TileResult]:
    """Functional form of TilingEngine.process_tiles"""
    engine = TilingEngine(layout)
    try:
        return await engine.process_tiles(document, grid, on_progress, is_cancelled)
    finally:
        engine.cleanup()
