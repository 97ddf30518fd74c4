"""Stable per-train cells across arrival polls."""

import logging
from typing import Dict, Iterable

from .models import TrainCell, TrainRecord

logger = logging.getLogger(__name__)


class TrainIdentityStore:
    """
    Owns one TrainCell per train id currently in the feed.

    Cells are updated in place, so anything attached to a cell survives
    refreshes for as long as the train keeps appearing.
    """

    def __init__(self):
        self.cells: Dict[str, TrainCell] = {}

    def reconcile(self, records: Iterable[TrainRecord]) -> Dict[str, TrainCell]:
        """
        Apply the latest batch of records.

        Args:
            records: Records from the latest successful poll. If an id
                appears twice, the last record wins.

        Returns:
            Mapping of train id to cell, in batch order.
        """
        previous = self.cells
        cells: Dict[str, TrainCell] = {}

        for record in records:
            cell = cells.get(record.train) or previous.get(record.train)
            if cell is None:
                cell = TrainCell(train=record.train, record=record)
            else:
                cell.record = record
            cells[record.train] = cell

        # Trains that left the feed
        for train_id, cell in previous.items():
            if train_id not in cells:
                self._release(cell)

        created = sum(1 for train_id in cells if train_id not in previous)
        logger.debug(
            f"Reconciled {len(cells)} trains ({created} new, {len(previous) - (len(cells) - created)} dropped)"
        )

        self.cells = cells
        return cells

    def clear(self) -> None:
        """Drop every cell."""
        for cell in self.cells.values():
            self._release(cell)
        self.cells = {}

    @staticmethod
    def _release(cell: TrainCell) -> None:
        if cell.congestion is not None:
            cell.congestion.close()
            cell.congestion = None
        cell.expanded = False
