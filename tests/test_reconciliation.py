"""Tests for train identity and direction grouping."""

import io
import unittest
from unittest.mock import MagicMock
import sys
from pathlib import Path

# Add src to path so we can import seoultrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from seoultrack.grouping import DirectionGrouper, direction_key, resolve_previous_station
from seoultrack.identity import TrainIdentityStore
from seoultrack.models import LineAdjacency, TrainRecord
from seoultrack.stations import StationGraph

STATIONS_CSV = """id,ko,en,zh,ja,lat,lng,line,prev_station,next_station
City Hall,시청,City Hall,,,37.5636,126.9754,2,Chungjeongno,Euljiro
City Hall,시청,City Hall,,,37.5658,126.9770,1,Seoul Station,Jonggak
Euljiro,을지로입구,Euljiro 1(il)-ga,,,37.5660,126.9826,2,City Hall,
Chungjeongno,충정로,Chungjeongno,,,37.5597,126.9644,2,,City Hall
"""

BASE_ETA = 1_700_000_000_000


def record(train, line="2", eta=0, destination="Seongsu", next_station="Euljiro", line_name=None):
    return TrainRecord(
        eta=BASE_ETA + eta * 1000,
        eta_message="",
        line=line,
        line_name=line_name or f"{destination} bound",
        train=train,
        destination=destination,
        next_station=next_station,
    )


class TestTrainIdentityStore(unittest.TestCase):
    """Test identity preservation across polls."""

    def test_persisting_train_keeps_its_cell(self):
        """Test that a train present in consecutive polls keeps the same cell."""
        store = TrainIdentityStore()
        first = store.reconcile([record("2231", eta=60), record("2245", eta=300)])
        cell = first["2231"]
        cell.expanded = True

        second = store.reconcile([record("2231", eta=30), record("2259", eta=500)])

        self.assertIs(second["2231"], cell)
        self.assertTrue(second["2231"].expanded)
        self.assertEqual(second["2231"].record.eta, BASE_ETA + 30_000)

    def test_departed_trains_are_dropped(self):
        """Test that ids missing from the batch lose their cell."""
        store = TrainIdentityStore()
        store.reconcile([record("2231"), record("2245")])

        cells = store.reconcile([record("2245")])

        self.assertEqual(list(cells), ["2245"])
        self.assertEqual(list(store.cells), ["2245"])

    def test_returning_train_gets_a_new_cell(self):
        """Test that a train dropped and seen again is a fresh cell."""
        store = TrainIdentityStore()
        old = store.reconcile([record("2231")])["2231"]
        store.reconcile([])

        new = store.reconcile([record("2231")])["2231"]

        self.assertIsNot(new, old)
        self.assertFalse(new.expanded)

    def test_dropped_cell_closes_congestion_poller(self):
        """Test that a departed train does not leave its poller running."""
        store = TrainIdentityStore()
        cell = store.reconcile([record("2231")])["2231"]
        poller = MagicMock()
        cell.congestion = poller
        cell.expanded = True

        store.reconcile([])

        poller.close.assert_called_once()
        self.assertIsNone(cell.congestion)

    def test_duplicate_id_last_record_wins(self):
        """Test that a repeated id in one batch maps to one cell."""
        store = TrainIdentityStore()
        cells = store.reconcile([record("2231", eta=60), record("2231", eta=90)])

        self.assertEqual(len(cells), 1)
        self.assertEqual(cells["2231"].record.eta, BASE_ETA + 90_000)


class TestDirectionKey(unittest.TestCase):
    """Test grouping keys."""

    def test_destination_and_next_station(self):
        """Test the language-independent key."""
        self.assertEqual(direction_key(record("1", destination="City Hall", next_station="Euljiro")), "City Hall-Euljiro")

    def test_line_name_fallback(self):
        """Test the fallback when destination or next station is missing."""
        self.assertEqual(direction_key(record("1", destination=None, line_name="막차")), "막차")
        self.assertEqual(direction_key(record("1", next_station=None, line_name="Last train")), "Last train")


class TestPreviousStation(unittest.TestCase):
    """Test previous station resolution from line adjacency."""

    def setUp(self):
        self.graph = StationGraph.from_csv(io.StringIO(STATIONS_CSV))

    def test_next_station_matches_dataset_next(self):
        """Test that the dataset's previous station is behind the train."""
        self.assertEqual(resolve_previous_station(self.graph, "City Hall", "2", "Euljiro"), "Chungjeongno")

    def test_next_station_matches_dataset_previous(self):
        """Test the opposite direction."""
        self.assertEqual(resolve_previous_station(self.graph, "City Hall", "2", "Chungjeongno"), "Euljiro")

    def test_unresolvable(self):
        """Test branch lines, gaps and unknown stations."""
        self.assertIsNone(resolve_previous_station(self.graph, "City Hall", "2", "Sindorim"))
        self.assertIsNone(resolve_previous_station(self.graph, "City Hall", "5", "Euljiro"))
        self.assertIsNone(resolve_previous_station(self.graph, "Nowhere", "2", "Euljiro"))
        self.assertIsNone(resolve_previous_station(self.graph, "City Hall", "2", None))


class TestDirectionGrouper(unittest.TestCase):
    """Test grouping, ordering and group stability."""

    def setUp(self):
        self.graph = StationGraph.from_csv(io.StringIO(STATIONS_CSV))
        self.store = TrainIdentityStore()
        self.grouper = DirectionGrouper(self.graph, "City Hall")

    def update(self, records):
        return self.grouper.update(self.store.reconcile(records))

    def test_two_trains_same_direction_form_one_group(self):
        """Test a single group with cells ordered by eta."""
        groups = self.update([
            record("2245", destination="City Hall", next_station="Euljiro", eta=360),
            record("2231", destination="City Hall", next_station="Euljiro", eta=60),
        ])

        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].key, "City Hall-Euljiro")
        self.assertEqual([cell.train for cell in groups[0].trains], ["2231", "2245"])
        self.assertIs(groups[0].trains[0], self.store.cells["2231"])

    def test_grouping_ignores_batch_order(self):
        """Test that the same direction lands in one group in any order."""
        a = record("2231", eta=60)
        b = record("2245", eta=300)

        forward = self.update([a, b])
        forward_trains = [cell.train for cell in forward[0].trains]
        grouper = DirectionGrouper(self.graph, "City Hall")
        backward = grouper.update(TrainIdentityStore().reconcile([b, a]))

        self.assertEqual(len(forward), 1)
        self.assertEqual(len(backward), 1)
        self.assertEqual(forward[0].key, backward[0].key)
        self.assertEqual(forward_trains, [cell.train for cell in backward[0].trains])

    def test_unsupported_lines_are_excluded(self):
        """Test that line 9 and non-numbered lines never appear."""
        groups = self.update([
            record("9001", line="9", destination="Gaehwa", next_station="Nodeul"),
            record("A001", line="A", destination="Incheon Airport", next_station="Gongdeok"),
            record("2231", line="2"),
        ])

        trains = [cell.train for group in groups for cell in group.trains]
        self.assertEqual(trains, ["2231"])

    def test_previous_station_resolved_on_creation(self):
        """Test that a new group resolves its previous station."""
        groups = self.update([record("2231", next_station="Euljiro")])
        self.assertEqual(groups[0].previous_station, "Chungjeongno")

    def test_previous_station_resolved_only_once(self):
        """Test that later polls never re-resolve the previous station."""
        self.update([record("2231", next_station="Euljiro")])
        group = self.grouper.groups["Seongsu-Euljiro"]

        # The dataset now answers differently; the group must not notice
        self.graph.stations_by_id["City Hall"].lines["2"] = LineAdjacency("Sindorim", "Euljiro")
        groups = self.update([record("2231", eta=-10), record("2245", eta=200)])

        self.assertIs(groups[0], group)
        self.assertEqual(group.previous_station, "Chungjeongno")
        self.assertEqual(len(group.trains), 2)

    def test_group_destroyed_when_key_disappears(self):
        """Test that a direction without trains is dropped."""
        self.update([record("2231"), record("1101", line="1", destination="Incheon", next_station="Seoul Station")])
        groups = self.update([record("2231")])

        self.assertEqual([g.key for g in groups], ["Seongsu-Euljiro"])
        self.assertNotIn("Incheon-Seoul Station", self.grouper.groups)

    def test_groups_ordered_by_line_name_then_eta(self):
        """Test top-level ordering of groups."""
        groups = self.update([
            record("2301", line="2", destination="Seongsu", next_station="Euljiro", line_name="B", eta=50),
            record("2302", line="2", destination="Sindorim", next_station="Chungjeongno", line_name="A", eta=500),
            record("1101", line="1", destination="Incheon", next_station="Seoul Station", line_name="Z", eta=900),
            record("2303", line="2", destination=None, line_name="A", eta=100),
        ])

        self.assertEqual(
            [g.key for g in groups],
            ["Incheon-Seoul Station", "A", "Sindorim-Chungjeongno", "Seongsu-Euljiro"],
        )

    def test_line_name_fallback_merges_notices(self):
        """Test that records without destination share the line-name group."""
        groups = self.update([
            record("2401", destination=None, line_name="막차 안내", eta=100),
            record("2402", next_station=None, line_name="막차 안내", eta=50),
        ])

        self.assertEqual(len(groups), 1)
        self.assertEqual([c.train for c in groups[0].trains], ["2402", "2401"])
        self.assertIsNone(groups[0].previous_station)

    def test_null_line_name_from_feed_groups_without_error(self):
        """Test that a feed record with a null line name still groups and sorts."""
        groups = self.update([
            record("2601", eta=30),
            TrainRecord.from_json({"eta": BASE_ETA + 10_000, "line": "2", "lineName": None, "train": "2602"}),
        ])

        self.assertEqual([g.key for g in groups], ["", "Seongsu-Euljiro"])
        self.assertEqual(groups[0].trains[0].train, "2602")

    def test_identical_inputs_give_identical_order(self):
        """Test deterministic ordering on full ties."""
        batch = [
            record("2501", destination="X", next_station="Euljiro", line_name="same", eta=10),
            record("2502", destination="Y", next_station="Euljiro", line_name="same", eta=10),
        ]
        first = [g.key for g in self.update(batch)]
        second = [g.key for g in DirectionGrouper(self.graph, "City Hall").update(TrainIdentityStore().reconcile(reversed(batch)))]

        self.assertEqual(first, second)
        self.assertEqual(first, ["X-Euljiro", "Y-Euljiro"])


if __name__ == "__main__":
    unittest.main()
