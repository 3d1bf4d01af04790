"""Tests for the visited set and frontier."""

from navcrawl.frontier import Frontier, VisitedSet
from navcrawl.models import CandidateLocator, FrontierItem


def make_item(name, depth=1, origin="https://x/home", target=True):
    return FrontierItem(
        intent=f"open {name}",
        locators=[CandidateLocator(f"href /{name}", f'a[href="/{name}"]', 0)],
        depth=depth,
        origin_resource=origin,
        origin_location=origin,
        target_location=f"https://x/{name}" if target else None,
        target_id=f"https://x/{name}" if target else None,
    )


class TestVisitedSet:
    """Tests for VisitedSet."""

    def test_mark_visited(self):
        """Test first visit returns True, re-visit returns False."""
        visited = VisitedSet()

        assert visited.mark_visited("https://x/a")
        assert not visited.mark_visited("https://x/a")
        assert len(visited) == 1
        assert visited.to_list() == ["https://x/a"]

    def test_fragment_route_aliases_stripped_form(self):
        """Test arriving at the bare document after one of its routes is a re-arrival."""
        visited = VisitedSet()
        visited.mark_visited("https://x/app#/clients")

        assert "https://x/app" in visited
        assert not visited.mark_visited("https://x/app")
        assert "https://x/app#/tasks" not in visited
        assert visited.mark_visited("https://x/app#/tasks")

    def test_insertion_order(self):
        """Test iteration follows visit order."""
        visited = VisitedSet()
        for name in ["c", "a", "b"]:
            visited.mark_visited(f"https://x/{name}")

        assert list(visited) == ["https://x/c", "https://x/a", "https://x/b"]


class TestFrontier:
    """Tests for Frontier."""

    def test_fifo_order(self):
        """Test items come out in the order they went in."""
        frontier = Frontier(VisitedSet(), max_depth=2, max_breadth_per_resource=5)
        for name in ["a", "b", "c"]:
            frontier.enqueue(make_item(name))

        assert [frontier.dequeue().intent for _ in range(3)] == ["open a", "open b", "open c"]
        assert frontier.dequeue() is None

    def test_duplicate_key_ignored(self):
        """Test enqueueing the same target twice is a no-op."""
        frontier = Frontier(VisitedSet(), max_depth=2, max_breadth_per_resource=5)

        assert frontier.enqueue(make_item("a"))
        assert not frontier.enqueue(make_item("a"))
        assert len(frontier) == 1

    def test_duplicate_after_dequeue_ignored(self):
        """Test a target seen before is not queued again once dequeued."""
        frontier = Frontier(VisitedSet(), max_depth=2, max_breadth_per_resource=5)
        frontier.enqueue(make_item("a"))
        frontier.dequeue()

        assert not frontier.enqueue(make_item("a", origin="https://x/other"))

    def test_visited_target_ignored(self):
        """Test targets already visited are not queued."""
        visited = VisitedSet()
        visited.mark_visited("https://x/a")
        frontier = Frontier(visited, max_depth=2, max_breadth_per_resource=5)

        assert not frontier.enqueue(make_item("a"))

    def test_key_without_target(self):
        """Test items without a known target are keyed by origin and intent."""
        item = make_item("menu", target=False)

        assert item.key == "https://x/home|open menu"

    def test_depth_cap(self):
        """Test items deeper than max_depth are discarded."""
        frontier = Frontier(VisitedSet(), max_depth=2, max_breadth_per_resource=5)

        assert frontier.enqueue(make_item("a", depth=2))
        assert not frontier.enqueue(make_item("b", depth=3))
        assert frontier.discarded_depth == 1

    def test_breadth_cap_per_origin(self):
        """Test only max_breadth children are accepted per origin resource."""
        frontier = Frontier(VisitedSet(), max_depth=2, max_breadth_per_resource=5)

        accepted = [frontier.enqueue(make_item(f"p{i}")) for i in range(50)]

        assert accepted.count(True) == 5
        assert frontier.discarded_breadth == 45
        assert frontier.children_enqueued("https://x/home") == 5
        # A different origin has its own budget
        assert frontier.enqueue(make_item("q0", origin="https://x/p0"))

    def test_drop_children_of(self):
        """Test removing queued items discovered on one resource."""
        frontier = Frontier(VisitedSet(), max_depth=2, max_breadth_per_resource=5)
        frontier.enqueue(make_item("a", origin="https://x/p0"))
        frontier.enqueue(make_item("b", origin="https://x/p1"))
        frontier.enqueue(make_item("c", origin="https://x/p0"))

        assert frontier.drop_children_of("https://x/p0") == 2
        assert len(frontier) == 1
        assert frontier.dequeue().intent == "open b"

    def test_snapshot(self):
        """Test snapshot describes queued items."""
        frontier = Frontier(VisitedSet(), max_depth=2, max_breadth_per_resource=5)
        frontier.enqueue(make_item("a"))

        snapshot = frontier.snapshot()

        assert snapshot == [{
            "intent": "open a",
            "depth": 1,
            "origin_resource": "https://x/home",
            "target_location": "https://x/a",
        }]
