"""Test cases for assignment ordering and the module tree."""

from types import SimpleNamespace

from courseware.assignments.ordering import build_module_tree, next_order, order_between, order_for_index


def item(id, order, module_path=(), name=None, published=True):
    return SimpleNamespace(id=id, name=name or id, order=order, module_path=list(module_path), published=published)


class TestOrderArithmetic:

    def test_next_order(self):
        assert next_order([]) == 10.0
        assert next_order([10.0, 30.0, 20.0]) == 40.0

    def test_order_between(self):
        assert order_between(10.0, 20.0) == 15.0
        assert order_between(None, 20.0) == 10.0
        assert order_between(10.0, None) == 20.0
        assert order_between(None, None) == 10.0

    def test_order_for_index(self):
        orders = [30.0, 10.0, 20.0]

        assert order_for_index(orders, 0) == 0.0
        assert order_for_index(orders, 1) == 15.0
        assert order_for_index(orders, 2) == 25.0
        assert order_for_index(orders, 3) == 40.0
        assert order_for_index(orders, 99) == 40.0
        assert order_for_index([], 4) == 10.0

    def test_repeated_moves_stay_strictly_between(self):
        orders = [10.0, 20.0]
        for _ in range(20):
            new = order_for_index(orders, 1)
            assert orders[0] < new < orders[1]
            orders = [orders[0], new]


class TestModuleTree:

    def test_groups_by_module_path(self):
        tree = build_module_tree([
            item("intro", 5.0),
            item("hw2", 30.0, ["Unit 1", "Homework"]),
            item("quiz", 20.0, ["Unit 1"]),
            item("hw1", 10.0, ["Unit 1", "Homework"]),
            item("final", 40.0, ["Unit 2"]),
        ]).to_dict()

        assert tree["name"] == ""
        assert [c.get("name") for c in tree["children"]] == ["Unit 1", "Unit 2", "intro"]

        unit1 = tree["children"][0]
        assert unit1["path"] == ["Unit 1"]
        assert [c["type"] for c in unit1["children"]] == ["folder", "assignment"]

        homework = unit1["children"][0]
        assert homework["path"] == ["Unit 1", "Homework"]
        assert [c["id"] for c in homework["children"]] == ["hw1", "hw2"]

    def test_empty_segments_are_ignored(self):
        tree = build_module_tree([item("a", 1.0, ["", "Unit"])]).to_dict()

        assert tree["children"][0]["name"] == "Unit"
        assert tree["children"][0]["children"][0]["id"] == "a"
