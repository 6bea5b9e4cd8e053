"""Tests for call-sequence inference."""

from pathlib import Path

import pytest

from legacylens.behavior import BehavioralExtractor, extract_method_body, find_calls
from legacylens.config_manager import EngineConfig
from legacylens.models import CallEdge, Role
from legacylens.roles import classify_sources


def _extractor(source_root: Path, config: EngineConfig = None) -> BehavioralExtractor:
    roles, _ = classify_sources(source_root)
    return BehavioralExtractor(roles, source_root, config)


def test_extract_method_body_state_machine():
    text = """
    public class A {
        public String run(int x) throws IOException {
            String s = "} not the end {";
            char c = '}';
            if (x > 0) { helper.go(); }
            return s;
        }
        void other() { }
    }
    """
    body = extract_method_body(text, "run")

    assert body is not None
    assert "helper.go()" in body
    assert "other" not in body
    assert body.strip().endswith("return s;")


def test_extract_method_body_skips_calls_and_abstract_declarations():
    text = """
    interface Port { void send(String m); }
    class Impl {
        void trigger() { port.send("x"); }
        public void send(String m) { channel.write(m); }
    }
    """
    assert extract_method_body(text, "send").strip() == "channel.write(m);"
    assert extract_method_body(text, "missing") is None


def test_find_calls_in_order_ignoring_literals():
    body = 'a.first(); log("b.notACall()"); this.c.second(x.third());'
    assert list(find_calls(body)) == [("a", "first"), ("c", "second"), ("x", "third")]


def test_round_trip_sequence(sample_project_path: Path):
    extractor = _extractor(sample_project_path / "src" / "main" / "java")

    sequences = extractor.trace_operations("UserController")

    assert len(sequences) == 1
    sequence = sequences[0]
    assert sequence.operation.name == "createUser"
    assert sequence.length == 2
    assert sequence.edges == [
        CallEdge("UserController", "UserService", "register"),
        CallEdge("UserService", "UserRepository", "save"),
    ]


def test_trace_all_keyed_by_entry_point(sample_project_path: Path):
    result = _extractor(sample_project_path / "src" / "main" / "java").trace_all()
    assert list(result) == ["UserController"]


@pytest.fixture
def order_tree(temp_dir: Path, write_tree) -> Path:
    return write_tree(temp_dir, {
        "app/controller/OrderController.java": """
            @RestController
            public class OrderController {
                @Autowired private OrderService orderService;
                @Autowired private OrderRepository orderRepository;
                @Autowired private PriceHelper priceHelper;

                @PostMapping
                public void place(@RequestBody OrderRequest request) {
                    orderService.place(request);
                    orderService.place(request);
                    orderService.getTotal();
                    orderService.toString();
                    orderRepository.count();
                    priceHelper.compute(request);
                    unknownThing.run();
                }
            }
        """,
        "app/service/OrderService.java": """
            @Service
            public class OrderService {
                private final OrderRepository orderRepository;

                public OrderService(OrderRepository orderRepository) {
                    this.orderRepository = orderRepository;
                }

                public void place(OrderRequest request) {
                    orderRepository.save(request);
                    orderRepository.save(request);
                    orderRepository.findById(1L);
                    orderRepository.setFlag(true);
                }
            }
        """,
        "app/repository/OrderRepository.java": """
            public interface OrderRepository extends JpaRepository<Order, Long> { }
        """,
        "app/support/PriceHelper.java": """
            public class PriceHelper {
                public int compute(OrderRequest r) { return 1; }
            }
        """,
    })


def test_edges_unique_within_operation(order_tree: Path):
    sequence = _extractor(order_tree).trace_operations("OrderController")[0]

    assert sequence.edges == [
        CallEdge("OrderController", "OrderService", "place"),
        CallEdge("OrderService", "OrderRepository", "save"),
        CallEdge("OrderService", "OrderRepository", "findById"),
        CallEdge("OrderController", "OrderRepository", "count"),
    ]


def test_deny_listed_calls_never_produce_edges(order_tree: Path):
    sequence = _extractor(order_tree).trace_operations("OrderController")[0]
    methods = {edge.method for edge in sequence.edges}

    assert not methods & {"getTotal", "toString", "setFlag"}


def test_unclassified_classes_never_appear(order_tree: Path):
    extractor = _extractor(order_tree)
    assert extractor.roles.role_of("PriceHelper") is Role.UNCLASSIFIED

    for sequences in extractor.trace_all().values():
        for sequence in sequences:
            for edge in sequence.edges:
                assert "PriceHelper" not in (edge.caller, edge.callee)


def test_custom_deny_list(order_tree: Path):
    config = EngineConfig(ignore_patterns=["find.*", "count"], ignore_substrings=[])
    sequence = _extractor(order_tree, config).trace_operations("OrderController")[0]

    assert [e.method for e in sequence.edges] == ["place", "save", "setFlag", "getTotal", "toString"]
