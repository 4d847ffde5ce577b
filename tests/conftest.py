"""
Global test configuration and fixtures.
"""

import itertools

import pytest

from mindtree.codec import decode
from mindtree.engine import MindMapEngine
from mindtree.layout import LayoutEngine
from mindtree.mutations import MutationEngine


def fixed_width(label: str) -> float:
    """Measurer that ignores the label, keeping positions easy to predict."""
    return 120.0


@pytest.fixture
def sample_document() -> dict:
    """Root with three children; the first one has two children of its own."""
    return {
        "root": {
            "id": "root",
            "text": "Root",
            "layout": "graph-right",
            "children": [
                {
                    "id": "a",
                    "text": "A",
                    "children": [
                        {"id": "a1", "text": "A1"},
                        {"id": "a2", "text": "A2"},
                    ],
                },
                {"id": "b", "text": "B"},
                {"id": "c", "text": "C", "notes": "remember this"},
            ],
        }
    }


@pytest.fixture
def flat_document() -> dict:
    """Root with three leaf children A, B, C."""
    return {
        "root": {
            "id": "root",
            "text": "Root",
            "layout": "graph-right",
            "children": [
                {"id": "a", "text": "A"},
                {"id": "b", "text": "B"},
                {"id": "c", "text": "C"},
            ],
        }
    }


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"n{next(counter)}"


@pytest.fixture
def mutations(id_factory) -> MutationEngine:
    return MutationEngine(LayoutEngine(measure_width=fixed_width), id_factory=id_factory)


@pytest.fixture
def state(mutations, sample_document):
    decoded = decode(sample_document)
    return mutations.initialize(decoded.nodes, decoded.root_id, decoded.direction)


@pytest.fixture
def flat_state(mutations, flat_document):
    decoded = decode(flat_document)
    return mutations.initialize(decoded.nodes, decoded.root_id, decoded.direction)


@pytest.fixture
def engine(mutations, sample_document) -> MindMapEngine:
    return MindMapEngine(sample_document, mutations=mutations)
