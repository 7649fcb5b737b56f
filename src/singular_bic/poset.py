"""
Partially ordered sets of nested models.

A ``Poset`` is a directed acyclic graph over model ids ``1..num_models``.
Edges are supplied as ``(super_model, sub_model)`` pairs, meaning that the
sub model is attainable as a singular boundary point of the super model.

Internally the graph is stored with edges pointing from the simpler model
to the more complex one, so that networkx's ``predecessors`` / ``ancestors``
are exactly the direct / transitive submodels of a model, and a topological
sort visits simple models before the models that contain them.
"""

import operator
from typing import Callable, Iterable, List, Sequence, Tuple

import networkx as nx

from .exceptions import InvalidModelIdError, MalformedPosetError


class Poset:
    """DAG of nested models with a precomputed topological order."""

    def __init__(self, num_models: int, edges: Iterable[Tuple[int, int]] = ()):
        if num_models < 1:
            raise MalformedPosetError("A poset needs at least one model")
        self._num_models = int(num_models)

        graph = nx.DiGraph()
        graph.add_nodes_from(range(1, self._num_models + 1))
        for super_model, sub_model in edges:
            for model in (super_model, sub_model):
                if not 1 <= model <= self._num_models:
                    raise MalformedPosetError(
                        f"Edge ({super_model}, {sub_model}) refers to unknown model {model}"
                    )
            if super_model == sub_model:
                raise MalformedPosetError(f"Self-loop on model {super_model}")
            graph.add_edge(sub_model, super_model)

        if not nx.is_directed_acyclic_graph(graph):
            cycle = nx.find_cycle(graph)
            raise MalformedPosetError(f"Nesting relation has a cycle: {cycle}")

        self._graph = graph
        # Ties between incomparable models go to the smaller id
        self._top_order = list(nx.lexicographical_topological_sort(graph))

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def from_edges(cls, num_models: int, edges: Iterable[Tuple[int, int]]) -> "Poset":
        """Build a poset from an explicit list of ``(super, sub)`` edges."""
        return cls(num_models, edges)

    @classmethod
    def chain(cls, num_models: int) -> "Poset":
        """Linear chain 1 < 2 < ... < num_models, as for complexity-indexed families."""
        return cls(num_models, [(i + 1, i) for i in range(1, num_models)])

    @classmethod
    def from_relation(cls, num_models: int,
                      is_nested: Callable[[int, int], bool]) -> "Poset":
        """
        Build the Hasse diagram of an arbitrary nesting predicate.

        ``is_nested(super, sub)`` is evaluated for every ordered pair of
        distinct models. The transitive reduction keeps only covering edges,
        so ``parents`` returns direct submodels while ``ancestors`` still sees
        every nested pair.
        """
        full = nx.DiGraph()
        full.add_nodes_from(range(1, num_models + 1))
        for sup in range(1, num_models + 1):
            for sub in range(1, num_models + 1):
                if sup != sub and is_nested(sup, sub):
                    full.add_edge(sub, sup)
        if not nx.is_directed_acyclic_graph(full):
            raise MalformedPosetError("Nesting relation is not antisymmetric")
        reduced = nx.transitive_reduction(full)
        return cls(num_models, [(sup, sub) for sub, sup in reduced.edges()])

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def num_models(self) -> int:
        return self._num_models

    @property
    def graph(self) -> nx.DiGraph:
        """The underlying graph (edges point from sub model to super model)."""
        return self._graph

    def edges(self) -> List[Tuple[int, int]]:
        """Covering edges as sorted ``(super, sub)`` pairs."""
        return sorted((sup, sub) for sub, sup in self._graph.edges())

    def check_model(self, model: int) -> int:
        """Validate a model id, returning it as a plain int."""
        if isinstance(model, bool):
            raise InvalidModelIdError(f"Model id must be an integer, got {model!r}")
        try:
            model = operator.index(model)
        except TypeError:
            raise InvalidModelIdError(f"Model id must be an integer, got {model!r}") from None
        if not 1 <= model <= self._num_models:
            raise InvalidModelIdError(
                f"Invalid model {model}; expected 1..{self._num_models}"
            )
        return model

    def top_order(self) -> List[int]:
        """Topological order, simplest models first, ties by ascending id."""
        return list(self._top_order)

    def parents(self, model: int) -> List[int]:
        """Models directly nested in ``model``."""
        model = self.check_model(model)
        return sorted(self._graph.predecessors(model))

    def ancestors(self, model: int) -> List[int]:
        """All models transitively nested in ``model``."""
        model = self.check_model(model)
        return sorted(nx.ancestors(self._graph, model))

    def children(self, model: int) -> List[int]:
        """Models that directly contain ``model``."""
        model = self.check_model(model)
        return sorted(self._graph.successors(model))

    def descendants(self, model: int) -> List[int]:
        """All models that transitively contain ``model``."""
        model = self.check_model(model)
        return sorted(nx.descendants(self._graph, model))

    def is_nested(self, super_model: int, sub_model: int) -> bool:
        """True when ``sub_model`` equals or is reachable below ``super_model``."""
        super_model = self.check_model(super_model)
        sub_model = self.check_model(sub_model)
        if super_model == sub_model:
            return True
        return nx.has_path(self._graph, sub_model, super_model)

    def minimal_models(self) -> List[int]:
        """Models without any submodel."""
        return [m for m in self._top_order if self._graph.in_degree(m) == 0]

    def check_dimensions(self, dimensions: Sequence[float]) -> None:
        """
        Verify that dimension never decreases from a sub model to its super model.

        ``dimensions[i - 1]`` is the dimension of model ``i``.
        """
        if len(dimensions) != self._num_models:
            raise MalformedPosetError(
                f"Expected {self._num_models} dimensions, got {len(dimensions)}"
            )
        for sub, sup in self._graph.edges():
            if dimensions[sup - 1] < dimensions[sub - 1]:
                raise MalformedPosetError(
                    f"Dimension decreases from model {sub} ({dimensions[sub - 1]}) "
                    f"to model {sup} ({dimensions[sup - 1]})"
                )

    def __len__(self) -> int:
        return self._num_models

    def __repr__(self) -> str:
        return f"Poset(num_models={self._num_models}, edges={self.edges()})"

