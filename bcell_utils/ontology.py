#!/usr/bin/env python3
"""
Cell Ontology utilities
Loads the Cell Ontology OBO file and walks is_a relationships
"""

from pathlib import Path

import networkx
import obonet


def load_cell_ontology(path):
    """Load an OBO ontology file

    Args:
        path: Path to the OBO file (e.g. cl-basic.obo)

    Returns:
        networkx.MultiDiGraph with edges pointing from child term to parent
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Ontology file not found: {path}")

    print(f"Loading ontology from {path}")
    graph = obonet.read_obo(str(path))
    print(f"  {graph.number_of_nodes():,} terms, {graph.number_of_edges():,} relations")
    return graph


def _is_a_graph(graph):
    is_a = networkx.DiGraph()
    is_a.add_nodes_from(graph.nodes)
    is_a.add_edges_from(
        (child, parent)
        for child, parent, key in graph.edges(keys=True)
        if key == "is_a"
    )
    return is_a


def get_descendants(graph, term_id, include_self=True):
    """All terms that are (transitively) a kind of term_id

    Args:
        graph: Ontology graph from load_cell_ontology
        term_id: Root term, e.g. "CL:0000236"
        include_self: Whether term_id itself is part of the result

    Returns:
        Set of term ids
    """
    if term_id not in graph:
        raise KeyError(f"Term '{term_id}' not found in ontology")

    # Edges run child -> parent, so descendants are networkx ancestors
    descendants = set(networkx.ancestors(_is_a_graph(graph), term_id))
    if include_self:
        descendants.add(term_id)
    return descendants


def find_term_id(graph, name):
    """Return the id of the term with this exact name"""
    for term_id, data in graph.nodes(data=True):
        if data.get("name") == name:
            return term_id
    raise KeyError(f"No ontology term named '{name}'")


def term_names(graph, term_ids):
    """Map term ids to their names (ids without a name map to themselves)"""
    return {
        term_id: graph.nodes[term_id].get("name", term_id) if term_id in graph else term_id
        for term_id in term_ids
    }
