import pytest

from bcell_utils.ontology import (
    find_term_id,
    get_descendants,
    load_cell_ontology,
    term_names,
)


def test_load_cell_ontology(obo_path):
    graph = load_cell_ontology(obo_path)
    assert "CL:0000236" in graph
    assert graph.nodes["CL:0000236"]["name"] == "B cell"


def test_load_cell_ontology_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_cell_ontology(tmp_path / "missing.obo")


def test_get_descendants_follows_is_a_only(obo_path):
    graph = load_cell_ontology(obo_path)
    descendants = get_descendants(graph, "CL:0000236")
    # monocyte only "develops_from" B cell and is not a kind of B cell
    assert descendants == {"CL:0000236", "CL:0000787", "CL:0000980", "CL:0000786"}


def test_get_descendants_without_self(obo_path):
    graph = load_cell_ontology(obo_path)
    assert "CL:0000236" not in get_descendants(graph, "CL:0000236", include_self=False)


def test_get_descendants_of_leaf(obo_path):
    graph = load_cell_ontology(obo_path)
    assert get_descendants(graph, "CL:0000786") == {"CL:0000786"}


def test_get_descendants_unknown_term(obo_path):
    graph = load_cell_ontology(obo_path)
    with pytest.raises(KeyError):
        get_descendants(graph, "CL:9999999")


def test_find_term_id(obo_path):
    graph = load_cell_ontology(obo_path)
    assert find_term_id(graph, "plasma cell") == "CL:0000786"
    with pytest.raises(KeyError):
        find_term_id(graph, "neuron")


def test_term_names(obo_path):
    graph = load_cell_ontology(obo_path)
    names = term_names(graph, ["CL:0000787", "CL:1234567"])
    assert names == {"CL:0000787": "memory B cell", "CL:1234567": "CL:1234567"}
