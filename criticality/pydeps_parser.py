"""
Load raw (unit, importer, imported) edges.

Two input shapes are supported.

Edge lines, one edge per line, whitespace separated:
    unit importer imported
    importer imported            # importer is its own unit
Blank lines and lines starting with '#' are ignored.

pydeps JSON output:
{
    "module.name": {
        "name": "module.name",
        "path": "/abs/path/to/module.py",
        "imports": ["other.module", "another.module"],
        "imported_by": ["consumer.module"],
        "bacon": 2  # distance from target
    }
}
"""

import json
from typing import Iterable, List, Optional, Tuple

from .errors import EdgeParseError


Triple = Tuple[str, str, str]


def parse_edge_lines(lines: Iterable[str]) -> List[Triple]:
    """Parse edge lines into (unit, importer, imported) triples."""
    triples = []
    for line_number, raw in enumerate(lines, 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) == 2:
            importer, imported = parts
            triples.append((importer, importer, imported))
        elif len(parts) == 3:
            triples.append((parts[0], parts[1], parts[2]))
        else:
            raise EdgeParseError(line_number, line)
    return triples


def load_edge_file(filepath: str) -> List[Triple]:
    """Load edge lines from file."""
    with open(filepath) as f:
        return parse_edge_lines(f)


def load_pydeps_json(filepath: str) -> dict:
    """Load pydeps JSON output from file."""
    with open(filepath) as f:
        return json.load(f)


def load_multiple_pydeps(filepaths: List[str]) -> dict:
    """Load and merge multiple pydeps JSON files."""
    merged = {}
    for filepath in filepaths:
        data = load_pydeps_json(filepath.strip())
        merged.update(data)
    return merged


def triples_from_pydeps(
    pydeps_data: dict,
    project_prefixes: Optional[List[str]] = None,
) -> List[Triple]:
    """
    Turn pydeps output into (module, module, imported) triples.

    Args:
        pydeps_data: Raw pydeps JSON output
        project_prefixes: Module prefixes to include; all modules if empty

    Returns:
        One triple per import between included modules
    """
    def is_project_module(name: str) -> bool:
        if not project_prefixes:
            return True
        return any(name.startswith(p) for p in project_prefixes)

    triples = []
    for module_name, info in pydeps_data.items():
        if not is_project_module(module_name):
            continue
        for imported in info.get("imports", []):
            if is_project_module(imported):
                triples.append((module_name, module_name, imported))
    return triples
