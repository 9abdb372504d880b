"""
Branch-name schemas for generated-event ROOT trees.

Each schema maps the canonical particle fields to the branch names of one
tree layout. Only the four-momentum fields are required; a missing charge
reads as neutral, a missing status as final state and a missing PDG id as
unknown.
"""
from domain.errors import ConfigurationError

REQUIRED_FIELDS = ("px", "py", "pz", "e")
OPTIONAL_FIELDS = ("charge", "status", "pdg_id")

# Generator status code of a final-state particle.
FINAL_STATE_STATUS = 1

SCHEMAS = {
    # One jagged branch per field, e.g. written with uproot from a generator loop.
    "flat": {
        "px": "px",
        "py": "py",
        "pz": "pz",
        "e": "e",
        "charge": "charge",
        "status": "status",
        "pdg_id": "pdg_id",
    },
    # Delphes "Particle" collection.
    "delphes": {
        "px": "Particle.Px",
        "py": "Particle.Py",
        "pz": "Particle.Pz",
        "e": "Particle.E",
        "charge": "Particle.Charge",
        "status": "Particle.Status",
        "pdg_id": "Particle.PID",
    },
}


def get_schema(name: str) -> dict[str, str]:
    """
    Field-to-branch mapping of a schema.

    Raises:
        ConfigurationError: If the schema is unknown
    """
    try:
        return dict(SCHEMAS[name])
    except KeyError:
        raise ConfigurationError(
            f"Unknown input schema '{name}', expected one of: {sorted(SCHEMAS)}"
        ) from None


def resolve_branches(schema: dict[str, str], tree_branches) -> dict[str, str]:
    """
    Keep the schema branches present in a tree.

    Args:
        schema: Field-to-branch mapping
        tree_branches: Branch names available in the tree

    Returns:
        Branch-to-field mapping of the available branches

    Raises:
        ValueError: If a four-momentum branch is missing
    """
    available = {_short_name(b) for b in tree_branches} | set(tree_branches)
    missing = [schema[f] for f in REQUIRED_FIELDS if schema[f] not in available]
    if missing:
        raise ValueError(f"Missing required branches: {missing}")
    return {
        branch: field
        for field, branch in schema.items()
        if branch in available
    }


def _short_name(branch: str) -> str:
    # Split branches are listed as "Particle/Particle.Px".
    return branch.rsplit("/", 1)[-1]
