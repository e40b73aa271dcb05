"""
Static reference data shipped with the server.

Some answers never change between tenants (event type names, Live Discover
query templates, policy types, MITRE ATT&CK mappings), so they are stored as
JSON files under MCP_REFERENCE_DIR instead of being fetched from Sophos
Central. Tools and resources read them through ReferenceCatalog, and the
/ready probe reports not-ready while any of them is missing.
"""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger("sophos-mcp.catalog")

EVENT_TYPES = "event-types"
QUERY_CATEGORIES = "query-categories"
LIVE_DISCOVER_QUERIES = "live-discover-queries"
POLICY_REFERENCE = "policy-reference"
MITRE_MAPPINGS = "mitre-mappings"

REFERENCE_FILES = (
    EVENT_TYPES,
    QUERY_CATEGORIES,
    LIVE_DISCOVER_QUERIES,
    POLICY_REFERENCE,
    MITRE_MAPPINGS,
)


class ReferenceCatalog:
    def __init__(self, reference_dir: Path):
        self.reference_dir = Path(reference_dir)

    def path(self, name: str) -> Path:
        return self.reference_dir / f"{name}.json"

    def read_text(self, name: str) -> str:
        """
        Raw contents of one reference file.

        Raises:
            FileNotFoundError: The file is not in the reference directory
        """
        path = self.path(name)
        if not path.exists():
            logger.error("Reference file not found at %s", path)
            raise FileNotFoundError(f"Reference data '{name}' not found at {path}")
        return path.read_text(encoding="utf-8")

    def load(self, name: str) -> Any:
        return json.loads(self.read_text(name))

    def missing(self) -> list[str]:
        return [name for name in REFERENCE_FILES if not self.path(name).exists()]
