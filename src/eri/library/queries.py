"""Catalog of SQL query bodies for the report library.

Query bodies are `.sql` files. Metadata codes are written as `{code_name}` and
filled in from HivMetadata when the body is rendered; report parameters are
left as DuckDB named parameters (`$startDate`, `$location`, ...) for the
executor to bind.

The shipped bodies live in `eri/library/sql/`. A directory given to the
catalog (or ERI_QUERY_DIR) takes precedence, file by file.
"""

import logging
import string
from pathlib import Path

from eri.core.exceptions import ERIError
from eri.library.metadata import HivMetadata

logger = logging.getLogger(__name__)

_SQL_DIR = Path(__file__).resolve().parent / "sql"


class QueryCatalog:
    """Loads and renders query bodies by identifier.

    Args:
        metadata: Codes substituted into query bodies
        query_dir: Optional directory whose files override the shipped ones
    """

    def __init__(self, metadata: HivMetadata | None = None, query_dir: Path | None = None):
        self.metadata = metadata or HivMetadata()
        self.query_dir = query_dir

    def _read(self, query_id: str) -> str:
        filename = f"{query_id}.sql"
        if self.query_dir is not None:
            override = self.query_dir / filename
            if override.exists():
                logger.debug(f"Using query override {override}")
                return override.read_text()

        shipped = _SQL_DIR / filename
        if not shipped.is_file():
            raise ERIError(f"Unknown query '{query_id}'")
        return shipped.read_text()

    def render(self, query_id: str) -> str:
        """Return the query body with metadata codes filled in.

        Raises:
            ERIError: If the query is unknown or names an unknown code
        """
        template = self._read(query_id)
        codes = self.metadata.as_dict()
        wanted = {
            name for _, name, _, _ in string.Formatter().parse(template) if name
        }
        missing = sorted(wanted - set(codes))
        if missing:
            raise ERIError(
                f"Query '{query_id}' uses unknown metadata codes: {', '.join(missing)}"
            )
        return template.format(**codes)

    def available(self) -> list[str]:
        """List query identifiers, including overrides."""
        names = {p.stem for p in _SQL_DIR.glob("*.sql")}
        if self.query_dir is not None and self.query_dir.is_dir():
            names.update(p.stem for p in self.query_dir.glob("*.sql"))
        return sorted(names)
