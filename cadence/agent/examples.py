"""Catalogue of code examples the agent can search while writing code."""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_EXAMPLES_PATH = Path(__file__).with_name("examples.yaml")


class CodeExample(BaseModel):
    """One worked example of calling a plugin from runner code."""

    plugin: str = Field(min_length=1)
    description: str = Field(min_length=1)
    code: str = Field(min_length=1)


class ExampleCatalogue:
    """In-memory list of examples with plugin and keyword search."""

    def __init__(self, examples: list[CodeExample]):
        self.examples = list(examples)

    def __len__(self) -> int:
        return len(self.examples)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ExampleCatalogue":
        """Load a catalogue from a YAML list of {plugin, description, code}.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not a list of valid examples.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Examples file not found: {path}")

        data = yaml.safe_load(path.read_text()) or []
        if not isinstance(data, list):
            raise ValueError(f"Examples file {path} must contain a list")
        try:
            examples = [CodeExample(**entry) for entry in data]
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid example in {path}: {e}") from e

        logger.info(f"Loaded {len(examples)} code examples from {path}")
        return cls(examples)

    def search(self, query: str, limit: int = 5) -> list[CodeExample]:
        """Find examples for a plugin name or, failing that, by keywords.

        A query that is part of any plugin name returns that plugin's
        examples. Otherwise an example matches when its description contains
        every whitespace-separated term of the query. Matching ignores case.
        """
        q = query.lower().strip()
        if not q:
            return []

        plugin_matches = [e for e in self.examples if q in e.plugin.lower()]
        if plugin_matches:
            logger.debug(f"{len(plugin_matches)} plugin matches for '{q}'")
            return plugin_matches[:limit]

        terms = q.split()
        keyword_matches = [e for e in self.examples if all(t in e.description.lower() for t in terms)]
        logger.debug(f"{len(keyword_matches)} description matches for '{q}'")
        return keyword_matches[:limit]


def load_examples(path: Path | str | None = None) -> ExampleCatalogue:
    """Load the configured catalogue, or the bundled one when path is None."""
    return ExampleCatalogue.from_yaml(path or DEFAULT_EXAMPLES_PATH)
