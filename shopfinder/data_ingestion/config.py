from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class IngestionConfig:
    """
    Configuration for the CSV shop import.
    """

    source_path: Path = Path(__file__).resolve().parent.parent / "data" / "seed_shops.csv"
    default_city: str | None = None
    publish: bool = True


DEFAULT_INGESTION_CONFIG = IngestionConfig()
