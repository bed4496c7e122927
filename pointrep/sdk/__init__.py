from .run import ConfigRunResult, load_records, vectorize_from_config

__all__ = ["ConfigRunResult", "load_records", "vectorize_from_config"]
