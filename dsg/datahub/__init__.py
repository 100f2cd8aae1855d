from .client import CatalogClient, ScrollPage, LIST_ASPECTS
from .models import (
    DATASET,
    GLOSSARY_TERM,
    Dataset,
    DatasetSummary,
    FieldType,
    GlossaryTerm,
    dump_entities,
    dump_entity,
    new_glossary_term,
    parse_datasets,
    parse_entities,
    parse_glossary_terms,
    summarize_response,
)

__all__ = [
    "CatalogClient",
    "ScrollPage",
    "LIST_ASPECTS",
    "DATASET",
    "GLOSSARY_TERM",
    "Dataset",
    "DatasetSummary",
    "FieldType",
    "GlossaryTerm",
    "dump_entities",
    "dump_entity",
    "new_glossary_term",
    "parse_datasets",
    "parse_entities",
    "parse_glossary_terms",
    "summarize_response",
]
