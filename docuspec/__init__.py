"""
DocuSpec - Bill of materials extraction from Russian construction documents.

Example:
    >>> from docuspec.domains.parsing import parse_document
    >>> from docuspec.domains.extraction import rule_based_extract
    >>> document = parse_document(markdown_text)
    >>> items = [i for _, b in document.iter_blocks() for i in rule_based_extract(b)]
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
