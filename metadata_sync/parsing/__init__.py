"""Producers of metadata records from model output."""

from .response_parser import ParsedResponse, parse_response

__all__ = ['ParsedResponse', 'parse_response']
