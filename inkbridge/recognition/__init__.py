"""Handwriting recognition service access."""

from .myscript import MyScriptClient, build_request, parse_response, sign_request

__all__ = ["MyScriptClient", "build_request", "parse_response", "sign_request"]
