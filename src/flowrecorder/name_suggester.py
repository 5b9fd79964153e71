from __future__ import annotations

import re

from .models import ElementSnapshot
from .selector_rules import is_dynamic

_MAX_BASE_LENGTH = 30
_MAX_TEXT_LENGTH = 40

TEXT_INPUT_TYPES = {"text", "email", "password", "search"}
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}


def suggest_var_name(snapshot: ElementSnapshot, index: int) -> str:
    """Identifier such as ``btnSave_changes`` for use in generated code.

    ``index`` is only used when the element offers nothing readable. Names are
    not unique across a batch; callers that need that must dedupe.
    """
    prefix = element_prefix(snapshot)
    base = element_base_name(snapshot)
    if not base:
        base = f"{(snapshot.tag or 'element').lower()}_{index}"
    return prefix + base[0].upper() + base[1:]


def element_prefix(snapshot: ElementSnapshot) -> str:
    tag = (snapshot.tag or "").strip().lower()
    role = (snapshot.role or "").strip().lower()

    if tag == "button" or role == "button":
        return "btn"
    if tag == "a" or role == "link":
        return "lnk"
    if tag == "input":
        input_type = (snapshot.attr("type") or "text").lower()
        if input_type in TEXT_INPUT_TYPES:
            return "txt"
        if input_type == "checkbox":
            return "chk"
        if input_type == "radio":
            return "rdo"
        if input_type == "submit":
            return "btn"
        return "inp"
    if tag == "select":
        return "ddl"
    if tag == "textarea":
        return "txt"
    if tag == "form":
        return "frm"
    if tag == "table":
        return "tbl"
    if tag == "nav" or role == "navigation":
        return "nav"
    if role == "dialog":
        return "dlg"
    if role in {"menu", "menuitem"}:
        return "mnu"
    if tag in HEADING_TAGS:
        return "hdr"
    if tag == "img":
        return "img"
    return "elm"


def element_base_name(snapshot: ElementSnapshot) -> str:
    return _clean_base(_best_name_source(snapshot))


def to_identifier_token(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", value.lower())


def _keep_case_token(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]+", "_", value)


def _best_name_source(snapshot: ElementSnapshot) -> str:
    for key in ("data-testid", "id", "name"):
        value = snapshot.attr(key)
        if value and not is_dynamic(value):
            return _keep_case_token(value)

    for key in ("aria-label", "placeholder", "title", "alt"):
        value = snapshot.attr(key)
        if value:
            return to_identifier_token(value)

    text = (snapshot.text or "").strip()
    if text and len(text) < _MAX_TEXT_LENGTH:
        return to_identifier_token(text)

    for token in snapshot.classes:
        if not is_dynamic(token):
            return to_identifier_token(token)
    return ""


def _clean_base(value: str) -> str:
    collapsed = value.strip("_")[:_MAX_BASE_LENGTH]
    return collapsed.rstrip("_")
