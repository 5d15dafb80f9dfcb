# booking_api/newsletter/templates.py
"""
Template variable substitution.

Placeholders use the ``{{name}}`` form. Every declared variable is resolved
from the supplied values or its default; required variables with no value,
and values that do not fit the declared type, are all reported together.
"""
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from booking_api.newsletter.exceptions import TemplateRenderError
from booking_api.newsletter.schemas import (
    NewsletterTemplate,
    TemplateVariable,
    VariableType,
)

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.-]+)\s*\}\}")

def _is_iso_date(value: str) -> bool:
    """A whole ISO date or datetime; trailing text is rejected"""
    for parse in (date.fromisoformat, datetime.fromisoformat):
        try:
            parse(value)
            return True
        except ValueError:
            continue
    return False

def _check_type(variable: TemplateVariable, value: str) -> Optional[str]:
    if variable.type == VariableType.NUMBER:
        try:
            number = float(value)
        except ValueError:
            number = None
        if number is None or not math.isfinite(number):
            return f"Variable '{variable.name}' must be a number"
    elif variable.type == VariableType.URL:
        if not value.startswith(("http://", "https://")):
            return f"Variable '{variable.name}' must be an http(s) URL"
    elif variable.type == VariableType.DATE:
        if not _is_iso_date(value):
            return f"Variable '{variable.name}' must be an ISO date"
    return None

def resolve_variables(
    variables: List[TemplateVariable], values: Mapping[str, Any]
) -> Dict[str, str]:
    resolved: Dict[str, str] = {}
    errors: List[str] = []

    for variable in variables:
        raw = values.get(variable.name)
        if raw is None or raw == "":
            raw = variable.default_value

        if raw is None or raw == "":
            if variable.required:
                errors.append(f"Variable '{variable.name}' is required")
            continue

        value = str(raw)
        problem = _check_type(variable, value)
        if problem:
            errors.append(problem)
            continue

        resolved[variable.name] = value

    if errors:
        raise TemplateRenderError("Template variables are invalid", errors)

    return resolved

def substitute(text: Optional[str], values: Mapping[str, str]) -> Optional[str]:
    """Replace known placeholders; unknown ones are left for the sender"""
    if text is None:
        return None

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        return values.get(key, match.group(0))

    return PLACEHOLDER.sub(_replace, text)

def render_template(
    template: NewsletterTemplate, values: Mapping[str, Any]
) -> Dict[str, Optional[str]]:
    resolved = resolve_variables(template.variables, values)

    html = substitute(template.content.html, resolved)
    if template.content.css:
        html = f"<style>{template.content.css}</style>\n{html}"

    return {
        "html": html,
        "text": substitute(template.content.text, resolved),
    }
