"""Prompt template rendering."""

PLACEHOLDER = "{{input}}"


def render_prompt(template: str, value: str, placeholder: str = PLACEHOLDER) -> str:
    """Replace every placeholder occurrence in ``template`` with ``value``.

    Substitution is a single left-to-right pass: a placeholder that appears
    inside ``value`` is left as-is. No escaping is applied.
    """
    return template.replace(placeholder, value)


def count_placeholders(template: str, placeholder: str = PLACEHOLDER) -> int:
    return template.count(placeholder)
