# storefront/core/slugs.py
import re


def slugify(raw: str, fallback: str) -> str:
    """
    Basic slugification:
      - lowercase
      - non-alphanumeric -> '-'
      - collapse multiple '-'
      - strip leading/trailing '-'
    """
    value = raw.strip().lower()
    value = re.sub(r"[^a-z0-9]+", "-", value)
    value = re.sub(r"-+", "-", value)
    value = value.strip("-")
    return value or fallback
