import re
import html
from typing import Optional

_SCRIPT_BLOCK = re.compile(r'<script.*?>.*?</script>', flags=re.DOTALL | re.IGNORECASE)


def sanitize_input(text: Optional[str]) -> Optional[str]:
    """Free text (comments, justifications, notes) is stored HTML-escaped."""
    if not isinstance(text, str):
        return text
    # Remove script blocks first, then escape what is left
    return html.escape(_SCRIPT_BLOCK.sub('', text), quote=False)
