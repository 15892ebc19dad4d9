"""Keyscribe text processing — cleanup applied before text is typed."""

import re

# Punctuation that should hug the preceding word
_CLOSING_PUNCT = r'([,.!?;:])'


def clean_text(text):
    """Collapse whitespace and remove stray spaces before punctuation."""
    if not text:
        return ""
    text = ' '.join(text.split())                       # Whitespace runs -> single space
    text = re.sub(r' ' + _CLOSING_PUNCT, r'\1', text)   # Remove space before punct
    return text.strip()


def build_prompt(template, text):
    """Substitute the transcript into a refinement prompt template."""
    return template.replace('{text}', text)


def word_count(text):
    return len(text.split())
