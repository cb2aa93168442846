"""
Prompt construction for documentation translation.
"""

from __future__ import annotations

from docs_translator.translation.language import LanguageDetector

LOCALE_RULES: dict[str, str] = {
    "pt-br": """# PORTUGUESE (BRAZIL) SPECIFIC RULES
- ALWAYS translate 'deprecated' and related terms (deprecation, deprecating, deprecates) to 'descontinuado(a)' or 'obsoleto(a)' in ALL contexts (text, comments, headings, lists)
  - Exception: Do NOT translate 'deprecated' in HTML comment IDs like {/*deprecated-something*/}
  - Exception: Do NOT translate 'deprecated' in URLs, anchor links, or code variable names
- When an MDN document is referenced, switch the language slug to Brazilian Portuguese ('https://developer.mozilla.org/<slug>/*' => 'https://developer.mozilla.org/pt-BR/*')""",
    "ru": """# RUSSIAN SPECIFIC RULES
- ALWAYS translate 'deprecated' and related terms to 'устаревший' or the appropriate form in ALL contexts (text, comments, headings, lists)
  - Exception: Do NOT translate 'deprecated' in HTML comment IDs like {/*deprecated-something*/}
  - Exception: Do NOT translate 'deprecated' in URLs, anchor links, or code variable names
- When an MDN document is referenced, switch the language slug to Russian ('https://developer.mozilla.org/<slug>/*' => 'https://developer.mozilla.org/ru/*')
- Use formal "вы" (not informal "ты") when addressing the reader
- Keep English technical terms commonly left untranslated by Russian developers (e.g. "render", "props", "state", "hook")""",
}


def language_display_name(code: str, detector: LanguageDetector | None = None) -> str:
    """Human-readable name for a language code, or the code itself."""
    if detector is not None:
        name = detector.language_name(code)
        if name:
            return name
    return code


def build_system_prompt(
    source_language: str,
    target_language: str,
    glossary: str | None = None,
    locale_rules: str = "",
) -> str:
    """
    Build the system prompt for a translation call.

    Args:
        source_language: Display name of the source language.
        target_language: Display name of the target language.
        glossary: Verbatim "term -> translation" list, if any.
        locale_rules: Target-locale specific rules appended to the prompt.

    Returns:
        System prompt text.
    """
    glossary_section = ""
    if glossary:
        glossary_section = (
            "\n## TERMINOLOGY GLOSSARY\n"
            f"Apply these exact translations for the specified terms:\n{glossary}\n"
        )

    return f"""# ROLE
You are an expert technical translator specializing in software documentation.

# TASK
Translate the provided content from {source_language} to {target_language} with absolute precision and technical accuracy.

# CRITICAL PRESERVATION RULES
1. **Structure & Formatting**: Preserve ALL markdown syntax, HTML tags, code blocks, frontmatter, and line breaks exactly as written
2. **Code Integrity**: Keep ALL code examples, variable names, function names, and URLs COMPLETELY unchanged
3. **Content Completeness**: Translate EVERY piece of text content WITHOUT adding, removing, or omitting anything
4. **Whitespace Integrity**: ALWAYS preserve blank lines, especially after horizontal rules (---)

# TRANSLATION GUIDELINES
## What to Translate
- Natural language text and documentation content
- Code comments and string literals that contain user-facing text
- Alt text, titles, and descriptive content

## What NOT to Translate
- Code syntax, variable names, function names, API endpoints
- Technical terms not specified in the glossary
- URLs, file paths, or configuration values
- Frontmatter keys (only translate values if they are user-facing)

# OUTPUT REQUIREMENTS
- Return ONLY the translated content
- Do NOT add explanatory text, code block wrappers, or prefixes
- Maintain exact whitespace patterns, including list formatting and blank lines
{locale_rules}
{glossary_section}"""


def build_user_prompt(content: str, context: str | None = None) -> str:
    """
    Build the user message for one document or segment.

    ``context`` is the tail of the preceding segment; it is shown for
    continuity and must not be translated or repeated.
    """
    if not context:
        return content
    return (
        "## Context (preceding text, do NOT translate or include in the output)\n"
        f"{context}\n\n"
        "## Source Text (translate only this)\n"
        f"{content}"
    )
