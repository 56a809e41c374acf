"""Prompt template for remote placement assistance."""

from typing import Dict

_LANGUAGE_RULES: Dict[str, str] = {
    "typescript": (
        "- Use JSDoc: /** ... */\n"
        "- @param for parameters, @returns for return values\n"
        "- Interfaces and types get a /** description */ in front"
    ),
    "javascript": (
        "- Use JSDoc: /** ... */\n"
        "- @param for parameters, @returns for return values"
    ),
    "python": (
        '- Use a docstring: """..."""\n'
        "- Place it directly AFTER the def/class signature\n"
        "- Args, Returns, Raises sections"
    ),
    "java": "- Use Javadoc: /** ... */\n- @param, @return, @throws tags",
    "csharp": "- Use XML comments: /// <summary>\n- <param>, <returns> tags",
    "php": "- Use PHPDoc: /** ... */\n- @param, @return tags",
    "go": "- Use // comments\n- The comment starts with the declared name",
    "rust": "- Use /// doc comments\n- Markdown formatted",
}

_DEFAULT_RULES = "- Use the language's standard documentation comment style"


def language_rules(language: str) -> str:
    return _LANGUAGE_RULES.get(language, _DEFAULT_RULES)


def build_placement_prompt(
    code: str,
    language: str,
    description: str,
    cursor_line: int,
    cursor_offset: int,
) -> str:
    """Build the placement prompt.

    Args:
        code: Window of source lines around the cursor
        language: Language identifier of the document
        description: What the user wants documented
        cursor_line: Absolute 0-based cursor line
        cursor_offset: Cursor line relative to the start of ``code``
    """
    return f"""You are an expert in code documentation. Place ONE documentation comment precisely, without causing syntax errors.

## TASK
1. Analyze the code context
2. Write a professional documentation comment for: "{description}"
3. Decide the EXACT line the comment belongs to
4. Say whether it goes BEFORE or AFTER that line
5. Give the correct indentation

## CODE CONTEXT
Language: {language}
Cursor: line {cursor_offset} of the excerpt, line {cursor_line} of the file (0-based)

```{language}
{code}
```

## RULES
1. Comments go IN FRONT of the function/class/method they document
2. Comments use the same indentation as the code they document
3. For {language}:
{language_rules(language)}
4. NEVER put a comment inside a code block (between {{ and }})
5. targetLine is an absolute 0-based line number of the file

## OUTPUT FORMAT (JSON)
{{
  "comment": "the formatted comment text",
  "targetLine": <absolute line number>,
  "position": "BEFORE" or "AFTER",
  "indentation": <number of spaces>,
  "reasoning": "short explanation of the position"
}}

Return ONLY the JSON object, no markdown fences or additional text.
"""
