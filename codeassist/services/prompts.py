"""
System prompt text and prompt builders for one-shot actions
"""

from __future__ import annotations

BASE_SYSTEM_PROMPT = """You are an AI coding assistant embedded in a C/C++ IDE.
Answer in concise prose. Put code in fenced code blocks.

When the user asks you to fix code in their selection, reply with one or more blocks:
<tool>fix_code</tool>
<search>exact text to find in the selection</search>
<replace>replacement text</replace>
<explanation>one sentence</explanation>

When the user asks you to rewrite the whole selection, reply with one block:
<tool>refactor_code</tool>
<mode>replace</mode>
<code>the complete new code</code>
<explanation>one sentence</explanation>

Never mix fix_code and refactor_code blocks in one reply."""


def compose_system_prompt(
    digest: str = "",
    extra: str = "",
    code_context: str | None = None,
    base: str = BASE_SYSTEM_PROMPT,
) -> str:
    """Join the base prompt with project digest, user guidance and inline code"""
    parts = [base.strip()]
    if digest:
        parts.append(f"Project declarations:\n{digest}")
    if extra and extra.strip():
        parts.append(extra.strip())
    if code_context:
        parts.append(f"Code in the editor:\n```\n{code_context}\n```")
    return "\n\n".join(parts)


def build_error_analysis_prompt(error_output: str, code: str | None = None) -> str:
    prompt = f"""The build produced the following errors. Explain the cause of each one briefly and
suggest a fix using fix_code blocks when the code is shown.

ERRORS:
{error_output}"""
    if code:
        prompt += f"\n\nCODE:\n```\n{code}\n```"
    return prompt


def build_code_generation_prompt(description: str, code: str | None = None) -> str:
    prompt = f"""Write code for the following request.

REQUEST:
{description}"""
    if code:
        prompt += f"""

Rewrite the selection below and return it as a single refactor_code block.

SELECTION:
```
{code}
```"""
    else:
        prompt += "\n\nReturn ONLY the code wrapped in ``` ... ```"
    return prompt


def build_hint_prompt(line: str, surrounding: str | None = None) -> str:
    """Short inline hint for the line under the cursor"""
    prompt = f"Give a one-sentence hint about this line of code:\n{line}"
    if surrounding:
        prompt += f"\n\nSurrounding code:\n```\n{surrounding}\n```"
    prompt += "\n\nReply with the hint only, no code blocks."
    return prompt
