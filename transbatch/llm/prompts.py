"""Prompt template rendering and role-block parsing.

Responsibilities:
- Substitute languages, few-shot examples, and tagged content into templates.
- Optionally prepend extended-reasoning instructions.
- Parse role-delimited templates into a system instruction and ordered turns.

Template syntax:
- Role blocks are written `<|role_start:ROLE|>...<|role_end|>`; roles starting
  with `system`, `assistant`, or `user` are recognized, others are skipped.
- Placeholders `{{language::source}}`, `{{language::target}}`,
  `{{example::source}}`, `{{example::result}}`, and `{{content}}` are replaced
  literally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..errors import PromptRenderError
from ..models.datatypes import ChatBlock, ChatRole, ChatTurn, TaggedExample


DEFAULT_TARGET_LANGUAGE = "Korean"

DEFAULT_PREFILL = (
    "I understood. I have translated all sentences without omission. I must response all "
    "senteces without aborting. Pure translation result without any extra information"
    "(only prefix included):"
)

DEFAULT_PROMPT = f"""<|role_start:system|>
You are translator who translate the {{{{language::source}}}} text given by user to {{{{language::target}}}}. You are just a translator. If it's already in {{{{language::target}}}}, you have to output it as it is. Keep prefix format. Response only translation text and prefix, without any extra information.
No sentence should be left untranslated, or you should not respond with a blank sentence without translating.<|role_end|>
{{{{example::source}}}}
<|role_start:assistant|>
{DEFAULT_PREFILL}<|role_end|>
{{{{example::result}}}}
<|role_start:user|>
{{{{content}}}}<|role_end|>
<|role_start:assistant|>
{DEFAULT_PREFILL}<|role_end|>
"""

THINKING_PROMPT = """
<|role_start:system|>
You are a thinking agent.
Your task is to deeply analyze the user's request, understand the context, and provide a thoughtful and detailed response.
When the user provides a passage for translation, you should first consider the nuances of the language, the cultural context, and the intended meaning.
Instead of a direct translation, you should aim to convey the original message in a way that is natural and easy to understand for the target audience.
Please take your time to think through the translation and provide the best possible result.
When you are ready to provide the translation, please format it clearly, ensuring that the original structure and tone are preserved as much as possible.
Do not include any additional comments or explanations unless they are necessary to clarify a specific translation choice.
<|role_end|>
"""

_ROLE_BLOCK_PATTERN = re.compile(r"<\|role_start:(.*?)\|>(.*?)<\|role_end\|>", re.DOTALL)
_ROLE_MARKER_PATTERN = re.compile(r"<\|role_start:.*?\|>|\n?<\|role_end\|>")


@dataclass(frozen=True, slots=True)
class PromptCodec:
    """Render prompt templates and convert them into structured chat blocks."""

    target_language: str = DEFAULT_TARGET_LANGUAGE
    default_template: str = DEFAULT_PROMPT

    def render(
        self,
        *,
        content: str,
        source_language: str,
        example: TaggedExample | None = None,
        template: str | None = None,
        use_thinking: bool = False,
    ) -> str:
        """Return the fully substituted prompt text for one batch.

        Raises:
            PromptRenderError: If content or source language is empty.
        """

        prompt = self.default_template if template is None else template
        active_example = example if example is not None else TaggedExample()

        if active_example.source:
            prompt = prompt.replace(
                "{{example::source}}",
                f"<|role_start:user|>\n{active_example.source}<|role_end|>",
            )
        else:
            prompt = prompt.replace("{{example::source}}", "")

        if active_example.result:
            prompt = prompt.replace(
                "{{example::result}}",
                f"<|role_start:assistant|>\n{active_example.result}<|role_end|>",
            )
        else:
            prompt = prompt.replace("{{example::result}}", "")

        if not content:
            raise PromptRenderError("Content is required.")
        prompt = prompt.replace("{{content}}", content)

        if not source_language:
            raise PromptRenderError("Source language is required.")
        prompt = prompt.replace("{{language::source}}", source_language)
        prompt = prompt.replace("{{language::target}}", self.target_language)

        if use_thinking:
            prompt = THINKING_PROMPT + prompt
        return prompt

    def chat_block(
        self,
        *,
        content: str,
        source_language: str,
        example: TaggedExample | None = None,
        template: str | None = None,
        use_thinking: bool = False,
    ) -> ChatBlock:
        """Render a template and parse it into a chat block in one step."""

        return parse_chat_block(
            self.render(
                content=content,
                source_language=source_language,
                example=example,
                template=template,
                use_thinking=use_thinking,
            )
        )


def parse_chat_block(prompt: str) -> ChatBlock:
    """Parse role blocks into a system instruction and merged conversational turns.

    The last system block wins. Consecutive user or assistant blocks are merged
    into one turn so turns alternate, which provider APIs require.
    """

    system_instruction: str | None = None
    turns: list[tuple[ChatRole, list[str]]] = []
    for match in _ROLE_BLOCK_PATTERN.finditer(prompt):
        role = match.group(1)
        text = _ROLE_MARKER_PATTERN.sub("", match.group(0)).strip()

        chat_role: ChatRole
        if role.startswith("system"):
            system_instruction = text
            continue
        if role.startswith("assistant"):
            chat_role = "model"
        elif role.startswith("user"):
            chat_role = "user"
        else:
            continue

        if turns and turns[-1][0] == chat_role:
            turns[-1][1].append(text)
        else:
            turns.append((chat_role, [text]))

    return ChatBlock(
        system_instruction=system_instruction,
        contents=tuple(ChatTurn(role=role, parts=tuple(parts)) for role, parts in turns),
    )
