"""
Action tag grammar and parsing

Model replies may embed a single command tag for Nova to execute:

    Sure thing! [ACTION:remember:key=favorite color|value=blue]

Grammar:
- Tag: ``[ACTION:<content>]`` where content holds no ``]``; only the first tag counts
- Content: ``<name>`` or ``<name>:<params>``; colons after the first belong to params
- Params: ``key=value`` pairs separated by ``|``, split once on the first ``=``
- Keys and values are trimmed; pairs without ``=`` or with an empty side are dropped

Parsing never raises. Malformed fragments are skipped so a sloppy reply still
yields whatever could be understood, and the tag is always removed from the
text that gets spoken.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

ACTION_TAG_RE = re.compile(r"\[ACTION:([^\]]+)\]")


@dataclass(frozen=True)
class ActionDefinition:
    slug: str
    description: str
    usage: str

    def to_prompt_line(self) -> str:
        return f"- {self.description}: {self.usage}"


ACTION_DEFINITIONS: tuple[ActionDefinition, ...] = (
    ActionDefinition("open_app", "Open App", "[ACTION:open_app:AppName]"),
    ActionDefinition("close_app", "Close App", "[ACTION:close_app:AppName]"),
    ActionDefinition(
        "send_whatsapp", "Send WhatsApp", "[ACTION:send_whatsapp:recipient=<name_or_phone>|message=<message>]"
    ),
    ActionDefinition(
        "call_contact", "Call Contact", "[ACTION:call_contact:recipient=<name_or_phone>|message=<optional_message>]"
    ),
    ActionDefinition("set_reminder", "Set Reminder", "[ACTION:set_reminder:dueInSeconds=<seconds>|message=<text>]"),
    ActionDefinition("add_contact", "Add Contact", "[ACTION:add_contact:name=<name>|phone=<phone>]"),
    ActionDefinition("view_contacts", "View Contacts", "[ACTION:view_contacts]"),
    ActionDefinition("delete_contact", "Delete Contact", "[ACTION:delete_contact:name=<name>]"),
    ActionDefinition("remember", "Remember", "[ACTION:remember:key=<key>|value=<value>]"),
    ActionDefinition(
        "forget", "Forget", "First, ask for confirmation. If confirmed, use [ACTION:forget:key=<key>]"
    ),
    ActionDefinition("view_memory", "View Memory", "[ACTION:view_memory]"),
    ActionDefinition("capture_photo", "Take Photo", "[ACTION:capture_photo]"),
    ActionDefinition("clear_photo", "Clear Photo", "[ACTION:clear_photo]"),
    ActionDefinition("save_photo", "Save Photo", "[ACTION:save_photo]"),
)


@dataclass(frozen=True)
class ParsedAction:
    name: str
    params_string: str = ""
    params: dict[str, str] = field(default_factory=dict)

    def param(self, key: str) -> str | None:
        value = self.params.get(key)
        return value or None


@dataclass(frozen=True)
class ActionParseResult:
    visible_text: str
    action: ParsedAction | None = None


def parse_action_reply(text: str | None) -> ActionParseResult:
    """Split a model reply into the text to speak and the embedded action, if any."""
    raw = text or ""
    match = ACTION_TAG_RE.search(raw)
    if not match:
        return ActionParseResult(visible_text=raw.strip())
    visible = (raw[: match.start()] + raw[match.end() :]).strip()
    return ActionParseResult(visible_text=visible, action=parse_action_content(match.group(1)))


def parse_action_content(content: str) -> ParsedAction:
    name, params_string = _split_action_token(content)
    return ParsedAction(name=name, params_string=params_string, params=parse_action_params(params_string))


def parse_action_params(params_string: str | None) -> dict[str, str]:
    if not params_string:
        return {}
    params: dict[str, str] = {}
    for segment in params_string.split("|"):
        if "=" not in segment:
            continue
        key, value = segment.split("=", 1)
        key = key.strip()
        value = value.strip()
        if key and value:
            params[key] = value
    return params


def _split_action_token(token: str) -> tuple[str, str]:
    if ":" not in token:
        return token.strip(), ""
    name, params_string = token.split(":", 1)
    return name.strip(), params_string


def render_action_instructions(definitions: tuple[ActionDefinition, ...] = ACTION_DEFINITIONS) -> str:
    """Describe the command tag protocol for the model's system instruction."""
    lines = "\n".join(definition.to_prompt_line() for definition in definitions)
    return f"""COMMANDS: To execute commands, provide a brief, conversational confirmation, then embed a special \
command tag in this format: [ACTION:action_name:parameters]. This tag will NOT be seen by the user but is \
required for the system to perform the action. For general questions, answer conversationally without any tags.

SUPPORTED ACTIONS:
{lines}"""
