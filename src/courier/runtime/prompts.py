"""
Prompt rendering for courier agents.

Combines agent identity + agent type instructions + base mail
instructions. The runtime passes the result through to inference
without inspecting it.

Example:
    from courier.runtime.prompts import render_system_prompt

    prompt = render_system_prompt(
        agent_name="planner",
        agent_description="Breaks work into tasks",
        custom_section="Reply to the requester when done.",
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from courier.config.snapshot import ConfigHandle

    from .types import AgentSession

# Fixed wake signal passed with every mail-triggered step
YOU_HAVE_MAIL = "You have mail."

BASE_INSTRUCTIONS = """
## Environment

You communicate only through mail. Each message shows sender, subject and body.
Addresses look like name@project.agent (agents) or name@project.user (people).
Plain text output is not delivered; return outgoing messages instead.

## Mail handling

- Answer the sender of a request unless told otherwise.
- Keep the correlation of requests by replying rather than writing new mail.
- Mail from postmaster@<project>.system is a bounce: your message was not delivered.
- Decide "continue" only when you have more work to do without new mail.
"""


def render_system_prompt(
    agent_name: str,
    agent_description: str = "",
    custom_section: str = "",
    include_base_instructions: bool = True,
) -> str:
    parts = [f"You are {agent_name}."]
    if agent_description:
        parts.append(agent_description)
    if custom_section:
        parts.append(custom_section.strip())
    if include_base_instructions:
        parts.append(BASE_INSTRUCTIONS.strip())
    return "\n\n".join(parts)


class ConfigPromptProvider:
    """
    Default PromptProvider.

    Looks up the session's agent_type (metadata key) in the current
    configuration snapshot, so swapping configuration changes prompts on
    the next step.
    """

    def __init__(self, config: "ConfigHandle"):
        self.config = config

    def render(self, session: "AgentSession") -> str:
        agent_type = self.config.current().agent_type(session.metadata.get("agent_type"))
        if agent_type is None:
            return render_system_prompt(
                session.agent_id,
                custom_section=session.metadata.get("prompt", ""),
            )
        return render_system_prompt(
            session.agent_id,
            agent_description=agent_type.description,
            custom_section=agent_type.prompt,
        )
