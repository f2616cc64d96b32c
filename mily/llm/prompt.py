"""Prompt assembly from profile, recalled history and user input."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mily.agent import AgentProfile

TONE_INSTRUCTION = "Gunakan nada yang sopan, ringkas."


def build_system_text(profile: AgentProfile) -> str:
    """System section: who the agent is and how it should sound."""
    return (
        f"Anda adalah {profile.name}, asisten AI berbahasa Indonesia yang ingin tahu "
        f"dan berkembang. Persona: {profile.persona}. \n{TONE_INSTRUCTION}\n"
    )


def build_prompt(profile: AgentProfile, context: str, user_input: str) -> str:
    """Assemble the single request sent to the provider.

    Context and input are embedded verbatim. Length is not limited here;
    the recall window already bounds the history.
    """
    return (
        f"<SYSTEM>\n{build_system_text(profile)}\n"
        f"<CONTEXT>\n{context}\n</CONTEXT>\n"
        f"<USER>\n{user_input}\n</USER>\n"
    )


def build_learn_instruction(source_label: str, text: str) -> str:
    """Instruction asking the model to summarize *text* from *source_label*."""
    return (
        f"Pelajari dan ringkas isi dari sumber berikut: {source_label}\n"
        "Tuliskan poin-poin penting secara ringkas dalam bahasa Indonesia, "
        "lalu sebutkan satu hal yang membuat Anda penasaran.\n\n"
        f"---\n{text}\n---"
    )
