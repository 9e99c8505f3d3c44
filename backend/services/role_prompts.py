"""
Role-specific system instructions.

The receptionist instruction is the only thing keeping that role away from
medical advice: nothing inspects the model output afterwards.
"""
import logging
from typing import Optional

from models.chat import Role

logger = logging.getLogger(__name__)


DOCTOR_INSTRUCTION = """You are an AI assistant for medical doctors.
Provide only what is asked.
Give factual, medically accurate, concise answers.
If asked for diagnosis, tests, medications, or reasoning, provide them clearly.
Do not add extra explanations, disclaimers, or suggestions unless explicitly requested.
If information is missing, state exactly what is needed.
Never include unnecessary text."""

NURSE_INSTRUCTION = """You are an AI assistant for hospital nurses.
Answer only the exact question asked.
Provide concise, practical, clinical nursing information such as medication timing, monitoring steps, wound care, safety alerts, or shift tasks.
Do not add extra explanation or suggestions unless explicitly requested.
If information is incomplete, state what is missing.
No unnecessary details."""

RECEPTIONIST_INSTRUCTION = """You are an AI assistant for hospital receptionists.
Answer only what is asked.
Provide short, accurate information about appointments, billing, insurance, scheduling, forms, or hospital processes.
Do not give any medical advice.
If the question is medical, redirect by saying: "Please ask a doctor or nurse."
No extra details or suggestions."""

SYSTEM_INSTRUCTIONS = {
    Role.DOCTOR: DOCTOR_INSTRUCTION,
    Role.NURSE: NURSE_INSTRUCTION,
    Role.RECEPTIONIST: RECEPTIONIST_INSTRUCTION,
}


def resolve_role(role: Optional[str]) -> Role:
    """Map a raw role string onto a Role (exact match), falling back to receptionist."""
    try:
        return Role(role)
    except ValueError:
        logger.warning(f"Unrecognized role {role!r}, falling back to receptionist")
        return Role.RECEPTIONIST


def get_system_instruction(role: Optional[str]) -> str:
    """Return the system instruction mapped to `role`."""
    return SYSTEM_INSTRUCTIONS[resolve_role(role)]


def build_system_prompt(role: Optional[str], patient_id: str) -> str:
    """Compose the system text: role instruction plus the patient id annotation."""
    return f"{get_system_instruction(role)}\nCurrent Patient ID (context only): {patient_id}"
