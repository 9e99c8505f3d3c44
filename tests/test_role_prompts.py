"""Unit tests for role-specific system instructions."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from models.chat import Role
from services.role_prompts import (
    DOCTOR_INSTRUCTION,
    NURSE_INSTRUCTION,
    RECEPTIONIST_INSTRUCTION,
    build_system_prompt,
    get_system_instruction,
    resolve_role,
)


@pytest.mark.parametrize("role,expected", [
    ("doctor", DOCTOR_INSTRUCTION),
    ("nurse", NURSE_INSTRUCTION),
    ("receptionist", RECEPTIONIST_INSTRUCTION),
])
def test_each_role_gets_its_instruction(role, expected):
    assert get_system_instruction(role) == expected


def test_role_enum_values_are_accepted():
    assert get_system_instruction(Role.NURSE) == NURSE_INSTRUCTION


@pytest.mark.parametrize("role", ["surgeon", "", None, "admin"])
def test_unknown_role_falls_back_to_receptionist(role):
    assert get_system_instruction(role) == RECEPTIONIST_INSTRUCTION
    assert resolve_role(role) == Role.RECEPTIONIST


@pytest.mark.parametrize("role", ["Doctor", " doctor ", "NURSE", "nurse\n"])
def test_role_matching_is_exact(role):
    """Near-miss spellings get the restricted receptionist instruction."""
    assert resolve_role(role) == Role.RECEPTIONIST
    assert get_system_instruction(role) == RECEPTIONIST_INSTRUCTION


def test_receptionist_instruction_refuses_medical_advice():
    assert "Do not give any medical advice" in RECEPTIONIST_INSTRUCTION
    assert "Please ask a doctor or nurse." in RECEPTIONIST_INSTRUCTION


def test_system_prompt_appends_patient_id():
    prompt = build_system_prompt("doctor", "p-42")

    assert prompt.startswith(DOCTOR_INSTRUCTION)
    assert prompt.endswith("\nCurrent Patient ID (context only): p-42")
